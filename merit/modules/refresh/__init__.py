from merit.modules.refresh.coordinator import RefreshCoordinator, RefreshSettings

__all__ = ["RefreshCoordinator", "RefreshSettings"]
