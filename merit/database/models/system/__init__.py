from .config_entry import ConfigEntry

__all__ = ["ConfigEntry"]
