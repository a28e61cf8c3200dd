"""
Configuration subsystem for the Merit engine.

Static vs Dynamic Configuration
-------------------------------
**Static (Config):**
- Loaded from environment variables at startup (``.env`` supported)
- Database URL, pool sizes, environment, logging switches
- Changes require a restart (or ``Config.reload()`` in tests)

**Dynamic (ConfigManager):**
- YAML defaults from ``config/`` plus database overrides
- Tier thresholds, self-rating reward table, suggestion ratios,
  history paging limits, refresh intervals
- Writable at runtime by administrators

Usage
-----
```python
from merit.core.config import Config, ConfigManager

await ConfigManager.initialize()
excellent_cutoff = ConfigManager.get("tiers.thresholds.excellent", 800)
await ConfigManager.set("rating.reward_points.good", 6, modified_by="admin-1")
```
"""

from merit.core.config.config import Config, Environment
from merit.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
    ConfigWriteError,
)
from merit.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
    "ConfigWriteError",
]
