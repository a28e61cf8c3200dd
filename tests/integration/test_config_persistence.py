"""
Integration tests for persisted ConfigManager overrides.
"""

import pytest
from sqlalchemy import select

from merit.core.config.errors import ConfigValidationError
from merit.core.config.manager import ConfigManager
from merit.core.database.service import DatabaseService
from merit.database.models.system import ConfigEntry
from merit.modules.tier import register_config_validators


@pytest.mark.integration
@pytest.mark.database
class TestConfigPersistence:
    async def test_override_survives_reinitialize(self, database):
        await ConfigManager.set("tiers.thresholds.excellent", 900, modified_by="admin-1")
        assert ConfigManager.get("tiers.thresholds.excellent") == 900

        ConfigManager.reset()
        await ConfigManager.initialize()

        assert ConfigManager.get("tiers.thresholds.excellent") == 900
        # sibling keys keep their YAML defaults
        assert ConfigManager.get("tiers.thresholds.good") == 600

    async def test_override_row_records_author(self, database):
        await ConfigManager.set("refresh.interval_seconds", 60, modified_by="admin-1")

        async with DatabaseService.get_session() as session:
            entry = (
                await session.execute(select(ConfigEntry).where(ConfigEntry.key == "refresh"))
            ).scalar_one()

        assert entry.value["interval_seconds"] == 60
        assert entry.modified_by == "admin-1"

    async def test_rejected_override_not_persisted(self, database):
        register_config_validators(ConfigManager)

        with pytest.raises(ConfigValidationError):
            await ConfigManager.set("tiers.thresholds.good", 300)

        ConfigManager.reset()
        await ConfigManager.initialize()
        assert ConfigManager.get("tiers.thresholds.good") == 600

    async def test_initialize_without_database_uses_defaults(self):
        ConfigManager.reset()
        await ConfigManager.initialize()

        assert ConfigManager.get("ledger.history.max_limit") == 100
