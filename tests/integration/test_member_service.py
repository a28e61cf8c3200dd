"""
Integration tests for the member roster.
"""

import pytest

from merit.database.models.enums import TransactionKind
from merit.modules.shared.exceptions import NotFoundError, ValidationError


@pytest.mark.integration
@pytest.mark.database
class TestMemberService:
    async def test_register_and_get(self, services, captured_events):
        record = await services.members.register_member("m-1", " Ada Lovelace ", unit_id="unit-a")

        assert record.full_name == "Ada Lovelace"
        assert (await services.members.get_member("m-1")).unit_id == "unit-a"
        assert captured_events[-1]["event_name"] == "member.registered"

    async def test_duplicate_rejected(self, services, make_member):
        await make_member("m-1")
        with pytest.raises(ValidationError):
            await services.members.register_member("m-1", "Someone Else")

    async def test_update_and_clear_unit(self, services, make_member):
        await make_member("m-1", unit_id="unit-a")

        renamed = await services.members.update_member("m-1", full_name="Renamed")
        assert renamed.unit_id == "unit-a"

        cleared = await services.members.update_member("m-1", unit_id=None)
        assert cleared.unit_id is None
        assert cleared.full_name == "Renamed"

    async def test_list_filters(self, services, make_member):
        await make_member("m-2", unit_id="unit-b")
        await make_member("m-1", unit_id="unit-a")
        await make_member("m-3", unit_id="unit-a", is_active=False)

        assert [m.id for m in await services.members.list_members()] == ["m-1", "m-2"]
        assert [m.id for m in await services.members.list_members(unit_id="unit-a")] == ["m-1"]
        assert len(await services.members.list_members(include_inactive=True)) == 3

    async def test_deactivate_keeps_ledger(self, services, make_member):
        await make_member("m-1")
        await services.ledger.append("m-1", 40, TransactionKind.EARN, "Work")

        record = await services.members.set_active("m-1", False)

        assert not record.is_active
        assert await services.ledger.total_for("m-1") == 40

    async def test_unknown_member(self, services):
        with pytest.raises(NotFoundError):
            await services.members.get_member("ghost")
        with pytest.raises(NotFoundError):
            await services.members.set_active("ghost", True)
