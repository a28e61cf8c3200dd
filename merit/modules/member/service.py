"""
Member roster service.

Purpose
-------
Keeps the minimal member registry the ledger and the leaderboard need:
which member ids exist, their display names, units and whether they are
active. Identities themselves are owned by an external subsystem; this
service mirrors what it is told.

Responsibilities
----------------
- Register members and update their display data
- Activate/deactivate members (inactive members keep their ledger)
- Look members up for the ledger's known-member check

Non-Responsibilities
--------------------
- Authentication, passwords, sessions
- Storing point totals (always derived from the ledger)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy.exc import IntegrityError

from merit.core.database.service import DatabaseService
from merit.core.validation.input_validator import InputValidator
from merit.database.models.ledger import Member
from merit.domain.models.ledger import MemberRecord
from merit.modules.member.repository import MemberRepository
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus

_UNSET = object()


class MemberService(BaseService):
    """Roster operations. All methods return immutable MemberRecord values."""

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._members = MemberRepository(Member, logger)

    async def register_member(
        self,
        member_id: str,
        full_name: str,
        unit_id: Optional[str] = None,
        is_active: bool = True,
    ) -> MemberRecord:
        """
        Add a member to the roster.

        Raises:
            ValidationError: invalid fields or id already registered
        """
        member_id = InputValidator.validate_identifier(member_id, "member_id")
        full_name = InputValidator.validate_string(full_name, "full_name", min_length=1, max_length=200)
        unit_id = InputValidator.validate_optional_string(unit_id, "unit_id", max_length=64)

        try:
            async with DatabaseService.get_transaction() as session:
                if await self._members.get(session, member_id) is not None:
                    raise ValidationError("member_id", f"Member {member_id} is already registered")
                row = await self._members.add(
                    session,
                    Member(id=member_id, full_name=full_name, unit_id=unit_id, is_active=is_active),
                )
                record = MemberRecord.from_db(row)
        except IntegrityError as exc:
            raise ValidationError("member_id", f"Member {member_id} is already registered") from exc

        self.log_operation("register_member", member_id=member_id, unit_id=unit_id)
        await self.emit_event("member.registered", record.to_dict())
        return record

    async def update_member(
        self,
        member_id: str,
        full_name: Optional[str] = None,
        unit_id: object = _UNSET,
    ) -> MemberRecord:
        """Change display name and/or unit. Pass ``unit_id=None`` to clear the unit."""
        if full_name is not None:
            full_name = InputValidator.validate_string(
                full_name, "full_name", min_length=1, max_length=200
            )
        if unit_id is not _UNSET:
            unit_id = InputValidator.validate_optional_string(unit_id, "unit_id", max_length=64)

        async with DatabaseService.get_transaction() as session:
            row = await self._require(session, member_id, lock=True)
            if full_name is not None:
                row.full_name = full_name
            if unit_id is not _UNSET:
                row.unit_id = unit_id  # type: ignore[assignment]
            await session.flush()
            record = MemberRecord.from_db(row)

        self.log_operation("update_member", member_id=member_id)
        await self.emit_event("member.updated", record.to_dict())
        return record

    async def set_active(self, member_id: str, is_active: bool) -> MemberRecord:
        async with DatabaseService.get_transaction() as session:
            row = await self._require(session, member_id, lock=True)
            row.is_active = bool(is_active)
            await session.flush()
            record = MemberRecord.from_db(row)

        self.log_operation("set_member_active", member_id=member_id, is_active=record.is_active)
        await self.emit_event("member.updated", record.to_dict())
        return record

    async def get_member(self, member_id: str) -> MemberRecord:
        async with DatabaseService.get_session() as session:
            return MemberRecord.from_db(await self._require(session, member_id))

    async def list_members(
        self,
        unit_id: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[MemberRecord]:
        async with DatabaseService.get_session() as session:
            rows = await self._members.list_members(session, unit_id, include_inactive)
            return [MemberRecord.from_db(row) for row in rows]

    async def _require(self, session: AsyncSession, member_id: str, lock: bool = False) -> Member:
        if lock:
            row = await self._members.get_for_update(session, member_id)
        else:
            row = await self._members.get(session, member_id)
        if row is None:
            raise NotFoundError("Member", member_id)
        return row
