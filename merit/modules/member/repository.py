"""Data access for the member roster."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from merit.database.models.ledger import Member
from merit.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class MemberRepository(BaseRepository[Member]):
    async def list_members(
        self,
        session: AsyncSession,
        unit_id: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[Member]:
        conditions = []
        if unit_id is not None:
            conditions.append(Member.unit_id == unit_id)
        if not include_inactive:
            conditions.append(Member.is_active.is_(True))
        return await self.find_many_where(session, *conditions, order_by=[Member.id])
