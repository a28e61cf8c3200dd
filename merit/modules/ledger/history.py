"""
Lazy, restartable ledger history.

A ``LedgerHistory`` performs no I/O until it is iterated. The first
iteration pins the highest transaction id visible at that moment; every
iteration (including later re-iterations) only returns rows at or below
that anchor, newest first, so rows committed with higher ids never
shift pages.
Rows are fetched in keyset pages (``id < last_seen``) with one short
session per page, and no session stays open while the consumer runs.

The anchor is read under read-committed isolation. On PostgreSQL a
transaction holding a lower sequence id can still commit after the pin;
such a row appears below the anchor and shifts later offset pages by one.
Within one iteration keyset continuation never repeats a row. SQLite
assigns ids under its single writer lock, so ids there commit in order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, AsyncIterator, List, Optional

from sqlalchemy import func, select

from merit.core.database.service import DatabaseService
from merit.database.models.ledger import PointTransaction
from merit.domain.models.ledger import PointTransactionRecord

if TYPE_CHECKING:
    from merit.database.models.enums import TransactionKind


class LedgerHistory:
    """
    Async iterable of PointTransactionRecord for one member, newest first.

    >>> history = ledger.history_for("m-1", limit=20)
    >>> async for entry in history:
    ...     print(entry.delta)
    """

    def __init__(
        self,
        member_id: str,
        limit: Optional[int],
        offset: int = 0,
        kind: Optional[TransactionKind] = None,
        page_size: int = 50,
    ) -> None:
        self.member_id = member_id
        self.limit = limit
        self.offset = offset
        self.kind = kind
        self.page_size = page_size
        self._anchor: Optional[int] = None
        self._anchored = False

    @property
    def anchor(self) -> Optional[int]:
        """Pinned upper-bound id, or None before the first iteration."""
        return self._anchor

    def _conditions(self) -> list:
        conditions = [PointTransaction.member_id == self.member_id]
        if self.kind is not None:
            conditions.append(PointTransaction.kind == self.kind.value)
        if self._anchor is not None:
            conditions.append(PointTransaction.id <= self._anchor)
        return conditions

    async def _pin_anchor(self) -> None:
        if self._anchored:
            return
        async with DatabaseService.get_session() as session:
            result = await session.execute(select(func.max(PointTransaction.id)))
            self._anchor = result.scalar_one_or_none()
        self._anchored = True

    async def _fetch_page(self, before_id: Optional[int], skip: int, size: int) -> List[PointTransactionRecord]:
        stmt = select(PointTransaction).where(*self._conditions())
        if before_id is not None:
            stmt = stmt.where(PointTransaction.id < before_id)
        stmt = stmt.order_by(PointTransaction.id.desc()).limit(size)
        if skip:
            stmt = stmt.offset(skip)

        async with DatabaseService.get_session() as session:
            result = await session.execute(stmt)
            return [PointTransactionRecord.from_db(row) for row in result.scalars().all()]

    async def _iterate(self) -> AsyncIterator[PointTransactionRecord]:
        await self._pin_anchor()
        if self._anchor is None:
            return

        remaining = self.limit
        before_id: Optional[int] = None
        skip = self.offset

        while remaining is None or remaining > 0:
            size = self.page_size if remaining is None else min(self.page_size, remaining)
            page = await self._fetch_page(before_id, skip, size)
            skip = 0
            if not page:
                return
            for entry in page:
                yield entry
            if remaining is not None:
                remaining -= len(page)
            if len(page) < size:
                return
            before_id = int(page[-1].id)

    def __aiter__(self) -> AsyncIterator[PointTransactionRecord]:
        return self._iterate()

    async def to_list(self) -> List[PointTransactionRecord]:
        return [entry async for entry in self]

    async def count(self) -> int:
        """Number of matching rows at or below the anchor, ignoring limit/offset."""
        await self._pin_anchor()
        if self._anchor is None:
            return 0
        async with DatabaseService.get_session() as session:
            result = await session.execute(
                select(func.count()).select_from(PointTransaction).where(*self._conditions())
            )
            return int(result.scalar_one())
