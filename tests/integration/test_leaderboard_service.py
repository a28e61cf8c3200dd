"""
Integration tests for the on-demand leaderboard.
"""

import pytest

from merit.database.models.enums import Tier, TransactionKind
from merit.domain.models.leaderboard import LeaderboardScope
from merit.modules.shared.exceptions import NotFoundError, ValidationError


@pytest.fixture
async def ranked(services, make_member):
    """
    Four active members and one inactive one:

    m-a 820 (unit-a), m-b 650 (unit-b), m-c 650 (unit-a), m-d 0 (unit-b),
    m-x 900 inactive.
    """
    await make_member("m-c", "Charlie Chaplin", unit_id="unit-a")
    await make_member("m-a", "Alice Ball", unit_id="unit-a")
    await make_member("m-b", "Bob Marley", unit_id="unit-b")
    await make_member("m-d", "Dora Maar", unit_id="unit-b")
    await make_member("m-x", "Xavier Inactive", unit_id="unit-a")

    ledger = services.ledger
    await ledger.append("m-a", 820, TransactionKind.EARN, "Season")
    await ledger.append("m-b", 700, TransactionKind.EARN, "Season")
    await ledger.append("m-b", -50, TransactionKind.DEDUCT, "Absence")
    await ledger.append("m-c", 650, TransactionKind.EARN, "Season")
    await ledger.append("m-x", 900, TransactionKind.EARN, "Season")
    await services.members.set_active("m-x", False)


@pytest.mark.integration
@pytest.mark.database
class TestLeaderboardRanking:
    async def test_order_and_tiers(self, services, ranked):
        board = await services.leaderboard.rank()

        assert [(e.position, e.member_id, e.total_points) for e in board.entries] == [
            (1, "m-a", 820),
            (2, "m-b", 650),
            (3, "m-c", 650),
            (4, "m-d", 0),
        ]
        assert [e.tier for e in board.entries] == [Tier.EXCELLENT, Tier.GOOD, Tier.GOOD, Tier.POOR]
        assert board.entries[0].unit == "unit-a"

    async def test_summary(self, services, ranked):
        summary = (await services.leaderboard.rank()).summary

        assert summary.total_members == 4
        assert summary.total_points == 2120
        assert summary.average_points == 530
        assert summary.max_points == 820
        assert summary.excellent_count == 1

    async def test_repeat_calls_identical(self, services, ranked):
        first = await services.leaderboard.rank()
        second = await services.leaderboard.rank()
        assert first == second

    async def test_reflects_new_appends(self, services, ranked):
        await services.ledger.append("m-d", 1000, TransactionKind.EARN, "Breakthrough")

        board = await services.leaderboard.rank()

        assert board.entries[0].member_id == "m-d"
        assert board.entries[0].tier is Tier.EXCELLENT

    async def test_unit_filter(self, services, ranked):
        board = await services.leaderboard.rank(LeaderboardScope(unit_id="unit-a"))

        assert [e.member_id for e in board.entries] == ["m-a", "m-c"]
        assert [e.position for e in board.entries] == [1, 2]

    async def test_include_inactive(self, services, ranked):
        board = await services.leaderboard.rank(LeaderboardScope(include_inactive=True))

        assert board.entries[0].member_id == "m-x"
        assert board.summary.total_members == 5

    async def test_search_name_or_id(self, services, ranked):
        by_name = await services.leaderboard.rank(LeaderboardScope(search="MARLEY"))
        by_id = await services.leaderboard.rank(LeaderboardScope(search="m-d"))

        assert [e.member_id for e in by_name.entries] == ["m-b"]
        assert [e.member_id for e in by_id.entries] == ["m-d"]

    async def test_search_treats_wildcards_literally(self, services, ranked):
        board = await services.leaderboard.rank(LeaderboardScope(search="%"))
        assert board.entries == ()

    async def test_member_set(self, services, ranked):
        board = await services.leaderboard.rank(LeaderboardScope(member_ids=frozenset({"m-c", "m-d"})))
        assert [e.member_id for e in board.entries] == ["m-c", "m-d"]

        empty = await services.leaderboard.rank(LeaderboardScope(member_ids=frozenset()))
        assert empty.entries == () and empty.summary.total_members == 0

    async def test_search_too_long(self, services, ranked):
        with pytest.raises(ValidationError):
            await services.leaderboard.rank(LeaderboardScope(search="x" * 101))

    async def test_empty_roster(self, services):
        board = await services.leaderboard.rank()
        assert board.entries == ()
        assert board.summary.average_points == 0


@pytest.mark.integration
@pytest.mark.database
class TestLeaderboardPosition:
    async def test_position_of(self, services, ranked):
        entry = await services.leaderboard.position_of("m-c")
        assert entry.position == 3
        assert entry.full_name == "Charlie Chaplin"

    async def test_position_outside_scope(self, services, ranked):
        with pytest.raises(NotFoundError):
            await services.leaderboard.position_of("m-x")
        with pytest.raises(NotFoundError):
            await services.leaderboard.position_of("m-b", LeaderboardScope(unit_id="unit-a"))
