from merit.modules.leaderboard.service import LeaderboardService, round_half_up

__all__ = ["LeaderboardService", "round_half_up"]
