from ascendant.modules.leaderboard.service import SORT_COLUMNS, LeaderboardService

__all__ = ["SORT_COLUMNS", "LeaderboardService"]
