from .common import Roach
from .user import User
from .race import Race, RaceStatus
from .schedule import RaceSchedule
from .vote import Vote
from .referral import Referral
from .game_config import GameConfig
from .leaderboard import LeaderboardEntry, ReferralLeaderboardEntry

__all__ = [
    "Roach",
    "User",
    "Race",
    "RaceStatus",
    "RaceSchedule",
    "Vote",
    "Referral",
    "GameConfig",
    "LeaderboardEntry",
    "ReferralLeaderboardEntry",
]
