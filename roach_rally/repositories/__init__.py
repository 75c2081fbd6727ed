from .race_repository import RaceRepository
from .schedule_repository import ScheduleRepository
from .vote_repository import VoteRepository
from .user_repository import UserRepository
from .referral_repository import ReferralRepository
from .config_repository import ConfigRepository
from .nonce_repository import NonceRepository

__all__ = [
    "RaceRepository",
    "ScheduleRepository",
    "VoteRepository",
    "UserRepository",
    "ReferralRepository",
    "ConfigRepository",
    "NonceRepository",
]
