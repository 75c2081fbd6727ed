from typing import Optional
from pydantic import BaseModel

from .common import UTCDateTime


class LeaderboardEntry(BaseModel):
    """Entrada en la tabla de clasificación"""

    rank: int
    wallet_address: str

    points: int
    accuracy_pct: float
    streak: int

    total_votes: int
    joined_at: Optional[UTCDateTime] = None


class ReferralLeaderboardEntry(BaseModel):
    rank: int
    wallet_address: str
    referral_count: int
    referral_points: int
    joined_at: Optional[UTCDateTime] = None
