from typing import Optional
from pydantic import BaseModel, Field

from .common import UTCDateTime


class User(BaseModel):
    id: str = Field(..., alias="_id")
    wallet_address: str

    points: int = 0
    accuracy_pct: float = 0.0
    streak: int = 0

    # Contadores que mantiene el settle para calcular accuracy
    votes_total: int = 0
    votes_correct: int = 0

    referral_code: Optional[str] = None
    referral_count: int = 0
    referral_points: int = 0

    created_at: UTCDateTime
    last_login_at: Optional[UTCDateTime] = None

    is_active: bool = True

    class Config:
        populate_by_name = True


class UserResponse(BaseModel):
    id: str
    wallet_address: str
    points: int
    accuracy_pct: float
    streak: int
    rank: Optional[int] = None
    referral_code: Optional[str] = None
    referral_count: int
    referral_points: int
    created_at: UTCDateTime
    is_admin: bool = False
