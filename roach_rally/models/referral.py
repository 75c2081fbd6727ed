from pydantic import BaseModel, Field

from .common import UTCDateTime


class Referral(BaseModel):
    """Atribución de un referido (inmutable)"""

    id: str = Field(..., alias="_id")  # referrer_code:referee_wallet

    referrer_code: str
    referee_wallet: str
    points_awarded: int

    created_at: UTCDateTime

    class Config:
        populate_by_name = True

    @staticmethod
    def make_id(referrer_code: str, referee_wallet: str) -> str:
        return f"{referrer_code}:{referee_wallet}"


class ReferralTrackRequest(BaseModel):
    referral_code: str = Field(..., min_length=1)
    referee_wallet: str = Field(..., min_length=1)


class ReferralResult(BaseModel):
    points_awarded: int
    new_referral_count: int
    total_referral_points: int
