from typing import Optional
from pydantic import BaseModel, Field

from .common import Roach, UTCDateTime


class Vote(BaseModel):
    """Voto de un usuario para una carrera (uno por par race/user)"""

    id: str = Field(..., alias="_id")  # race_id:user_id

    race_id: str
    user_id: str

    pick: Roach
    sig: str  # firma de la transacción de pago

    created_at: UTCDateTime
    updated_at: Optional[UTCDateTime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True

    @staticmethod
    def make_id(race_id: str, user_id: str) -> str:
        return f"{race_id}:{user_id}"


class VoteCreate(BaseModel):
    race_id: str = Field(..., min_length=1)
    pick: Roach
    transaction_signature: str = Field(..., min_length=1)


class VoteResponse(BaseModel):
    id: str
    race_id: str
    pick: Roach
    created_at: UTCDateTime
