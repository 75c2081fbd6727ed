from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import Roach, UTCDateTime


class RaceStatus(str, Enum):
    OPEN = "OPEN"  # votación abierta
    LOCKED = "LOCKED"  # votación cerrada, carrera en vivo
    SETTLED = "SETTLED"  # ganador registrado y puntos repartidos

    @classmethod
    def active(cls) -> list[str]:
        """Estados en los que una carrera cuenta como activa"""
        return [cls.OPEN.value, cls.LOCKED.value]


class Race(BaseModel):
    """Una ronda de votación + resultado"""

    id: str = Field(..., alias="_id")  # race_{unique_idx}
    unique_idx: int

    start_at: UTCDateTime  # abre la votación
    end_at: UTCDateTime  # cierra la votación

    status: RaceStatus = RaceStatus.OPEN
    winner: Optional[Roach] = None

    created_at: UTCDateTime
    settled_at: Optional[UTCDateTime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True


class RaceResponse(BaseModel):
    id: str
    unique_idx: int
    start_at: UTCDateTime
    end_at: UTCDateTime
    status: RaceStatus
    winner: Optional[Roach] = None

    @classmethod
    def from_race(cls, race: Race) -> "RaceResponse":
        return cls(
            id=race.id,
            unique_idx=race.unique_idx,
            start_at=race.start_at,
            end_at=race.end_at,
            status=race.status,
            winner=race.winner,
        )


class SettleRequest(BaseModel):
    race_id: str = Field(..., min_length=1)
    winner: Roach


class SettlementResult(BaseModel):
    """Resumen de un settle"""

    race: Race
    correct_votes: int
    total_votes: int
    points_awarded: int
