from pydantic import BaseModel, Field

from .common import UTCDateTime

MIN_DURATION_SECONDS = 60
MAX_DURATION_SECONDS = 3600
DEFAULT_DURATION_SECONDS = 600


class RaceSchedule(BaseModel):
    """Carrera programada que el scheduler convierte en Race"""

    id: str = Field(..., alias="_id")

    scheduled_at: UTCDateTime
    duration: int  # segundos de ventana de votación

    is_active: bool = True
    created_by: str  # wallet del admin

    created_at: UTCDateTime

    class Config:
        populate_by_name = True


class ScheduleCreate(BaseModel):
    scheduled_at: UTCDateTime
    duration: int = Field(
        DEFAULT_DURATION_SECONDS,
        ge=MIN_DURATION_SECONDS,
        le=MAX_DURATION_SECONDS,
    )


class ScheduleResponse(BaseModel):
    id: str
    scheduled_at: UTCDateTime
    duration: int
    is_active: bool

    @classmethod
    def from_schedule(cls, schedule: RaceSchedule) -> "ScheduleResponse":
        return cls(
            id=schedule.id,
            scheduled_at=schedule.scheduled_at,
            duration=schedule.duration,
            is_active=schedule.is_active,
        )
