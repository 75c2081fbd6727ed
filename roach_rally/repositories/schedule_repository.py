"""
🗓️ ScheduleRepository - Carreras programadas por el admin
"""

from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from roach_rally.database import session_kwargs
from roach_rally.models.schedule import RaceSchedule


class ScheduleRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["race_schedules"]

    async def create(
        self,
        schedule: RaceSchedule,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> RaceSchedule:
        await self.collection.insert_one(
            schedule.model_dump(by_alias=True),
            **session_kwargs(session)
        )
        return schedule

    async def get_next_active(
        self,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[RaceSchedule]:
        """El schedule activo más próximo (haya vencido o no)"""
        doc = await self.collection.find_one(
            {"is_active": True},
            sort=[("scheduled_at", 1)],
            **session_kwargs(session)
        )
        return RaceSchedule(**doc) if doc else None

    async def get_due(
        self,
        now: datetime,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[RaceSchedule]:
        """El schedule activo más antiguo con scheduled_at <= now"""
        doc = await self.collection.find_one(
            {"is_active": True, "scheduled_at": {"$lte": now}},
            sort=[("scheduled_at", 1)],
            **session_kwargs(session)
        )
        return RaceSchedule(**doc) if doc else None

    async def deactivate(
        self,
        schedule_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        result = await self.collection.update_one(
            {"_id": schedule_id, "is_active": True},
            {"$set": {"is_active": False}},
            **session_kwargs(session)
        )
        return result.modified_count > 0

    async def deactivate_all(
        self,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> int:
        result = await self.collection.update_many(
            {"is_active": True},
            {"$set": {"is_active": False}},
            **session_kwargs(session)
        )
        return result.modified_count
