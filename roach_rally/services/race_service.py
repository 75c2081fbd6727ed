"""
RaceService - Ciclo de vida de las carreras y scheduler.

Estados: OPEN -> LOCKED -> SETTLED

- OPEN -> LOCKED lo hace el scheduler cuando now >= end_at
- -> SETTLED lo hace solo el admin (SettlementService)

El tick del scheduler (`roll`) es idempotente: todas las escrituras están
condicionadas al estado, así que se puede llamar varias veces seguidas o en
paralelo sin duplicar carreras.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError, OperationFailure

from roach_rally.core.config import Settings, get_settings
from roach_rally.database import Database, start_transaction
from roach_rally.models.race import Race, RaceStatus
from roach_rally.models.schedule import (
    RaceSchedule,
    MIN_DURATION_SECONDS,
    MAX_DURATION_SECONDS,
)
from roach_rally.models.vote import Vote
from roach_rally.repositories.config_repository import ConfigRepository
from roach_rally.repositories.race_repository import RaceRepository
from roach_rally.repositories.schedule_repository import ScheduleRepository
from roach_rally.repositories.vote_repository import VoteRepository

logger = logging.getLogger(__name__)


class RaceServiceError(Exception):
    pass


class InvalidScheduleError(RaceServiceError):
    pass


class RollAction(str, Enum):
    LOCKED = "locked"
    NO_CHANGE = "no_change"
    CREATED_FROM_SCHEDULE = "created_from_schedule"
    CREATED = "created"


class RollResult(BaseModel):
    action: RollAction
    race: Optional[Race] = None
    message: str


class CurrentRace(BaseModel):
    race: Optional[Race] = None
    user_vote: Optional[Vote] = None
    next_schedule: Optional[RaceSchedule] = None


class RaceService:
    def __init__(self, db: AsyncIOMotorDatabase, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.race_repo = RaceRepository(db)
        self.schedule_repo = ScheduleRepository(db)
        self.config_repo = ConfigRepository(db)
        self.vote_repo = VoteRepository(db)

    async def get_current(self, user_id: Optional[str] = None) -> CurrentRace:
        """
        Carrera activa + el voto del usuario.

        Si no hay carrera activa, retorna el próximo schedule.
        """
        race = await self.race_repo.get_active()

        if race is None:
            return CurrentRace(next_schedule=await self.schedule_repo.get_next_active())

        user_vote = None
        if user_id:
            user_vote = await self.vote_repo.get_user_vote(race.id, user_id)

        return CurrentRace(race=race, user_vote=user_vote)

    async def get_recent_races(self, limit: int = 20) -> list[Race]:
        return await self.race_repo.get_recent(limit)

    # ============================================
    # ⏱️ SCHEDULER TICK
    # ============================================

    async def roll(self, now: Optional[datetime] = None) -> RollResult:
        """
        Un tick del scheduler.

        1. Hay carrera activa: si está OPEN y ya pasó end_at -> LOCKED
        2. No hay: crea una desde el schedule vencido más antiguo
        3. Tampoco hay schedule: crea una carrera por defecto
        """
        now = now or datetime.now(timezone.utc)

        # La config se lee ANTES que la carrera activa: si otro tick crea una
        # carrera en el medio, o la vemos como activa o chocamos por _id.
        config = await self.config_repo.get()
        active = await self.race_repo.get_active()

        if active is not None:
            if active.status == RaceStatus.OPEN and now >= active.end_at:
                if await self.race_repo.lock(active.id):
                    logger.info(f"🔒 Carrera #{active.unique_idx} bloqueada, votación cerrada")
                    return RollResult(
                        action=RollAction.LOCKED,
                        race=active.model_copy(update={"status": RaceStatus.LOCKED.value}),
                        message="Voting closed - race is now live",
                    )

            return RollResult(
                action=RollAction.NO_CHANGE,
                race=active,
                message="Active race exists",
            )

        schedule = await self.schedule_repo.get_due(now)
        if schedule is not None:
            start_at = schedule.scheduled_at
            end_at = start_at + timedelta(seconds=schedule.duration)
            race = await self._create_race(config.last_race_number + 1, start_at, end_at, now, schedule)
            if race is None:
                return RollResult(action=RollAction.NO_CHANGE, message="Race already created")

            logger.info(f"🏁 Carrera #{race.unique_idx} creada desde schedule {schedule.id}")
            return RollResult(
                action=RollAction.CREATED_FROM_SCHEDULE,
                race=race,
                message="New race created from schedule - voting is now open",
            )

        if not self.settings.auto_create_default_race:
            return RollResult(action=RollAction.NO_CHANGE, message="No race scheduled")

        end_at = now + timedelta(seconds=self.settings.default_race_duration_seconds)
        race = await self._create_race(config.last_race_number + 1, now, end_at, now)
        if race is None:
            return RollResult(action=RollAction.NO_CHANGE, message="Race already created")

        logger.info(f"🏁 Carrera #{race.unique_idx} creada por defecto")
        return RollResult(action=RollAction.CREATED, race=race, message="New race created")

    async def _create_race(
        self,
        race_number: int,
        start_at: datetime,
        end_at: datetime,
        now: datetime,
        schedule: Optional[RaceSchedule] = None
    ) -> Optional[Race]:
        """
        Crea la carrera race_{race_number}, consume el schedule y avanza
        last_race_number, todo en una transacción.

        Retorna None si otro tick ya la creó.
        """
        race = Race(
            _id=RaceRepository.make_id(race_number),
            unique_idx=race_number,
            start_at=start_at,
            end_at=end_at,
            status=RaceStatus.OPEN,
            created_at=now,
        )

        try:
            async with start_transaction(self.db) as session:
                await self.race_repo.create(race, session=session)
                if schedule is not None:
                    await self.schedule_repo.deactivate(schedule.id, session=session)
                await self.config_repo.advance_race_number(race_number, session=session)
        except DuplicateKeyError:
            logger.info(f"Carrera #{race_number} ya existe, tick concurrente")
            return None
        except OperationFailure as e:
            if e.has_error_label("TransientTransactionError"):
                logger.info(f"Conflicto creando carrera #{race_number}, tick concurrente")
                return None
            raise

        return race

    # ============================================
    # 🗓️ SCHEDULES
    # ============================================

    async def create_schedule(
        self,
        scheduled_at: datetime,
        duration: int,
        created_by: str,
        now: Optional[datetime] = None
    ) -> RaceSchedule:
        """
        Programa la próxima carrera.

        Solo puede haber un schedule activo: desactiva los anteriores.
        """
        if not MIN_DURATION_SECONDS <= duration <= MAX_DURATION_SECONDS:
            raise InvalidScheduleError(
                f"Duration must be between {MIN_DURATION_SECONDS} and {MAX_DURATION_SECONDS} seconds"
            )

        now = now or datetime.now(timezone.utc)
        schedule = RaceSchedule(
            _id=uuid4().hex,
            scheduled_at=scheduled_at,
            duration=duration,
            is_active=True,
            created_by=created_by,
            created_at=now,
        )

        async with start_transaction(self.db) as session:
            await self.schedule_repo.deactivate_all(session=session)
            await self.schedule_repo.create(schedule, session=session)

        logger.info(f"🗓️ Carrera programada para {scheduled_at.isoformat()} por {created_by}")
        return schedule

    async def get_next_schedule(self) -> Optional[RaceSchedule]:
        return await self.schedule_repo.get_next_active()

    async def cancel_schedules(self) -> int:
        return await self.schedule_repo.deactivate_all()


async def run_scheduler(interval_seconds: float):
    """
    Loop de scheduler dentro del proceso (cuando no hay cron externo).

    Un error en un tick se loguea y el loop sigue.
    """
    logger.info(f"⏱️ Scheduler interno cada {interval_seconds}s")
    while True:
        try:
            result = await RaceService(Database.get_db()).roll()
            if result.action != RollAction.NO_CHANGE:
                logger.info(f"[ROLL] {result.action.value}: {result.message}")
        except Exception:
            logger.exception("[ROLL] tick error")
        await asyncio.sleep(interval_seconds)
