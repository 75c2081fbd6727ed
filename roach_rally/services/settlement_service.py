"""
Servicio de Settlement - Cierra una carrera y reparte los puntos

Todo corre en una sola transacción:
1. Marca la carrera SETTLED con su ganador
2. Separa los votos correctos de los incorrectos
3. Suma points_per_correct a cada votante que acertó (un solo update)
4. Para cada votante: actualiza contadores, accuracy_pct y streak

Si algo falla no queda nada a medias, y reintentar es seguro: un segundo
settle sobre la misma carrera se rechaza sin tocar puntos.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from roach_rally.database import start_transaction
from roach_rally.models.common import Roach
from roach_rally.models.race import RaceStatus, SettlementResult
from roach_rally.repositories.config_repository import ConfigRepository
from roach_rally.repositories.race_repository import RaceRepository
from roach_rally.repositories.user_repository import UserRepository
from roach_rally.repositories.vote_repository import VoteRepository

logger = logging.getLogger(__name__)


class SettlementServiceError(Exception):
    """Base exception for settlement errors."""
    pass


class RaceNotFoundError(SettlementServiceError):
    pass


class RaceAlreadySettledError(SettlementServiceError):
    pass


class SettlementService:
    """
    Settle de carreras.

    Sistema de puntos:
    - points_per_correct (config, default 1) por acertar el ganador
    - 0 por fallar, y la racha vuelve a 0

    accuracy_pct = votos acertados / votos totales * 100, con contadores
    por usuario que se actualizan en cada settle.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.race_repo = RaceRepository(db)
        self.vote_repo = VoteRepository(db)
        self.user_repo = UserRepository(db)
        self.config_repo = ConfigRepository(db)

    async def settle_race(
        self,
        race_id: str,
        winner: Roach,
        now: Optional[datetime] = None
    ) -> SettlementResult:
        """
        Registrar el ganador de una carrera y repartir puntos.

        Returns:
            SettlementResult con la carrera y los números del reparto,
            calculados con los votos leídos dentro de la transacción
        """
        now = now or datetime.now(timezone.utc)
        winner = Roach(winner)

        async with start_transaction(self.db) as session:
            race = await self.race_repo.get_by_id(race_id, session=session)
            if race is None:
                raise RaceNotFoundError(f"Race {race_id} not found")
            if race.status == RaceStatus.SETTLED:
                raise RaceAlreadySettledError(f"Race {race_id} already settled")

            # Condicional: si otro settle se adelantó, no repartimos dos veces
            settled = await self.race_repo.mark_settled(race_id, winner, now, session=session)
            if settled is None:
                raise RaceAlreadySettledError(f"Race {race_id} already settled")

            config = await self.config_repo.get(session=session)

            votes = await self.vote_repo.get_for_race(race_id, session=session)
            correct_user_ids = [v.user_id for v in votes if v.pick == winner]

            await self.user_repo.award_points(
                correct_user_ids,
                config.points_per_correct,
                session=session
            )

            # Cada votante se actualiza por separado: el orden no importa
            for vote in votes:
                await self.user_repo.record_settled_vote(
                    vote.user_id,
                    is_correct=vote.pick == winner,
                    track_streak=config.enable_streaks,
                    session=session
                )

        result = SettlementResult(
            race=settled,
            correct_votes=len(correct_user_ids),
            total_votes=len(votes),
            points_awarded=len(correct_user_ids) * config.points_per_correct,
        )

        logger.info(
            f"🏆 Carrera #{settled.unique_idx} settled con {winner.value}: "
            f"{result.correct_votes}/{result.total_votes} aciertos, "
            f"{result.points_awarded} puntos repartidos"
        )
        return result

    async def recalculate_user_stats(self, user_id: str) -> dict:
        """
        Recalcular desde cero votes_total, votes_correct y accuracy_pct de
        un usuario a partir de todos sus votos.

        Solo cuentan los votos de carreras SETTLED, igual que los contadores
        que suma el settle: el voto de la carrera activa entra cuando se resuelve.
        """
        votes = await self.vote_repo.get_for_user(user_id)
        winners = await self.race_repo.get_settled_winners(
            list({v.race_id for v in votes})
        )

        settled_votes = [v for v in votes if v.race_id in winners]
        votes_total = len(settled_votes)
        votes_correct = sum(1 for v in settled_votes if winners[v.race_id] == v.pick)

        await self.user_repo.set_vote_stats(user_id, votes_total, votes_correct)

        return {
            "user_id": user_id,
            "votes_total": votes_total,
            "votes_correct": votes_correct,
        }

    async def recalculate_all_user_stats(self) -> int:
        """Recalcular stats de todos los usuarios. Retorna cuántos procesó."""
        user_ids = await self.user_repo.get_all_ids()
        for user_id in user_ids:
            await self.recalculate_user_stats(user_id)
        return len(user_ids)
