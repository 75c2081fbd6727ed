"""
ReferralService - Atribución de referidos y puntos por referir.

Puntos por referidos (por tramos):
- Hasta 100 referidos: 1 punto cada 3
- Después de 100: 2 puntos cada 3

El premio de cada referido nuevo es la diferencia del total entre el
conteo viejo y el nuevo, así cruzar el límite de 100 nunca cuenta doble.
"""

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from roach_rally.core.config import get_settings
from roach_rally.database import start_transaction
from roach_rally.models.leaderboard import ReferralLeaderboardEntry
from roach_rally.models.referral import Referral, ReferralResult
from roach_rally.models.user import User
from roach_rally.repositories.referral_repository import ReferralRepository
from roach_rally.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

FIRST_TIER_LIMIT = 100
REFERRALS_PER_REWARD = 3
FIRST_TIER_POINTS = 1
SECOND_TIER_POINTS = 2

CODE_PREFIX_LENGTH = 8
CODE_SUFFIX_LENGTH = 4
CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 5


def referral_points_total(count: int) -> int:
    """Puntos acumulados por tener `count` referidos"""
    first_tier = min(count, FIRST_TIER_LIMIT) // REFERRALS_PER_REWARD * FIRST_TIER_POINTS
    second_tier = max(count - FIRST_TIER_LIMIT, 0) // REFERRALS_PER_REWARD * SECOND_TIER_POINTS
    return first_tier + second_tier


def referral_reward(old_count: int, new_count: int) -> int:
    """
    Puntos que gana el referidor al pasar de old_count a new_count.

    2 -> 3 = 1, 99 -> 100 = 0, 100 -> 101 = 0, 102 -> 103 = 2
    """
    return referral_points_total(new_count) - referral_points_total(old_count)


def generate_referral_code(wallet_address: str) -> str:
    """Primeros 8 caracteres de la wallet en mayúsculas + 4 al azar"""
    prefix = wallet_address[:CODE_PREFIX_LENGTH].upper()
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_SUFFIX_LENGTH))
    return f"{prefix}{suffix}"


class ReferralServiceError(Exception):
    """Base exception for referral errors."""
    pass


class InvalidReferralCodeError(ReferralServiceError):
    pass


class SelfReferralError(ReferralServiceError):
    pass


class ReferralAlreadyTrackedError(ReferralServiceError):
    pass


class ReferralService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.user_repo = UserRepository(db)
        self.referral_repo = ReferralRepository(db)

    async def track(
        self,
        referral_code: str,
        referee_wallet: str,
        now: Optional[datetime] = None
    ) -> ReferralResult:
        """
        Registrar que `referee_wallet` llegó con el código `referral_code`.

        Rechaza código desconocido, auto-referido y par ya registrado.
        """
        now = now or datetime.now(timezone.utc)

        referrer = await self.user_repo.get_by_referral_code(referral_code)
        if referrer is None:
            raise InvalidReferralCodeError("Invalid referral code")

        if referrer.wallet_address == referee_wallet:
            raise SelfReferralError("Cannot refer yourself")

        if await self.referral_repo.exists(referral_code, referee_wallet):
            raise ReferralAlreadyTrackedError("Referral already tracked for this wallet")

        try:
            async with start_transaction(self.db) as session:
                # El insert va primero: el _id compuesto frena los duplicados
                # antes de tocar los contadores del referidor
                referral = Referral(
                    _id=Referral.make_id(referral_code, referee_wallet),
                    referrer_code=referral_code,
                    referee_wallet=referee_wallet,
                    points_awarded=0,
                    created_at=now,
                )
                await self.referral_repo.create(referral, session=session)

                updated = await self.user_repo.increment_referral_count(referrer.id, session=session)
                new_count = updated.referral_count
                points = referral_reward(new_count - 1, new_count)

                await self.user_repo.add_referral_points(referrer.id, points, session=session)
                await self.referral_repo.set_points_awarded(referral.id, points, session=session)
        except DuplicateKeyError:
            raise ReferralAlreadyTrackedError("Referral already tracked for this wallet")

        logger.info(
            f"🤝 Referido {referee_wallet} para {referral_code}: "
            f"{new_count} referidos, +{points} puntos"
        )

        return ReferralResult(
            points_awarded=points,
            new_referral_count=new_count,
            total_referral_points=updated.referral_points + points,
        )

    async def get_or_create_code(self, user: User) -> str:
        """Código del usuario. Se genera una sola vez y no cambia."""
        if user.referral_code:
            return user.referral_code

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_referral_code(user.wallet_address)
            try:
                updated = await self.user_repo.set_referral_code(user.id, code)
            except DuplicateKeyError:
                # Otro usuario ya tiene ese código, pruebo otro sufijo
                continue

            if updated is not None:
                return updated.referral_code

            # Un request concurrente ya le asignó uno
            current = await self.user_repo.get_by_id(user.id)
            if current and current.referral_code:
                return current.referral_code

        raise ReferralServiceError("Could not generate a unique referral code")

    @staticmethod
    def build_referral_link(code: str) -> str:
        return f"{get_settings().app_url}?ref={code}"

    async def get_leaderboard(self, limit: int = 50) -> list[ReferralLeaderboardEntry]:
        users = await self.user_repo.get_referral_leaderboard(limit)
        return [
            ReferralLeaderboardEntry(
                rank=idx + 1,
                wallet_address=user.wallet_address,
                referral_count=user.referral_count,
                referral_points=user.referral_points,
                joined_at=user.created_at,
            )
            for idx, user in enumerate(users)
        ]
