"""
VoteService - Business logic for votes.

Validates race state and payment, then upserts the vote.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from roach_rally.database import start_transaction
from roach_rally.models.common import Roach
from roach_rally.models.race import Race, RaceStatus
from roach_rally.models.vote import Vote
from roach_rally.repositories.race_repository import RaceRepository
from roach_rally.repositories.vote_repository import VoteRepository
from roach_rally.services.payment_service import PaymentVerifier, PaymentVerification

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoteServiceError(Exception):
    """Base exception for vote service errors."""
    pass


class RaceNotFoundError(VoteServiceError):
    """Raised when the race does not exist."""
    pass


class RaceNotOpenError(VoteServiceError):
    """Raised when the race is LOCKED or SETTLED."""
    pass


class VotingClosedError(VoteServiceError):
    """Raised when the voting window (end_at) already passed."""
    pass


class PaymentRejectedError(VoteServiceError):
    """Raised when the payment transaction does not prove the fee was paid."""

    def __init__(self, verification: PaymentVerification):
        super().__init__(verification.message or "Payment verification failed")
        self.verification = verification


class PaymentUnavailableError(PaymentRejectedError):
    """Raised when the ledger could not be queried. Retryable."""
    pass


class VoteService:
    def __init__(self, db: AsyncIOMotorDatabase, payment_verifier: PaymentVerifier):
        self.db = db
        self.race_repo = RaceRepository(db)
        self.vote_repo = VoteRepository(db)
        self.payment_verifier = payment_verifier

    @staticmethod
    def _check_race_accepts_votes(race: Optional[Race], race_id: str, now: datetime) -> Race:
        if race is None:
            raise RaceNotFoundError(f"Race {race_id} not found")

        if race.status != RaceStatus.OPEN:
            raise RaceNotOpenError("Race is not open for voting")

        if now > race.end_at:
            raise VotingClosedError("Voting window has closed")

        return race

    async def cast_vote(
        self,
        race_id: str,
        user_id: str,
        wallet_address: str,
        pick: Roach,
        transaction_signature: str,
        now: Optional[datetime] = None
    ) -> Vote:
        """
        Record (or overwrite) the user's vote for a race.

        Checks, in order:
        - Race exists
        - Race is OPEN
        - Now is at or before end_at
        - Payment transaction is valid

        Every call needs its own payment, even when re-voting.
        """
        fixed_now = now
        now = now or utcnow()

        race = await self.race_repo.get_by_id(race_id)
        self._check_race_accepts_votes(race, race_id, now)

        verification = await self.payment_verifier.verify(wallet_address, transaction_signature)
        if not verification.is_valid:
            logger.info(
                f"💸 Pago rechazado para {wallet_address} en {race_id}: {verification.reason}"
            )
            if verification.retryable:
                raise PaymentUnavailableError(verification)
            raise PaymentRejectedError(verification)

        async with start_transaction(self.db) as session:
            # La verificación del pago tarda: vuelvo a mirar estado y hora
            if fixed_now is None:
                now = utcnow()
            race = await self.race_repo.get_by_id(race_id, session=session)
            self._check_race_accepts_votes(race, race_id, now)

            vote = await self.vote_repo.upsert(
                race_id=race_id,
                user_id=user_id,
                pick=pick,
                sig=transaction_signature,
                now=now,
                session=session
            )

        return vote

    async def get_user_vote(self, race_id: str, user_id: str) -> Optional[Vote]:
        return await self.vote_repo.get_user_vote(race_id, user_id)
