"""
Controlador de carreras - Carrera actual, votos y tick del scheduler
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from roach_rally.core.config import get_settings
from roach_rally.core.dependencies import (
    CronAuth,
    CurrentUser,
    Database,
    OptionalUser,
    PaymentVerifierDep,
)
from roach_rally.core.responses import ApiResponse
from roach_rally.models.common import Roach, UTCDateTime
from roach_rally.models.race import RaceResponse
from roach_rally.models.schedule import ScheduleResponse
from roach_rally.models.vote import VoteCreate, VoteResponse
from roach_rally.services.race_service import RaceService, RollAction
from roach_rally.services.vote_service import (
    VoteService,
    RaceNotFoundError,
    RaceNotOpenError,
    VotingClosedError,
    PaymentRejectedError,
    PaymentUnavailableError,
)

router = APIRouter(tags=["race"])


class UserVoteResponse(BaseModel):
    pick: Roach
    created_at: UTCDateTime


class CurrentRaceResponse(BaseModel):
    race: Optional[RaceResponse] = None
    user_vote: Optional[UserVoteResponse] = None
    next_schedule: Optional[ScheduleResponse] = None
    voting_fee_sol: float


class VoteResult(BaseModel):
    vote: VoteResponse
    message: str


class RollResponse(BaseModel):
    action: RollAction
    race: Optional[RaceResponse] = None
    message: str


@router.get("/race/current", response_model=ApiResponse[CurrentRaceResponse])
async def get_current_race(db: Database, user: OptionalUser):
    """
    Carrera OPEN o LOCKED y el voto del usuario (si mandó token).

    Si no hay carrera activa devuelve el próximo schedule.
    """
    current = await RaceService(db).get_current(user.id if user else None)

    return ApiResponse(data=CurrentRaceResponse(
        race=RaceResponse.from_race(current.race) if current.race else None,
        user_vote=UserVoteResponse(
            pick=current.user_vote.pick,
            created_at=current.user_vote.created_at
        ) if current.user_vote else None,
        next_schedule=(
            ScheduleResponse.from_schedule(current.next_schedule)
            if current.next_schedule else None
        ),
        voting_fee_sol=get_settings().voting_fee_sol,
    ))


@router.post("/race/vote", response_model=ApiResponse[VoteResult])
async def cast_vote(
    request: VoteCreate,
    user: CurrentUser,
    db: Database,
    payment_verifier: PaymentVerifierDep
):
    """
    Votar (o cambiar el voto) en una carrera OPEN.

    Cada voto necesita la firma de una transacción que pague el fee.
    """
    vote_service = VoteService(db, payment_verifier)

    try:
        vote = await vote_service.cast_vote(
            race_id=request.race_id,
            user_id=user.id,
            wallet_address=user.wallet_address,
            pick=request.pick,
            transaction_signature=request.transaction_signature
        )
    except RaceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (RaceNotOpenError, VotingClosedError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PaymentUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except PaymentRejectedError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment verification failed: {e}"
        )

    return ApiResponse(data=VoteResult(
        vote=VoteResponse(
            id=vote.id,
            race_id=vote.race_id,
            pick=vote.pick,
            created_at=vote.created_at
        ),
        message="Vote recorded successfully",
    ))


@router.post("/races/roll", response_model=ApiResponse[RollResponse], dependencies=[CronAuth])
async def roll_races(db: Database):
    """
    Tick del scheduler. Lo llama un cron con `Authorization: Bearer <CRON_SECRET>`.

    Se puede llamar de más: si no cambió nada responde no_change.
    """
    result = await RaceService(db).roll()

    return ApiResponse(data=RollResponse(
        action=result.action,
        race=RaceResponse.from_race(result.race) if result.race else None,
        message=result.message,
    ))
