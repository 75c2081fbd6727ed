"""
Controlador de referidos
"""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from roach_rally.core.dependencies import CurrentUser, Database
from roach_rally.core.responses import ApiResponse
from roach_rally.models.leaderboard import ReferralLeaderboardEntry
from roach_rally.models.referral import ReferralResult, ReferralTrackRequest
from roach_rally.services.referral_service import (
    ReferralService,
    InvalidReferralCodeError,
    SelfReferralError,
    ReferralAlreadyTrackedError,
)

router = APIRouter(prefix="/referral", tags=["referral"])


class ReferralCodeResponse(BaseModel):
    referral_code: str
    referral_link: str


@router.post("/track", response_model=ApiResponse[ReferralResult])
async def track_referral(request: ReferralTrackRequest, db: Database):
    """Registrar un referido y sumarle puntos al referidor."""
    try:
        result = await ReferralService(db).track(request.referral_code, request.referee_wallet)
    except InvalidReferralCodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SelfReferralError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ReferralAlreadyTrackedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return ApiResponse(data=result)


@router.post("/generate", response_model=ApiResponse[ReferralCodeResponse])
async def generate_referral_code(user: CurrentUser, db: Database):
    """Código de referido del usuario (se crea la primera vez)."""
    referral_service = ReferralService(db)
    code = await referral_service.get_or_create_code(user)

    return ApiResponse(data=ReferralCodeResponse(
        referral_code=code,
        referral_link=referral_service.build_referral_link(code)
    ))


@router.get("/leaderboard", response_model=ApiResponse[list[ReferralLeaderboardEntry]])
async def get_referral_leaderboard(
    db: Database,
    limit: int = Query(50, ge=1, le=500)
):
    entries = await ReferralService(db).get_leaderboard(limit)
    return ApiResponse(data=entries)
