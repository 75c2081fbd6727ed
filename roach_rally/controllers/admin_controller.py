"""
Controlador de Admin - Endpoints exclusivos para administradores
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from roach_rally.core.dependencies import CurrentAdmin, Database
from roach_rally.core.responses import ApiResponse
from roach_rally.core.security import is_admin_wallet
from roach_rally.models.race import RaceResponse, SettleRequest
from roach_rally.models.schedule import ScheduleCreate, ScheduleResponse
from roach_rally.repositories.vote_repository import VoteRepository
from roach_rally.services.race_service import RaceService, InvalidScheduleError
from roach_rally.services.settlement_service import (
    SettlementService,
    RaceNotFoundError,
    RaceAlreadySettledError,
)


router = APIRouter(prefix="/admin", tags=["admin"])


# ============================================
# REQUEST / RESPONSE SCHEMAS
# ============================================

class AdminCheckRequest(BaseModel):
    wallet_address: str = Field(..., min_length=1)


class AdminCheckResponse(BaseModel):
    is_admin: bool


class SettleResponse(BaseModel):
    race: RaceResponse
    correct_votes: int
    total_votes: int
    points_awarded: int


class ScheduleEnvelope(BaseModel):
    """Respuesta de /admin/schedule"""
    next_schedule: Optional[ScheduleResponse] = None


class MessageResponse(BaseModel):
    message: str


class RecalculateResponse(BaseModel):
    message: str
    users_processed: int


class AdminRaceResponse(RaceResponse):
    total_votes: int


# ============================================
# SETTLEMENT
# ============================================

@router.post("/settle", response_model=ApiResponse[SettleResponse])
async def settle_race(
    request: SettleRequest,
    admin: CurrentAdmin,
    db: Database
):
    """
    Registrar el ganador de una carrera y repartir puntos.
    Solo administradores.

    Esto, en una sola transacción:
    1. Marca la carrera como SETTLED con su ganador
    2. Suma puntos a los que acertaron
    3. Actualiza accuracy y streak de todos los votantes
    """
    settlement_service = SettlementService(db)

    try:
        result = await settlement_service.settle_race(request.race_id, request.winner)
    except RaceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RaceAlreadySettledError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return ApiResponse(data=SettleResponse(
        race=RaceResponse.from_race(result.race),
        correct_votes=result.correct_votes,
        total_votes=result.total_votes,
        points_awarded=result.points_awarded,
    ))


# ============================================
# SCHEDULE ENDPOINTS
# ============================================

@router.get("/schedule", response_model=ApiResponse[ScheduleEnvelope])
async def get_schedule(admin: CurrentAdmin, db: Database):
    """Próxima carrera programada (si hay)."""
    schedule = await RaceService(db).get_next_schedule()

    return ApiResponse(data=ScheduleEnvelope(
        next_schedule=ScheduleResponse.from_schedule(schedule) if schedule else None
    ))


@router.post("/schedule", response_model=ApiResponse[ScheduleEnvelope])
async def create_schedule(
    request: ScheduleCreate,
    admin: CurrentAdmin,
    db: Database
):
    """
    Programar la próxima carrera. Reemplaza cualquier schedule activo.
    Solo administradores.
    """
    try:
        schedule = await RaceService(db).create_schedule(
            scheduled_at=request.scheduled_at,
            duration=request.duration,
            created_by=admin.wallet_address
        )
    except InvalidScheduleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ApiResponse(data=ScheduleEnvelope(
        next_schedule=ScheduleResponse.from_schedule(schedule)
    ))


@router.delete("/schedule", response_model=ApiResponse[MessageResponse])
async def cancel_schedule(admin: CurrentAdmin, db: Database):
    """Desactivar todos los schedules."""
    await RaceService(db).cancel_schedules()
    return ApiResponse(data=MessageResponse(message="All schedules deactivated"))


# ============================================
# ADMIN CHECK
# ============================================

@router.post("/check", response_model=ApiResponse[AdminCheckResponse])
async def check_admin(request: AdminCheckRequest):
    """El frontend lo usa para mostrar o esconder el panel de admin."""
    return ApiResponse(data=AdminCheckResponse(is_admin=is_admin_wallet(request.wallet_address)))


# ============================================
# STATS RECALCULATION ENDPOINT
# ============================================

@router.post("/recalculate-all-stats", response_model=ApiResponse[RecalculateResponse])
async def recalculate_all_user_stats(
    admin: CurrentAdmin,
    db: Database
):
    """
    Recalcular votes_total, votes_correct y accuracy de TODOS los usuarios
    desde sus votos.
    Útil para migración inicial o cuando se detectan inconsistencias.

    ADVERTENCIA: Este endpoint puede tardar en ejecutarse si hay muchos usuarios.
    Solo administradores.
    """
    users_processed = await SettlementService(db).recalculate_all_user_stats()

    return ApiResponse(data=RecalculateResponse(
        message=f"Estadísticas recalculadas para {users_processed} usuarios",
        users_processed=users_processed,
    ))


# ============================================
# RACES
# ============================================

@router.get("/races", response_model=ApiResponse[list[AdminRaceResponse]])
async def list_races(
    admin: CurrentAdmin,
    db: Database,
    limit: int = Query(20, ge=1, le=100)
):
    """Últimas carreras con su cantidad de votos."""
    races = await RaceService(db).get_recent_races(limit)
    vote_repo = VoteRepository(db)

    entries = []
    for race in races:
        entries.append(AdminRaceResponse(
            **RaceResponse.from_race(race).model_dump(),
            total_votes=await vote_repo.count_for_race(race.id),
        ))

    return ApiResponse(data=entries)
