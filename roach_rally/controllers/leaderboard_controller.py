"""
Controlador de leaderboards - Ranking global de usuarios
"""

from fastapi import APIRouter, Query

from roach_rally.core.dependencies import Database
from roach_rally.core.responses import ApiResponse
from roach_rally.models.leaderboard import LeaderboardEntry
from roach_rally.services.leaderboard_service import LeaderboardService


router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=ApiResponse[list[LeaderboardEntry]])
async def get_leaderboard(
    db: Database,
    limit: int = Query(100, ge=1, le=500)
):
    """
    Obtener el leaderboard global.

    Orden: puntos, accuracy y antigüedad.
    """
    leaderboard_service = LeaderboardService(db)
    entries = await leaderboard_service.get_leaderboard(limit)

    return ApiResponse(data=entries)
