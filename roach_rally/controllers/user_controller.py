"""
Controlador de usuario - Perfil con ranking y últimos votos
"""

from fastapi import APIRouter
from pydantic import BaseModel

from roach_rally.controllers.auth_controller import to_user_response
from roach_rally.core.dependencies import CurrentUser, Database
from roach_rally.core.responses import ApiResponse
from roach_rally.models.user import UserResponse
from roach_rally.services.leaderboard_service import LeaderboardService, RecentVote, VoteStats

router = APIRouter(prefix="/user", tags=["user"])


class ProfileResponse(BaseModel):
    user: UserResponse
    stats: VoteStats
    recent_votes: list[RecentVote]


@router.get("/me", response_model=ApiResponse[ProfileResponse])
async def get_profile(user: CurrentUser, db: Database):
    profile = await LeaderboardService(db).get_profile(user)

    return ApiResponse(data=ProfileResponse(
        user=to_user_response(profile.user, rank=profile.rank),
        stats=profile.stats,
        recent_votes=profile.recent_votes,
    ))
