"""
LeaderboardService - Ranking de usuarios y perfil con estadísticas.

Usa los campos pre-calculados del User (points, accuracy_pct, streak) que
actualiza el settle; solo el conteo de votos se agrega en el momento.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from roach_rally.models.common import Roach, UTCDateTime
from roach_rally.models.leaderboard import LeaderboardEntry
from roach_rally.models.race import RaceStatus
from roach_rally.models.user import User
from roach_rally.repositories.race_repository import RaceRepository
from roach_rally.repositories.user_repository import UserRepository, accuracy_pct
from roach_rally.repositories.vote_repository import VoteRepository

RECENT_VOTES_LIMIT = 20


class RecentVote(BaseModel):
    id: str
    pick: Roach
    race_number: Optional[int] = None
    race_status: Optional[RaceStatus] = None
    winner: Optional[Roach] = None
    is_correct: bool
    created_at: UTCDateTime


class VoteStats(BaseModel):
    total_votes: int
    correct_votes: int
    accuracy_pct: float


class UserProfile(BaseModel):
    user: User
    rank: int
    stats: VoteStats
    recent_votes: list[RecentVote]


class LeaderboardService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.user_repo = UserRepository(db)
        self.vote_repo = VoteRepository(db)
        self.race_repo = RaceRepository(db)

    async def get_leaderboard(self, limit: int = 100) -> list[LeaderboardEntry]:
        """
        Ranking global.

        Orden: points desc, accuracy_pct desc, created_at asc (el más antiguo
        gana el empate).
        """
        users = await self.user_repo.get_leaderboard(limit)
        vote_counts = await self.vote_repo.count_by_users([u.id for u in users])

        return [
            LeaderboardEntry(
                rank=idx + 1,
                wallet_address=user.wallet_address,
                points=user.points,
                accuracy_pct=user.accuracy_pct,
                streak=user.streak,
                total_votes=vote_counts.get(user.id, 0),
                joined_at=user.created_at,
            )
            for idx, user in enumerate(users)
        ]

    async def get_user_rank(self, user: User) -> int:
        """1 + cantidad de usuarios con más puntos"""
        return await self.user_repo.count_with_more_points(user.points) + 1

    async def get_profile(self, user: User) -> UserProfile:
        """Perfil del usuario con ranking y sus últimos votos"""
        votes = await self.vote_repo.get_recent_for_user(user.id, RECENT_VOTES_LIMIT)
        races = await self.race_repo.get_by_ids(list({v.race_id for v in votes}))

        recent_votes = []
        for vote in votes:
            race = races.get(vote.race_id)
            is_correct = (
                race is not None
                and race.status == RaceStatus.SETTLED
                and race.winner == vote.pick
            )
            recent_votes.append(RecentVote(
                id=vote.id,
                pick=vote.pick,
                race_number=race.unique_idx if race else None,
                race_status=race.status if race else None,
                winner=race.winner if race else None,
                is_correct=is_correct,
                created_at=vote.created_at,
            ))

        # Stats sobre los últimos votos, igual que la tarjeta del perfil
        correct_votes = sum(1 for v in recent_votes if v.is_correct)

        return UserProfile(
            user=user,
            rank=await self.get_user_rank(user),
            stats=VoteStats(
                total_votes=len(recent_votes),
                correct_votes=correct_votes,
                accuracy_pct=accuracy_pct(correct_votes, len(recent_votes)),
            ),
            recent_votes=recent_votes,
        )
