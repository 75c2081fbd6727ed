"""
UserRepository - MongoDB access for users collection.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from roach_rally.database import session_kwargs
from roach_rally.models.user import User


def accuracy_pct(correct: int, total: int) -> float:
    """Porcentaje de acierto, 0 si no hay votos"""
    return (correct / total) * 100 if total > 0 else 0.0


class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        doc = await self.collection.find_one({"_id": user_id})
        return User(**doc) if doc else None

    async def get_by_wallet(self, wallet_address: str) -> Optional[User]:
        """Get user by wallet address."""
        doc = await self.collection.find_one({"wallet_address": wallet_address})
        return User(**doc) if doc else None

    async def get_by_referral_code(self, referral_code: str) -> Optional[User]:
        doc = await self.collection.find_one({"referral_code": referral_code})
        return User(**doc) if doc else None

    async def create(self, wallet_address: str) -> User:
        """Create a new user for a wallet."""
        now = datetime.now(timezone.utc)

        user = User(
            _id=uuid4().hex,
            wallet_address=wallet_address,
            created_at=now,
            last_login_at=now,
        )

        await self.collection.insert_one(user.model_dump(by_alias=True))
        return user

    async def update_last_login(self, user_id: str) -> Optional[User]:
        """Update user's last login timestamp."""
        now = datetime.now(timezone.utc)

        result = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {"last_login_at": now}},
            return_document=ReturnDocument.AFTER
        )

        return User(**result) if result else None

    async def set_referral_code(self, user_id: str, referral_code: str) -> Optional[User]:
        """Asigna el código solo si el usuario todavía no tiene uno."""
        result = await self.collection.find_one_and_update(
            {"_id": user_id, "referral_code": None},
            {"$set": {"referral_code": referral_code}},
            return_document=ReturnDocument.AFTER
        )
        return User(**result) if result else None

    async def get_all_ids(self) -> list[str]:
        return await self.collection.distinct("_id")

    # ============================================
    # 📌 SETTLEMENT
    # ============================================

    async def award_points(
        self,
        user_ids: list[str],
        points: int,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> int:
        """Suma puntos a todos los usuarios en un solo update"""
        if not user_ids or points == 0:
            return 0

        result = await self.collection.update_many(
            {"_id": {"$in": user_ids}},
            {"$inc": {"points": points}},
            **session_kwargs(session)
        )
        return result.modified_count

    async def record_settled_vote(
        self,
        user_id: str,
        is_correct: bool,
        track_streak: bool = True,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[User]:
        """
        Cuenta un voto resuelto y recalcula accuracy_pct y streak.

        streak: +1 si acertó, 0 si no (solo con track_streak).
        """
        update: dict = {"$inc": {"votes_total": 1}}
        if is_correct:
            update["$inc"]["votes_correct"] = 1
            if track_streak:
                update["$inc"]["streak"] = 1
        elif track_streak:
            update["$set"] = {"streak": 0}

        doc = await self.collection.find_one_and_update(
            {"_id": user_id},
            update,
            return_document=ReturnDocument.AFTER,
            **session_kwargs(session)
        )
        if not doc:
            return None

        pct = accuracy_pct(doc.get("votes_correct", 0), doc.get("votes_total", 0))
        await self.collection.update_one(
            {"_id": user_id},
            {"$set": {"accuracy_pct": pct}},
            **session_kwargs(session)
        )
        doc["accuracy_pct"] = pct
        return User(**doc)

    async def set_vote_stats(self, user_id: str, votes_total: int, votes_correct: int) -> None:
        """Pisa los contadores con valores recalculados desde cero"""
        await self.collection.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "votes_total": votes_total,
                    "votes_correct": votes_correct,
                    "accuracy_pct": accuracy_pct(votes_correct, votes_total),
                }
            }
        )

    # ============================================
    # 📌 REFERRALS
    # ============================================

    async def increment_referral_count(
        self,
        user_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[User]:
        """+1 referido. Retorna el usuario ya actualizado."""
        doc = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$inc": {"referral_count": 1}},
            return_document=ReturnDocument.AFTER,
            **session_kwargs(session)
        )
        return User(**doc) if doc else None

    async def add_referral_points(
        self,
        user_id: str,
        points: int,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> None:
        if points == 0:
            return
        await self.collection.update_one(
            {"_id": user_id},
            {"$inc": {"points": points, "referral_points": points}},
            **session_kwargs(session)
        )

    # ============================================
    # 📌 RANKINGS
    # ============================================

    async def get_leaderboard(self, limit: int = 100) -> list[User]:
        """Ordena por puntos, después accuracy y por último antigüedad"""
        cursor = self.collection.find().sort([
            ("points", -1),
            ("accuracy_pct", -1),
            ("created_at", 1),
        ]).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [User(**doc) for doc in docs]

    async def get_referral_leaderboard(self, limit: int = 50) -> list[User]:
        cursor = self.collection.find({"referral_count": {"$gt": 0}}).sort([
            ("referral_count", -1),
            ("referral_points", -1),
        ]).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [User(**doc) for doc in docs]

    async def count_with_more_points(self, points: int) -> int:
        return await self.collection.count_documents({"points": {"$gt": points}})
