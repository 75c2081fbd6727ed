"""
🗳️ VoteRepository - Votos de usuarios por carrera

IDs compuestos: race_id:user_id (un voto por usuario y carrera)
"""

from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from roach_rally.database import session_kwargs
from roach_rally.models.common import Roach
from roach_rally.models.vote import Vote


class VoteRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["votes"]

    # ============================================
    # 📌 UPSERT
    # ============================================

    async def upsert(
        self,
        race_id: str,
        user_id: str,
        pick: Roach,
        sig: str,
        now: datetime,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Vote:
        """
        Crea el voto o pisa pick y sig si el usuario ya había votado.

        El _id compuesto garantiza que nunca hay dos filas para el mismo par.
        """
        doc = await self.collection.find_one_and_update(
            {"_id": Vote.make_id(race_id, user_id)},
            {
                "$set": {
                    "pick": Roach(pick).value,
                    "sig": sig,
                    "updated_at": now,
                },
                "$setOnInsert": {
                    "race_id": race_id,
                    "user_id": user_id,
                    "created_at": now,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            **session_kwargs(session)
        )
        return Vote(**doc)

    # ============================================
    # 📌 READ
    # ============================================

    async def get_user_vote(self, race_id: str, user_id: str) -> Optional[Vote]:
        doc = await self.collection.find_one({"_id": Vote.make_id(race_id, user_id)})
        return Vote(**doc) if doc else None

    async def get_for_race(
        self,
        race_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> list[Vote]:
        """🔥 Todos los votos de una carrera"""
        cursor = self.collection.find({"race_id": race_id}, **session_kwargs(session))
        docs = await cursor.to_list(length=None)
        return [Vote(**doc) for doc in docs]

    async def get_for_user(
        self,
        user_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> list[Vote]:
        """Todos los votos históricos de un usuario"""
        cursor = self.collection.find({"user_id": user_id}, **session_kwargs(session))
        docs = await cursor.to_list(length=None)
        return [Vote(**doc) for doc in docs]

    async def get_recent_for_user(self, user_id: str, limit: int = 20) -> list[Vote]:
        cursor = self.collection.find({"user_id": user_id}).sort("created_at", -1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [Vote(**doc) for doc in docs]

    # ============================================
    # 📌 STATS & AGGREGATIONS
    # ============================================

    async def count_for_race(self, race_id: str) -> int:
        return await self.collection.count_documents({"race_id": race_id})

    async def count_by_users(self, user_ids: list[str]) -> dict[str, int]:
        """
        Cantidad de votos por usuario

        Retorna: {"user1": 12, "user2": 3}
        """
        if not user_ids:
            return {}

        pipeline = [
            {"$match": {"user_id": {"$in": user_ids}}},
            {"$group": {"_id": "$user_id", "count": {"$sum": 1}}},
        ]

        cursor = self.collection.aggregate(pipeline)
        results = await cursor.to_list(length=None)
        return {item["_id"]: item["count"] for item in results}
