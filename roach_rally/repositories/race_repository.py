"""
🏁 RaceRepository - Acceso a la colección races

IDs: race_{unique_idx}, así dos ticks concurrentes del scheduler no pueden
crear la misma carrera dos veces (el segundo insert choca por _id).
"""

from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from roach_rally.database import session_kwargs
from roach_rally.models.common import Roach
from roach_rally.models.race import Race, RaceStatus


class RaceRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["races"]

    @staticmethod
    def make_id(unique_idx: int) -> str:
        return f"race_{unique_idx}"

    # ============================================
    # 📌 CREATE
    # ============================================

    async def create(
        self,
        race: Race,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Race:
        """
        Inserta una carrera.

        Lanza DuplicateKeyError si ya existe una con ese unique_idx.
        """
        await self.collection.insert_one(
            race.model_dump(by_alias=True),
            **session_kwargs(session)
        )
        return race

    # ============================================
    # 📌 READ
    # ============================================

    async def get_by_id(
        self,
        race_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[Race]:
        doc = await self.collection.find_one({"_id": race_id}, **session_kwargs(session))
        return Race(**doc) if doc else None

    async def get_active(
        self,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[Race]:
        """La carrera OPEN o LOCKED (como mucho hay una)"""
        doc = await self.collection.find_one(
            {"status": {"$in": RaceStatus.active()}},
            sort=[("created_at", -1)],
            **session_kwargs(session)
        )
        return Race(**doc) if doc else None

    async def get_recent(self, limit: int = 20) -> list[Race]:
        cursor = self.collection.find().sort("unique_idx", -1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [Race(**doc) for doc in docs]

    async def get_by_ids(self, race_ids: list[str]) -> dict[str, Race]:
        if not race_ids:
            return {}
        cursor = self.collection.find({"_id": {"$in": race_ids}})
        docs = await cursor.to_list(length=None)
        return {doc["_id"]: Race(**doc) for doc in docs}

    async def get_settled_winners(
        self,
        race_ids: list[str],
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> dict[str, str]:
        """
        🔥 Ganador de cada carrera SETTLED del listado

        Retorna: {"race_3": "JESSE", "race_4": "DALE"}
        """
        if not race_ids:
            return {}

        cursor = self.collection.find(
            {"_id": {"$in": race_ids}, "status": RaceStatus.SETTLED.value},
            {"_id": 1, "winner": 1},
            **session_kwargs(session)
        )
        docs = await cursor.to_list(length=None)
        return {doc["_id"]: doc.get("winner") for doc in docs}

    # ============================================
    # 📌 STATE TRANSITIONS
    # ============================================

    async def lock(
        self,
        race_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        """OPEN -> LOCKED. Retorna False si ya no estaba OPEN."""
        result = await self.collection.update_one(
            {"_id": race_id, "status": RaceStatus.OPEN.value},
            {"$set": {"status": RaceStatus.LOCKED.value}},
            **session_kwargs(session)
        )
        return result.modified_count > 0

    async def mark_settled(
        self,
        race_id: str,
        winner: Roach,
        settled_at: datetime,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[Race]:
        """
        -> SETTLED con ganador.

        Condicional sobre status != SETTLED: si otro settle llegó antes
        retorna None y no toca nada.
        """
        doc = await self.collection.find_one_and_update(
            {"_id": race_id, "status": {"$ne": RaceStatus.SETTLED.value}},
            {
                "$set": {
                    "status": RaceStatus.SETTLED.value,
                    "winner": Roach(winner).value,
                    "settled_at": settled_at,
                }
            },
            return_document=ReturnDocument.AFTER,
            **session_kwargs(session)
        )
        return Race(**doc) if doc else None
