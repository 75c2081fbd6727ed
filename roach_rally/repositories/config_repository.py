"""
⚙️ ConfigRepository - Documento único de configuración del juego
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from roach_rally.database import session_kwargs
from roach_rally.models.game_config import GameConfig, GLOBAL_CONFIG_ID


class ConfigRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["config"]

    async def get(
        self,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> GameConfig:
        """Lee la config, creándola con los defaults la primera vez"""
        defaults = GameConfig().model_dump(by_alias=True, exclude={"id"})

        doc = await self.collection.find_one_and_update(
            {"_id": GLOBAL_CONFIG_ID},
            {"$setOnInsert": defaults},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            **session_kwargs(session)
        )
        return GameConfig(**doc)

    async def advance_race_number(
        self,
        race_number: int,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        """
        Sube last_race_number a race_number.

        Nunca lo baja: si otro proceso ya lo dejó más alto no hace nada.
        """
        result = await self.collection.update_one(
            {"_id": GLOBAL_CONFIG_ID, "last_race_number": {"$lt": race_number}},
            {"$set": {"last_race_number": race_number}},
            **session_kwargs(session)
        )
        return result.modified_count > 0
