"""
NonceRepository - Nonces de login con wallet (un solo uso).
"""

from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase


class NonceRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["auth_nonces"]

    async def create(self, nonce: str, wallet_address: str, created_at: datetime, expires_at: datetime) -> None:
        await self.collection.insert_one({
            "_id": nonce,
            "wallet_address": wallet_address,
            "created_at": created_at,
            "expires_at": expires_at,
        })

    async def consume(self, nonce: str, wallet_address: str, now: datetime) -> bool:
        """
        Borra el nonce si es de esa wallet y no expiró.

        True si existía. Un segundo intento con el mismo nonce da False.
        """
        doc = await self.collection.find_one_and_delete({
            "_id": nonce,
            "wallet_address": wallet_address,
            "expires_at": {"$gt": now},
        })
        return doc is not None
