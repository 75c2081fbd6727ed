"""
🤝 ReferralRepository - Registro inmutable de referidos

IDs compuestos: referrer_code:referee_wallet
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from roach_rally.database import session_kwargs
from roach_rally.models.referral import Referral


class ReferralRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["referrals"]

    async def create(
        self,
        referral: Referral,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Referral:
        """Lanza DuplicateKeyError si el par ya estaba registrado"""
        await self.collection.insert_one(
            referral.model_dump(by_alias=True),
            **session_kwargs(session)
        )
        return referral

    async def set_points_awarded(
        self,
        referral_id: str,
        points: int,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> None:
        await self.collection.update_one(
            {"_id": referral_id},
            {"$set": {"points_awarded": points}},
            **session_kwargs(session)
        )

    async def exists(self, referrer_code: str, referee_wallet: str) -> bool:
        count = await self.collection.count_documents(
            {"_id": Referral.make_id(referrer_code, referee_wallet)},
            limit=1
        )
        return count > 0

    async def get_for_code(self, referrer_code: str) -> list[Referral]:
        cursor = self.collection.find({"referrer_code": referrer_code}).sort("created_at", -1)
        docs = await cursor.to_list(length=None)
        return [Referral(**doc) for doc in docs]
