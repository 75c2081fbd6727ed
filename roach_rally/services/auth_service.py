"""
AuthService - Login con wallet Solana (challenge/response).

1. El frontend pide un nonce para la wallet
2. La wallet firma "Sign in to Roach Rally\nNonce: <nonce>"
3. El backend verifica la firma, consume el nonce y devuelve un JWT
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from roach_rally.core.config import get_settings
from roach_rally.core.security import (
    WalletAuthError,
    create_access_token,
    generate_nonce,
    is_valid_wallet_address,
    verify_wallet_signature,
)
from roach_rally.models.user import User
from roach_rally.repositories.nonce_repository import NonceRepository
from roach_rally.repositories.user_repository import UserRepository
from roach_rally.services.referral_service import ReferralService, ReferralServiceError

logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    """Base exception for auth service errors."""
    pass


class AuthService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.user_repo = UserRepository(db)
        self.nonce_repo = NonceRepository(db)

    async def issue_nonce(self, wallet_address: str) -> tuple[str, datetime]:
        """
        Genera un nonce para que la wallet lo firme.

        Returns: (nonce, expires_at)
        """
        if not is_valid_wallet_address(wallet_address):
            raise AuthServiceError("Invalid wallet address")

        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(minutes=get_settings().nonce_expire_minutes)
        nonce = generate_nonce()

        await self.nonce_repo.create(nonce, wallet_address, now, expires_at)
        return nonce, expires_at

    async def authenticate_with_wallet(
        self,
        wallet_address: str,
        nonce: str,
        signature: str,
        referral_code: Optional[str] = None
    ) -> tuple[User, str, bool]:
        """
        Authenticate user with a signed nonce.

        1. Verifies the signature
        2. Consumes the nonce (single use)
        3. Creates or finds user in database
        4. Tracks the referral for new users (best effort)

        Returns: (user, jwt_token, is_new_user)
        Raises: AuthServiceError on failure
        """
        try:
            verify_wallet_signature(wallet_address, nonce, signature)
        except WalletAuthError as e:
            raise AuthServiceError(str(e))

        if not await self.nonce_repo.consume(nonce, wallet_address, datetime.now(timezone.utc)):
            raise AuthServiceError("Nonce expired or already used")

        # Find or create user
        user = await self.user_repo.get_by_wallet(wallet_address)
        is_new_user = user is None

        if user is None:
            try:
                user = await self.user_repo.create(wallet_address)
            except DuplicateKeyError:
                # Otro login de la misma wallet creó el usuario primero
                user = await self.user_repo.get_by_wallet(wallet_address)
                is_new_user = False

        if is_new_user:
            logger.info(f"🆕 Nuevo usuario {wallet_address}")

            if referral_code:
                await self._track_referral(referral_code, wallet_address)
        else:
            user = await self.user_repo.update_last_login(user.id) or user

        access_token = create_access_token(user.id, user.wallet_address)

        return user, access_token, is_new_user

    async def _track_referral(self, referral_code: str, wallet_address: str) -> None:
        """Un referido inválido no frena el login"""
        try:
            await ReferralService(self.db).track(referral_code, wallet_address)
        except ReferralServiceError as e:
            logger.warning(f"⚠️ Referido no registrado para {wallet_address}: {e}")
