"""
Dependencies de FastAPI para autenticacion e inyeccion de BD
"""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from roach_rally.core.config import Settings, get_settings
from roach_rally.core.security import decode_access_token, is_admin_wallet
from roach_rally.database import get_database
from roach_rally.repositories.user_repository import UserRepository
from roach_rally.models.user import User
from roach_rally.services.payment_service import PaymentVerifier

# Esquema de seguridad: espera un header "Authorization: Bearer <token>"
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def _user_from_token(token: str, db: AsyncIOMotorDatabase) -> User:
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token invalido o expirado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Payload del token invalido",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Busco el usuario en la BD
    user_repo = UserRepository(db)
    user = await user_repo.get_by_id(user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuario no encontrado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cuenta de usuario deshabilitada",
        )

    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)]
) -> User:
    """
    Dependency que valida el JWT del usuario.

    Se usa en los endpoints que requieren autenticacion.
    Retorna el usuario si el token es valido.
    """
    return await _user_from_token(credentials.credentials, db)


async def get_optional_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(optional_security)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)]
) -> Optional[User]:
    """Como get_current_user, pero sin header retorna None"""
    if credentials is None:
        return None
    return await _user_from_token(credentials.credentials, db)


async def get_current_admin(
    user: Annotated[User, Depends(get_current_user)]
) -> User:
    """El usuario tiene que estar en la allow-list de admin_wallets"""
    if not is_admin_wallet(user.wallet_address):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Se requieren permisos de administrador",
        )
    return user


async def verify_cron_secret(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(optional_security)],
    settings: Annotated[Settings, Depends(get_settings)]
) -> None:
    """
    Protege /races/roll con un secreto fijo (no es identidad de usuario).

    Sin cron_secret configurado el endpoint queda cerrado.
    """
    if (
        not settings.cron_secret
        or credentials is None
        or not secrets.compare_digest(credentials.credentials, settings.cron_secret)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def get_payment_verifier() -> PaymentVerifier:
    return PaymentVerifier.from_settings(get_settings())


# Alias de tipos para que se vea mas limpio en los endpoints
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
CurrentAdmin = Annotated[User, Depends(get_current_admin)]
Database = Annotated[AsyncIOMotorDatabase, Depends(get_database)]
PaymentVerifierDep = Annotated[PaymentVerifier, Depends(get_payment_verifier)]
CronAuth = Depends(verify_cron_secret)
