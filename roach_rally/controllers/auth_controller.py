"""
Controlador de autenticación - Login con wallet y usuario actual
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from roach_rally.core.dependencies import Database, CurrentUser
from roach_rally.core.responses import ApiResponse
from roach_rally.core.security import build_sign_in_message, is_admin_wallet
from roach_rally.models.common import UTCDateTime
from roach_rally.models.user import User, UserResponse
from roach_rally.services.auth_service import AuthService, AuthServiceError

router = APIRouter(prefix="/auth", tags=["auth"])


class NonceRequest(BaseModel):
    wallet_address: str = Field(..., min_length=1)


class NonceResponse(BaseModel):
    nonce: str
    message: str  # Lo que la wallet tiene que firmar
    expires_at: UTCDateTime


# Cuerpo de la request de login
class WalletAuthRequest(BaseModel):
    wallet_address: str = Field(..., min_length=1)
    nonce: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)  # base58
    referral_code: Optional[str] = None


# Respuesta con JWT
class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    is_new_user: bool
    user: UserResponse


def to_user_response(user: User, rank: Optional[int] = None) -> UserResponse:
    return UserResponse(
        id=user.id,
        wallet_address=user.wallet_address,
        points=user.points,
        accuracy_pct=user.accuracy_pct,
        streak=user.streak,
        rank=rank,
        referral_code=user.referral_code,
        referral_count=user.referral_count,
        referral_points=user.referral_points,
        created_at=user.created_at,
        is_admin=is_admin_wallet(user.wallet_address)
    )


@router.post("/nonce", response_model=ApiResponse[NonceResponse])
async def request_nonce(request: NonceRequest, db: Database):
    """
    Paso 1 del login: genera un nonce de un solo uso (expira en 5 minutos).
    """
    try:
        nonce, expires_at = await AuthService(db).issue_nonce(request.wallet_address)
    except AuthServiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ApiResponse(data=NonceResponse(
        nonce=nonce,
        message=build_sign_in_message(nonce).decode("utf-8"),
        expires_at=expires_at
    ))


@router.post("/verify", response_model=ApiResponse[AuthResponse])
async def verify_wallet(request: WalletAuthRequest, db: Database):
    """
    Paso 2 del login: verifica la firma del nonce.

    Crea o busca el usuario por wallet y devuelve un JWT.
    """
    auth_service = AuthService(db)

    try:
        user, token, is_new_user = await auth_service.authenticate_with_wallet(
            wallet_address=request.wallet_address,
            nonce=request.nonce,
            signature=request.signature,
            referral_code=request.referral_code
        )
    except AuthServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

    return ApiResponse(data=AuthResponse(
        access_token=token,
        is_new_user=is_new_user,
        user=to_user_response(user)
    ))


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user(user: CurrentUser):
    """
    Devuelve el usuario actualmente autenticado.

    Requiere un JWT válido en la cabecera `Authorization`.
    """
    return ApiResponse(data=to_user_response(user))
