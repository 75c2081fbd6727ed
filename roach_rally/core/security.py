"""
Seguridad: Manejo de JWT y verificación de firmas de wallets Solana
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import base58
from jose import JWTError, jwt
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from roach_rally.core.config import get_settings

logger = logging.getLogger(__name__)

# Mensaje que el frontend le pide firmar a la wallet
SIGN_IN_MESSAGE = "Sign in to Roach Rally\nNonce: {nonce}"

# ed25519: public key de 32 bytes, firma de 64
PUBKEY_LENGTH = 32
SIGNATURE_LENGTH = 64


class WalletAuthError(Exception):
    """Se lanza cuando falla la verificación de la firma de la wallet"""
    pass


def generate_nonce() -> str:
    """Nonce aleatorio para el challenge de login"""
    return secrets.token_urlsafe(16)


def build_sign_in_message(nonce: str) -> bytes:
    return SIGN_IN_MESSAGE.format(nonce=nonce).encode("utf-8")


def _decode_base58(value: str, length: int) -> Optional[bytes]:
    """Decodifica base58 y chequea el largo. None si no es válido"""
    try:
        raw = base58.b58decode(value)
    except ValueError:
        return None
    return raw if len(raw) == length else None


def is_valid_wallet_address(wallet_address: str) -> bool:
    """True si es una public key base58 válida (32 bytes)"""
    return _decode_base58(wallet_address, PUBKEY_LENGTH) is not None


def verify_wallet_signature(wallet_address: str, nonce: str, signature: str) -> None:
    """
    Verifica que `signature` (base58) sea la firma ed25519 del mensaje de
    login con `nonce`, hecha por la wallet `wallet_address`.

    Lanza WalletAuthError si algo está mal
    """
    pubkey = _decode_base58(wallet_address, PUBKEY_LENGTH)
    if pubkey is None:
        raise WalletAuthError("Invalid wallet address")

    sig = _decode_base58(signature, SIGNATURE_LENGTH)
    if sig is None:
        raise WalletAuthError("Malformed signature")

    try:
        VerifyKey(pubkey).verify(build_sign_in_message(nonce), sig)
    except BadSignatureError:
        logger.warning(f"❌ Firma inválida para wallet {wallet_address}")
        raise WalletAuthError("Signature verification failed")


def create_access_token(user_id: str, wallet_address: str) -> str:
    """
    Crea un JWT para que el usuario pueda hacer requests autenticados

    El JWT contiene el user_id y la wallet, y expira en 7 días
    """
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    payload = {
        "sub": user_id,      # Subject: el usuario
        "wallet": wallet_address,
        "exp": expire,       # Expiración
        "iat": datetime.now(timezone.utc),  # Issued at (cuándo se creó)
    }

    # Firmo el token con nuestra clave secreta
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decodifica y valida un JWT

    Retorna el payload si es válido, None si está expirado o corrupto
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        # Token inválido, expirado, o corrupto
        return None


def is_admin_wallet(wallet_address: str) -> bool:
    return wallet_address in get_settings().admin_wallet_list
