"""
PaymentVerifier - Confirma en Solana que un voto fue pagado.

Consulta la transacción con `getTransaction` (JSON-RPC) y valida:
1. Que exista, esté confirmada y no haya fallado
2. Que la wallet de cobro y la wallet del votante participen
3. Que la wallet de cobro haya recibido el fee (± tolerancia)

Nunca reintenta: si falla, el votante tiene que mandar otra transacción.
"""

import logging
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from roach_rally.core.config import Settings, LAMPORTS_PER_SOL

logger = logging.getLogger(__name__)

# Código JSON-RPC de parámetro inválido (firma mal formada)
RPC_INVALID_PARAMS = -32602


class PaymentFailure(str, Enum):
    NOT_FOUND = "not found"
    FAILED = "failed"
    WRONG_PARTIES = "wrong parties"
    WRONG_AMOUNT = "wrong amount"
    UNAVAILABLE = "unavailable"  # el RPC no respondió, se puede reintentar


class PaymentVerification(BaseModel):
    is_valid: bool
    reason: Optional[PaymentFailure] = None
    message: Optional[str] = None
    signature: str
    amount_lamports: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.reason == PaymentFailure.UNAVAILABLE


class LedgerUnavailableError(Exception):
    """El nodo RPC no respondió o devolvió un error propio"""
    pass


class PaymentVerifier:
    def __init__(
        self,
        rpc_url: str,
        payment_wallet: str,
        fee_lamports: int,
        tolerance_lamports: int,
        commitment: str = "confirmed",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.payment_wallet = payment_wallet
        self.fee_lamports = fee_lamports
        self.tolerance_lamports = tolerance_lamports
        self.commitment = commitment
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "PaymentVerifier":
        return cls(
            rpc_url=settings.solana_rpc_url,
            payment_wallet=settings.payment_wallet,
            fee_lamports=settings.voting_fee_lamports,
            tolerance_lamports=settings.payment_tolerance_lamports,
            commitment=settings.solana_commitment,
            timeout=settings.rpc_timeout_seconds,
            transport=transport,
        )

    async def _get_transaction(self, signature: str) -> Optional[dict[str, Any]]:
        """
        Pide la transacción al nodo.

        Retorna None si no existe (o no está confirmada todavía).
        Lanza LedgerUnavailableError si el nodo no responde bien.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [
                signature,
                {
                    "encoding": "json",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(self.rpc_url, json=payload)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerUnavailableError(str(e)) from e

        error = body.get("error")
        if error:
            if error.get("code") == RPC_INVALID_PARAMS:
                return None
            raise LedgerUnavailableError(error.get("message", "RPC error"))

        return body.get("result")

    @staticmethod
    def _account_keys(transaction: dict[str, Any]) -> list[str]:
        """
        Keys en el mismo orden que pre/postBalances: primero las estáticas,
        después las cargadas por lookup table (writable y readonly).
        """
        message = transaction.get("transaction", {}).get("message", {})
        keys = [
            key if isinstance(key, str) else key.get("pubkey")
            for key in message.get("accountKeys", [])
        ]

        loaded = (transaction.get("meta") or {}).get("loadedAddresses") or {}
        keys.extend(loaded.get("writable", []))
        keys.extend(loaded.get("readonly", []))
        return keys

    async def verify(self, payer_wallet: str, signature: str) -> PaymentVerification:
        """
        Verifica que `signature` sea un pago del fee de `payer_wallet`
        a la wallet de cobro.
        """
        try:
            transaction = await self._get_transaction(signature)
        except LedgerUnavailableError as e:
            logger.warning(f"⚠️ RPC no disponible verificando {signature}: {e}")
            return PaymentVerification(
                is_valid=False,
                reason=PaymentFailure.UNAVAILABLE,
                message="Payment ledger unavailable, try again",
                signature=signature,
            )

        if not transaction:
            return PaymentVerification(
                is_valid=False,
                reason=PaymentFailure.NOT_FOUND,
                message="Transaction not found or not confirmed",
                signature=signature,
            )

        meta = transaction.get("meta") or {}
        if meta.get("err") is not None:
            return PaymentVerification(
                is_valid=False,
                reason=PaymentFailure.FAILED,
                message="Transaction failed",
                signature=signature,
            )

        account_keys = self._account_keys(transaction)
        if self.payment_wallet not in account_keys or payer_wallet not in account_keys:
            return PaymentVerification(
                is_valid=False,
                reason=PaymentFailure.WRONG_PARTIES,
                message="Transaction does not involve the correct wallets",
                signature=signature,
            )

        index = account_keys.index(self.payment_wallet)
        pre_balances = meta.get("preBalances") or []
        post_balances = meta.get("postBalances") or []

        if index >= len(pre_balances) or index >= len(post_balances):
            return PaymentVerification(
                is_valid=False,
                reason=PaymentFailure.WRONG_AMOUNT,
                message="Missing balances for payment wallet",
                signature=signature,
            )

        received = post_balances[index] - pre_balances[index]

        if abs(received - self.fee_lamports) > self.tolerance_lamports:
            return PaymentVerification(
                is_valid=False,
                reason=PaymentFailure.WRONG_AMOUNT,
                message=(
                    f"Incorrect payment amount. Expected {self.fee_lamports / LAMPORTS_PER_SOL} SOL, "
                    f"received {received / LAMPORTS_PER_SOL} SOL"
                ),
                signature=signature,
                amount_lamports=received,
            )

        return PaymentVerification(
            is_valid=True,
            signature=signature,
            amount_lamports=received,
        )
