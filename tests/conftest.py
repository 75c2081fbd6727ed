"""
Pytest fixtures and configuration for all tests.
"""

import os

# La config se lee la primera vez que se llama get_settings(), antes de
# importar la app
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "roach_rally_test")
os.environ.setdefault("MONGODB_TRANSACTIONS", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-roach-rally")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("PAYMENT_WALLET", "7UwkPhbKdgcoTx2JjFwWkNs8x8ZfEH443tdrwe2NQmuP")

import base58
import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from mongomock_motor import AsyncMongoMockClient
from nacl.signing import SigningKey

from roach_rally.core.config import get_settings

PAYMENT_WALLET = "7UwkPhbKdgcoTx2JjFwWkNs8x8ZfEH443tdrwe2NQmuP"


def make_wallet() -> tuple[SigningKey, str]:
    """Keypair ed25519 nuevo y su dirección base58"""
    signing_key = SigningKey.generate()
    return signing_key, base58.b58encode(bytes(signing_key.verify_key)).decode()


def sign_message(signing_key: SigningKey, message: bytes) -> str:
    return base58.b58encode(signing_key.sign(message).signature).decode()


@pytest.fixture
def new_wallet():
    """Factory de wallets: new_wallet() -> (signing_key, address)"""
    return make_wallet


@pytest.fixture
def sign():
    """sign(signing_key, message) -> firma base58"""
    return sign_message


@pytest.fixture(scope="session")
def admin_wallet():
    """Wallet de admin, agregada a ADMIN_WALLETS antes de leer la config"""
    _, address = make_wallet()
    os.environ["ADMIN_WALLETS"] = address
    get_settings.cache_clear()
    return address


@pytest.fixture(autouse=True)
def _settings(admin_wallet):
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="function")
async def test_db() -> AsyncGenerator:
    """
    Provide a clean in-memory database for each test.

    mongomock no soporta sesiones: las transacciones están apagadas
    (MONGODB_TRANSACTIONS=false) y cada write se aplica por separado.
    """
    client = AsyncMongoMockClient()
    db = client["roach_rally_test"]

    yield db

    for collection_name in await db.list_collection_names():
        await db[collection_name].drop()


@pytest.fixture
def now():
    """Hora fija sin microsegundos (Mongo guarda milisegundos)"""
    return datetime(2026, 3, 15, 18, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_user_data(now):
    """Sample user data for testing."""
    _, wallet = make_wallet()
    return {
        "_id": "user_1",
        "wallet_address": wallet,
        "points": 0,
        "accuracy_pct": 0.0,
        "streak": 0,
        "votes_total": 0,
        "votes_correct": 0,
        "referral_code": None,
        "referral_count": 0,
        "referral_points": 0,
        "created_at": now - timedelta(days=10),
        "last_login_at": now - timedelta(days=1),
        "is_active": True,
    }


@pytest.fixture
def sample_race_data(now):
    """Carrera OPEN con la votación cerrando en 10 minutos."""
    return {
        "_id": "race_1",
        "unique_idx": 1,
        "start_at": now - timedelta(minutes=5),
        "end_at": now + timedelta(minutes=10),
        "status": "OPEN",
        "winner": None,
        "created_at": now - timedelta(minutes=5),
        "settled_at": None,
    }


@pytest.fixture
def sample_vote_data(now):
    return {
        "_id": "race_1:user_1",
        "race_id": "race_1",
        "user_id": "user_1",
        "pick": "JESSE",
        "sig": "5sigPaymentTx111111111111111111111111111111111",
        "created_at": now,
        "updated_at": now,
    }
