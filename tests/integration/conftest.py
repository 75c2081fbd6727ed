"""
Fixtures for integration tests
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from httpx import ASGITransport, AsyncClient

from roach_rally.core.dependencies import get_payment_verifier
from roach_rally.core.security import create_access_token
from roach_rally.database import Database
from roach_rally.main import app
from roach_rally.services.payment_service import PaymentVerification


@pytest.fixture
def payment_verifier():
    """
    Verificador de pagos falso: por defecto todo pago es válido.

    Los tests cambian `payment_verifier.verify.return_value` para simular rechazos.
    """
    verifier = MagicMock()
    verifier.verify = AsyncMock(return_value=PaymentVerification(
        is_valid=True,
        signature="sig",
        amount_lamports=20_000_000
    ))
    return verifier


@pytest.fixture
async def client(test_db, payment_verifier):
    """
    HTTP client for testing API endpoints.

    Overrides the database and the payment verifier.
    """
    # Store original db connection
    original_db = Database.db
    Database.db = test_db
    app.dependency_overrides[get_payment_verifier] = lambda: payment_verifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    # Restore original db
    app.dependency_overrides.clear()
    Database.db = original_db


@pytest.fixture
async def auth_headers(client, sample_user_data, test_db):
    """
    Provides authentication headers for protected endpoints.

    Creates a test user and returns valid JWT token headers.
    """
    await test_db["users"].insert_one(sample_user_data)

    token = create_access_token(sample_user_data["_id"], sample_user_data["wallet_address"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_headers(client, admin_wallet, test_db):
    """Usuario cuya wallet está en ADMIN_WALLETS"""
    now = datetime.now(timezone.utc)
    await test_db["users"].insert_one({
        "_id": "admin_1",
        "wallet_address": admin_wallet,
        "created_at": now,
        "last_login_at": now,
    })

    token = create_access_token("admin_1", admin_wallet)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
async def open_race(test_db):
    """Carrera OPEN con la ventana abierta respecto del reloj real"""
    now = datetime.now(timezone.utc)
    race = {
        "_id": "race_1",
        "unique_idx": 1,
        "start_at": now - timedelta(minutes=1),
        "end_at": now + timedelta(minutes=10),
        "status": "OPEN",
        "winner": None,
        "created_at": now - timedelta(minutes=1),
        "settled_at": None,
    }
    await test_db["races"].insert_one(race)
    await test_db["config"].insert_one({
        "_id": "global",
        "points_per_correct": 1,
        "enable_streaks": True,
        "last_race_number": 1,
    })
    return race
