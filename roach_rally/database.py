"""
🔌 Database Connection Setup - MongoDB Atlas

Configuración centralizada para conectar a MongoDB Atlas
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)

from roach_rally.core.config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """Singleton para la conexión a MongoDB"""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Conecta a MongoDB Atlas"""
        if cls.client is None:
            settings = get_settings()

            cls.client = AsyncIOMotorClient(
                settings.mongodb_uri,
                maxPoolSize=10,
                minPoolSize=2,
                tz_aware=True,
            )

            cls.db = cls.client[settings.mongodb_db_name]

            # Test de conexión
            await cls.client.admin.command("ping")
            logger.info(f"✅ Connected to MongoDB: {settings.mongodb_db_name}")

    @classmethod
    async def disconnect(cls):
        """Cierra la conexión"""
        if cls.client is not None:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("❌ Disconnected from MongoDB")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Retorna la instancia de la base de datos"""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call Database.connect() first.")
        return cls.db


# ============================================
# 🎯 DEPENDENCY para FastAPI
# ============================================

async def get_database() -> AsyncIOMotorDatabase:
    """
    FastAPI dependency para inyectar la DB

    Uso:
        @router.get("/race/current")
        async def current_race(db: AsyncIOMotorDatabase = Depends(get_database)):
            repo = RaceRepository(db)
            return await repo.get_active()
    """
    return Database.get_db()


# ============================================
# 🔒 TRANSACCIONES
# ============================================

@asynccontextmanager
async def start_transaction(
    db: AsyncIOMotorDatabase,
) -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
    """
    Abre una sesión con transacción multi-documento.

    Si la transacción termina con excepción, Mongo aborta todo lo escrito
    con esa sesión. Con `mongodb_transactions=False` devuelve None y cada
    write se aplica por separado.

    Uso:
        async with start_transaction(db) as session:
            await repo.mark_settled(race_id, winner, session=session)
    """
    if not get_settings().mongodb_transactions:
        yield None
        return

    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session


def session_kwargs(session: Optional[AsyncIOMotorClientSession]) -> dict:
    """kwargs para pasar la sesión a motor solo cuando existe"""
    return {"session": session} if session is not None else {}


# ============================================
# 🏗️ CREAR ÍNDICES (run once al deployment)
# ============================================

async def create_indexes(db: Optional[AsyncIOMotorDatabase] = None):
    """
    Crea los índices necesarios para optimizar queries

    Llamar una vez al hacer deploy o en un script de inicialización
    """
    db = db if db is not None else Database.get_db()

    # Índices para races
    await db.races.create_index("unique_idx", unique=True)
    await db.races.create_index("status")
    await db.races.create_index([("status", 1), ("created_at", -1)])

    # Índices para race_schedules
    await db.race_schedules.create_index([("is_active", 1), ("scheduled_at", 1)])

    # Índices para votes (el _id ya es race_id:user_id)
    await db.votes.create_index([("race_id", 1), ("user_id", 1)], unique=True)
    await db.votes.create_index([("user_id", 1), ("created_at", -1)])

    # Índices para users
    await db.users.create_index("wallet_address", unique=True)
    await db.users.create_index(
        "referral_code",
        unique=True,
        partialFilterExpression={"referral_code": {"$type": "string"}},
    )
    await db.users.create_index([("points", -1), ("accuracy_pct", -1), ("created_at", 1)])
    await db.users.create_index("referral_count")

    # Nonces de login: se borran solos al expirar
    await db.auth_nonces.create_index("expires_at", expireAfterSeconds=0)

    logger.info("✅ Indexes created successfully")
