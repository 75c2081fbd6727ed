"""
Entry point de la API
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from roach_rally.core.config import get_settings
from roach_rally.core.responses import register_exception_handlers
from roach_rally.database import Database, create_indexes
from roach_rally.services.race_service import run_scheduler

from roach_rally.controllers.admin_controller import router as admin_router
from roach_rally.controllers.auth_controller import router as auth_router
from roach_rally.controllers.health_controller import router as health_router
from roach_rally.controllers.leaderboard_controller import router as leaderboard_router
from roach_rally.controllers.race_controller import router as race_router
from roach_rally.controllers.referral_controller import router as referral_router
from roach_rally.controllers.user_controller import router as user_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Parse CORS origins
CORS_ORIGINS = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def is_allowed_origin(origin: str) -> bool:
    """Check if origin is in the explicit allow-list."""
    return bool(origin) and origin in CORS_ORIGINS


class CORSMiddleware(BaseHTTPMiddleware):
    """
    Custom CORS middleware that handles OPTIONS preflight BEFORE routing.
    """

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin", "")

        # Handle preflight OPTIONS request IMMEDIATELY
        if request.method == "OPTIONS":
            if is_allowed_origin(origin):
                return Response(
                    status_code=200,
                    headers={
                        "Access-Control-Allow-Origin": origin,
                        "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
                        "Access-Control-Allow-Headers": "Authorization, Content-Type, Accept, Origin",
                        "Access-Control-Allow-Credentials": "true",
                        "Access-Control-Max-Age": "86400",
                    }
                )
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if is_allowed_origin(origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    await Database.connect()
    await create_indexes()

    scheduler_task = None
    if settings.scheduler_enabled:
        scheduler_task = asyncio.create_task(run_scheduler(settings.scheduler_interval_seconds))

    yield

    if scheduler_task is not None:
        scheduler_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler_task

    await Database.disconnect()

# Creo la app
app = FastAPI(
    title="Roach Rally API",
    description="Backend de Roach Rally: votos pagos, carreras y leaderboard",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan
)

app.add_middleware(CORSMiddleware)
register_exception_handlers(app)

# Agrego todos los routers de los controllers al app
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(race_router)
app.include_router(admin_router)
app.include_router(referral_router)
app.include_router(leaderboard_router)
app.include_router(user_router)


@app.get("/")
async def root():
    # Endpoint raíz, sirve para verificar que la API está levantada
    return {
        "name": "Roach Rally API",
        "version": "1.0.0",
        "docs": "/docs"
    }
