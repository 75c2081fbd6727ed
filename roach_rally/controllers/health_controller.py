"""
Controlador de salud - Endpoint de comprobación del servicio y links públicos
"""

from fastapi import APIRouter
from pydantic import BaseModel

from roach_rally.core.config import get_settings
from roach_rally.core.responses import ApiResponse
from roach_rally.database import Database


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Respuesta del chequeo de estado."""
    status: str
    database: str


class EnvResponse(BaseModel):
    pump_fun_link: str
    contract_address: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Endpoint de verificación de estado.

    Comprueba que la API esté en funcionamiento y que la base de datos esté conectada.
    """
    db_status = "connected" if Database.db is not None else "disconnected"

    return HealthResponse(
        status="ok",
        database=db_status
    )


@router.get("/env", response_model=ApiResponse[EnvResponse])
async def public_env():
    """Links públicos que muestra el frontend."""
    settings = get_settings()
    return ApiResponse(data=EnvResponse(
        pump_fun_link=settings.pump_fun_link,
        contract_address=settings.contract_address
    ))
