from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator


def ensure_utc(dt: datetime) -> datetime:
    """
    Mongo devuelve datetimes naive (en UTC) salvo que el cliente use tz_aware.
    Normalizo a aware para poder comparar con datetime.now(timezone.utc).
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class Roach(str, Enum):
    """Opciones de voto (las cucarachas de la carrera)"""

    JESSE = "JESSE"
    BRIAN = "BRIAN"
    GREG = "GREG"
    DALE = "DALE"
