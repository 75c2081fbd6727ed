from pydantic import BaseModel, Field

GLOBAL_CONFIG_ID = "global"


class GameConfig(BaseModel):
    """Configuración del juego (un único documento)"""

    id: str = Field(GLOBAL_CONFIG_ID, alias="_id")
    points_per_correct: int = 1
    enable_streaks: bool = True
    last_race_number: int = 0

    class Config:
        populate_by_name = True
