from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Photo Memories Clustering"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Home
    TIMEZONE: str = "Europe/Berlin"
    HOME_LAT: Optional[float] = None
    HOME_LON: Optional[float] = None
    HOME_RADIUS_KM: float = 15.0

    USE_TIMEZONE_FINDER: bool = True

    class Config:
        env_file = ".env"


configs = Settings()
