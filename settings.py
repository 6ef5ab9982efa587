"""Application settings loaded from the environment and an optional `.env` file."""

import os
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from models import NodeTypeEnum
from zodiac import ChartConfig


class Settings(BaseSettings):
    """Runtime configuration for the chart service."""

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    APP_NAME: str = "Natal Chart API"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Swiss Ephemeris; Moshier is used unless this directory holds .se1 files
    EPHEMERIS_PATH: Optional[str] = None
    HOUSE_SYSTEM: str = "Placidus"
    NODE_TYPE: NodeTypeEnum = NodeTypeEnum.TRUE

    # worldcities.csv-format file extending the built-in location table
    CITIES_CSV: Optional[str] = None
    NEAREST_LOCATION_MAX_DISTANCE: float = 10.0
    USE_TIMEZONEFINDER: bool = True

    GEOCODER_ENABLED: bool = False
    GEOCODER_USER_AGENT: str = "natal-chart-api"
    GEOCODER_TIMEOUT: float = 5.0

    @field_validator("HOUSE_SYSTEM")
    @classmethod
    def validate_house_system(cls, v: str) -> str:
        if v not in ChartConfig.HOUSE_SYSTEMS:
            raise ValueError(f"Unknown house system: {v}")
        return v

    @field_validator("NODE_TYPE", mode="before")
    @classmethod
    def normalize_node_type(cls, v):
        return v.lower() if isinstance(v, str) else v


@lru_cache
def get_settings() -> Settings:
    return Settings()
