from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WBS_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev")  # dev|prod
    LOG_LEVEL: str = Field(default="INFO")

    # Rendering
    DEFAULT_OUT_DIR: str = Field(default="output")
    CHART_TITLE: str = Field(default="Work Breakdown Schedule")


@lru_cache
def get_settings() -> Settings:
    return Settings()
