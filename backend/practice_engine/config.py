import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    generator_model: str = Field("gpt-5-mini", alias="PRACTICE_GENERATOR_MODEL")
    generator_timeout_seconds: float = Field(90.0, gt=0, alias="PRACTICE_GENERATOR_TIMEOUT_SECONDS")
    min_pending_outcomes: int = Field(3, ge=1, alias="PRACTICE_MIN_PENDING_OUTCOMES")
    suggested_app_count: int = Field(5, ge=0, alias="PRACTICE_SUGGESTED_APP_COUNT")
    max_plan_days: int = Field(7, ge=1, alias="PRACTICE_MAX_PLAN_DAYS")
    default_language: str = Field("de-CH", alias="PRACTICE_DEFAULT_LANGUAGE")
    database_url: Optional[str] = Field(None, alias="PRACTICE_DATABASE_URL")
    database_pool_size: int = Field(10, alias="PRACTICE_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="PRACTICE_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="PRACTICE_DATABASE_ECHO")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()  # type: ignore[arg-type]
        if settings.openai_api_key and not os.getenv("OPENAI_API_KEY"):
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        return settings
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
