import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(None, alias="OPENAI_BASE_URL")
    completion_proxy_base_url: str = Field("", alias="SCIWRITE_COMPLETION_PROXY_BASE_URL")
    completion_timeout_seconds: float = Field(60.0, alias="SCIWRITE_COMPLETION_TIMEOUT")
    feedback_model: str = Field("gpt-4o-mini", alias="SCIWRITE_FEEDBACK_MODEL")
    feedback_temperature: float = Field(0.7, ge=0.0, le=2.0, alias="SCIWRITE_FEEDBACK_TEMPERATURE")
    feedback_max_tokens: int = Field(2000, gt=0, alias="SCIWRITE_FEEDBACK_MAX_TOKENS")
    batch_delay_seconds: float = Field(0.1, ge=0.0, alias="SCIWRITE_BATCH_DELAY_SECONDS")
    database_url: Optional[str] = Field(None, alias="SCIWRITE_DATABASE_URL")
    database_pool_size: int = Field(10, alias="SCIWRITE_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="SCIWRITE_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="SCIWRITE_DATABASE_ECHO")
    database_auto_create: bool = Field(False, alias="SCIWRITE_DATABASE_AUTO_CREATE")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
