import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    storage_mode: Literal["file", "database", "memory"] = Field("file", alias="RUTHERFORD_STORAGE_MODE")
    data_dir: Path = Field(Path("data/profiles"), alias="RUTHERFORD_DATA_DIR")
    database_url: Optional[str] = Field(None, alias="RUTHERFORD_DATABASE_URL")
    database_pool_size: int = Field(10, alias="RUTHERFORD_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="RUTHERFORD_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="RUTHERFORD_DATABASE_ECHO")
    crypto_scheme: Literal["none", "aes-256-gcm"] = Field("none", alias="RUTHERFORD_CRYPTO_SCHEME")
    encryption_key: Optional[str] = Field(None, alias="RUTHERFORD_ENCRYPTION_KEY")
    session_ttl_seconds: int = Field(60 * 60 * 24, ge=0, alias="RUTHERFORD_SESSION_TTL_SECONDS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
