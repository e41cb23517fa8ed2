"""Settings for Mini-KV.

環境変数（プレフィックス MINI_KV_）または .env から読み込みます。
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MINI_KV_", env_file=".env", extra="ignore")

    # ロックストライプ数（キーはhash(key) % LOCK_STRIPESのロックで保護される）
    LOCK_STRIPES: int = Field(default=64, ge=1)
    # カウンタの符号付き整数のビット幅
    INT_BITS: int = Field(default=64, ge=8, le=1024)
    LOG_LEVEL: str = Field(default="INFO")  # DEBUG|INFO|WARNING|ERROR

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
