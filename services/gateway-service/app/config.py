from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import os


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values exposed to FastAPI components."""

    app_name: str = "gateway-service"
    version: str = "0.1.0"
    user_ms_url: str = os.getenv("USER_MS_URL", "http://user-ms:3000")
    user_ms_timeout_seconds: float = float(os.getenv("USER_MS_TIMEOUT_SECONDS", "5"))
    cors_origins: tuple[str, ...] = field(
        default_factory=lambda: _split_csv(
            os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
        )
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
