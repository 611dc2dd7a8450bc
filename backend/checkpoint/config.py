from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field


def _load_env_file(filename: str) -> None:
    """
    Load KEY=VALUE pairs from a text file at the project root into os.environ,
    only for keys that are not already set.
    Lines starting with '#' or blank lines are ignored.
    """
    path = Path(__file__).resolve().parents[2] / filename
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        key = key.strip()
        if key and not os.getenv(key):
            os.environ[key] = value.strip()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


_load_env_file("checkpoint.env")


class Settings(BaseModel):
    # Store backends:
    # - memory : in-process stores, nothing leaves the process
    # - admin  : firebase-admin SDK with a service-account file
    # - rest   : Realtime Database / Storage REST endpoints over HTTP
    store_mode: str = Field(default_factory=lambda: os.getenv("STORE_MODE", "memory").lower())
    firebase_credentials: str = Field(default_factory=lambda: os.getenv("FIREBASE_CREDENTIALS", ""))
    database_url: str = Field(default_factory=lambda: os.getenv("FIREBASE_DATABASE_URL", ""))
    storage_bucket: str = Field(default_factory=lambda: os.getenv("FIREBASE_STORAGE_BUCKET", ""))
    rest_auth_token: str = Field(default_factory=lambda: os.getenv("FIREBASE_REST_AUTH_TOKEN", ""))
    store_timeout: float = Field(default_factory=lambda: float(os.getenv("STORE_TIMEOUT", "10")))

    submissions_path: str = Field(default_factory=lambda: os.getenv("SUBMISSIONS_PATH", "data"))
    signal_path: str = Field(default_factory=lambda: os.getenv("SIGNAL_PATH", "led"))
    storage_prefix: str = Field(default_factory=lambda: os.getenv("STORAGE_PREFIX", "images"))

    identifier_scheme: str = Field(
        default_factory=lambda: os.getenv("IDENTIFIER_SCHEME", "vehicle").lower()
    )
    identifier_required: bool = Field(default_factory=lambda: _env_flag("IDENTIFIER_REQUIRED", "1"))

    camera_enabled: bool = Field(default_factory=lambda: _env_flag("CAMERA_ENABLED", "0"))
    camera_index: int = Field(default_factory=lambda: int(os.getenv("CAMERA_INDEX", "0")))
    camera_name: str = Field(default_factory=lambda: os.getenv("CAMERA_NAME_HINT", ""))
    camera_warmup_seconds: float = Field(
        default_factory=lambda: float(os.getenv("CAMERA_WARMUP_SECONDS", "1.5"))
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "").split(",")
            if origin.strip()
        ]
    )
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())


@lru_cache(1)
def get_settings() -> Settings:
    return Settings()
