"""Configuration helpers for the Shahriar backend and voice client."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional


_SERVER_DIR = Path(__file__).resolve().parent.parent


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Values are read once when the module is imported; tests reload the module or
    build a ``Settings`` by hand and pass it to ``create_app``.
    """

    # Realtime speech API credential and session options
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    realtime_model: str = os.getenv("REALTIME_MODEL", "gpt-realtime")
    realtime_voice: str = os.getenv("REALTIME_VOICE", "coral")

    # Persistence service
    database_path: Path = Path(os.getenv("DATABASE_PATH", str(_SERVER_DIR / "database.json")))
    static_dir: Path = Path(os.getenv("STATIC_DIR", str(_SERVER_DIR.parent / "build")))
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3001"))
    cors_origins: list[str] = field(default_factory=lambda: _split_csv(os.getenv("CORS_ORIGINS", "*")))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Voice client
    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:3001")
    tasks_path: Path = Path(os.getenv("TASKS_PATH", str(_SERVER_DIR / "tasks.json")))
    capture_sample_rate: int = int(os.getenv("CAPTURE_SAMPLE_RATE", "16000"))
    playback_sample_rate: int = int(os.getenv("PLAYBACK_SAMPLE_RATE", "24000"))
    # The OpenAI realtime model only accepts 24kHz PCM16 input.
    realtime_input_sample_rate: int = int(os.getenv("REALTIME_INPUT_SAMPLE_RATE", "24000"))
    capture_block_size: int = int(os.getenv("CAPTURE_BLOCK_SIZE", "4096"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
