"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field


# Project root directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Central application settings, loaded from environment / .env file."""

    # ── Risk profiles ──
    default_profile: str = Field(
        default="generic-USD", description="Risk profile used when the caller names none"
    )
    profiles_dir: Path = Field(
        default=PROJECT_ROOT / "data" / "profiles",
        description="Directory searched for <name>.json profile files",
    )

    # ── Case policy ──
    sar_score_threshold: int = Field(
        default=50, ge=0, le=100,
        description="Minimum aggregated risk score for a case to proceed to SAR drafting",
    )

    # ── Paths ──
    data_dir: Path = Field(default=PROJECT_ROOT / "data")
    samples_dir: Path = Field(default=PROJECT_ROOT / "data" / "samples")

    model_config = {
        "env_file": str(PROJECT_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "env_prefix": "SAR_",
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached singleton settings instance."""
    return Settings()
