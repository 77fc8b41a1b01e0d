from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=(".env", "apps/api/.env"),
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    grobid_url: str = "http://localhost:8070"
    grobid_timeout_seconds: float = 120
    gemini_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY", "GOOGLE_API_KEY")
    )
    gemini_model: str = "gemini-1.5-pro"
    oracle_timeout_seconds: float = 60
    document_db_path: str = "./data/document-database"
    missing_ref_handling: Literal["skip", "log", "prompt", "fetch"] = "log"
    content_char_budget: int = 100_000
    verification_workers: int = Field(default=1, ge=1)
    storage_dir: str = "/tmp/citecheck_uploads"
    log_level: str = "INFO"
    progress_grace_seconds: float = 30


def validate_settings(settings: Settings) -> list[str]:
    """Human-readable problems that would stop verification from working."""
    issues: list[str] = []
    if not settings.gemini_api_key:
        issues.append("No oracle API key configured. Set GEMINI_API_KEY or GOOGLE_API_KEY.")
    if not Path(settings.document_db_path).is_dir():
        issues.append(
            f"Document database directory {settings.document_db_path} does not exist. "
            "Add a document or set DOCUMENT_DB_PATH."
        )
    return issues


settings = Settings()
