"""FastAPI dependency providers.

Long-lived services (document store, progress hub, run registry) live on
``app.state`` and are created in the lifespan. Upstream clients are cheap and
built per request from the app's settings, so tests can override them.
"""

from __future__ import annotations

from fastapi import Depends, Request

from citecheck_core.grobid import GrobidClient
from citecheck_core.progress import ProgressHub
from citecheck_core.store import DocumentStore
from citecheck_core.verify import GeminiOracle, Oracle

from app.runs import RunRegistry
from app.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store


def get_progress_hub(request: Request) -> ProgressHub:
    return request.app.state.progress_hub


def get_run_registry(request: Request) -> RunRegistry:
    return request.app.state.run_registry


def build_grobid_client(config: Settings) -> GrobidClient:
    return GrobidClient(config.grobid_url, timeout_seconds=config.grobid_timeout_seconds)


def build_oracle(config: Settings, api_key: str | None = None) -> Oracle:
    return GeminiOracle(
        api_key or config.gemini_api_key,
        model=config.gemini_model,
        timeout_seconds=config.oracle_timeout_seconds,
    )


def get_grobid_client(config: Settings = Depends(get_settings)) -> GrobidClient:
    return build_grobid_client(config)


def get_oracle(config: Settings = Depends(get_settings)) -> Oracle:
    return build_oracle(config)
