from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

import requests

from citecheck_core.errors import (
    OracleNotConfigured,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-1.5-pro"
SERVICE = "oracle"

HttpPost = Callable[..., requests.Response]


class Oracle(Protocol):
    def generate(self, prompt: str) -> str: ...


class GeminiOracle:
    """Text-generation oracle backed by the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 60,
        temperature: float = 0.0,
        http_post: HttpPost = requests.post,
        base_url: str = GEMINI_BASE_URL,
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.http_post = http_post
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = max(0.0, backoff_seconds)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise OracleNotConfigured("No Gemini API key configured (set GEMINI_API_KEY or GOOGLE_API_KEY)")

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature},
        }
        for attempt in range(self.max_retries + 1):
            try:
                response = self.http_post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=payload,
                    timeout=self.timeout_seconds,
                )
            except requests.Timeout as exc:
                raise UpstreamTimeout(SERVICE, f"no answer within {self.timeout_seconds}s") from exc
            except requests.ConnectionError as exc:
                raise UpstreamUnavailable(SERVICE, f"could not reach {self.base_url} ({exc})") from exc
            except requests.RequestException as exc:
                raise UpstreamUnavailable(SERVICE, str(exc)) from exc

            retryable = response.status_code == 429 or 500 <= response.status_code <= 599
            if retryable and attempt < self.max_retries:
                delay = self.backoff_seconds * (2**attempt)
                logger.warning("Oracle returned HTTP %d, retrying in %.1fs", response.status_code, delay)
                time.sleep(delay)
                continue
            break

        if response.status_code >= 400:
            raise UpstreamRejected(
                SERVICE,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamRejected(SERVICE, "response was not JSON", status_code=response.status_code) from exc

        return _candidate_text(body)


def _candidate_text(body: Any) -> str:
    candidates = body.get("candidates") if isinstance(body, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise UpstreamRejected(SERVICE, "response contained no candidates")

    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise UpstreamRejected(SERVICE, "candidate had no content parts")
    texts = (part.get("text") for part in parts if isinstance(part, dict))
    return "".join(text for text in texts if isinstance(text, str))
