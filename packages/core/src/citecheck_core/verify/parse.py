from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
HEURISTIC_VERIFIED_CONFIDENCE = 0.7
HEURISTIC_UNVERIFIED_CONFIDENCE = 0.3
RAW_EXCERPT_CHARS = 500

_FENCED_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_POSITIVE_RE = re.compile(r"\b(verified|correct|accurate|true|yes)\b", re.IGNORECASE)
_NEGATIVE_RE = re.compile(r"\b(not verified|unverified|incorrect|inaccurate|false|no|not)\b", re.IGNORECASE)


@dataclass(frozen=True)
class StructuredVerdict:
    is_verified: bool
    confidence: float
    match_location: str | None
    explanation: str
    kind: Literal["structured"] = "structured"


@dataclass(frozen=True)
class HeuristicVerdict:
    is_verified: bool
    confidence: float
    explanation: str
    kind: Literal["heuristic"] = "heuristic"
    match_location: None = None


@dataclass(frozen=True)
class ErrorVerdict:
    message: str
    kind: Literal["error"] = "error"
    is_verified: bool = False
    confidence: float = 0.0
    match_location: None = None

    @property
    def explanation(self) -> str:
        return f"Error during verification: {self.message}"


Verdict = StructuredVerdict | HeuristicVerdict | ErrorVerdict


def clamp_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


def _json_candidates(text: str) -> list[str]:
    candidates = [match.strip() for match in _FENCED_RE.findall(text)]
    start = text.find("{")
    end = text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])
    candidates.append(text.strip())
    return candidates


def extract_json_object(text: str) -> dict[str, Any] | None:
    for candidate in _json_candidates(text):
        try:
            payload = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def heuristic_verdict(text: str) -> HeuristicVerdict:
    verified = bool(_POSITIVE_RE.search(text)) and not _NEGATIVE_RE.search(text)
    excerpt = text.strip()
    if len(excerpt) > RAW_EXCERPT_CHARS:
        excerpt = excerpt[:RAW_EXCERPT_CHARS] + "..."
    return HeuristicVerdict(
        is_verified=verified,
        confidence=HEURISTIC_VERIFIED_CONFIDENCE if verified else HEURISTIC_UNVERIFIED_CONFIDENCE,
        explanation=f"Could not parse structured response. Raw model output: {excerpt}",
    )


def parse_oracle_reply(text: str) -> StructuredVerdict | HeuristicVerdict:
    """Interpret an oracle reply, tolerating code fences and free text."""
    payload = extract_json_object(text or "")
    if payload is None:
        logger.warning("Oracle reply was not JSON, falling back to keyword heuristic")
        return heuristic_verdict(text or "")

    is_verified = payload.get("isVerified")
    match_location = payload.get("matchLocation")
    explanation = payload.get("explanation")
    return StructuredVerdict(
        is_verified=is_verified is True or (isinstance(is_verified, str) and is_verified.lower() == "true"),
        confidence=clamp_confidence(payload.get("confidenceScore")),
        match_location=str(match_location) if match_location else None,
        explanation=str(explanation) if explanation else "No explanation provided",
    )
