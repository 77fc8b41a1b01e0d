from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import requests

from citecheck_core.errors import UpstreamRejected, UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_GROBID_URL = "http://localhost:8070"
SERVICE = "extraction"
START_HINT = "Start it with: docker run -t --rm -p 8070:8070 grobid/grobid:0.8.1"

HttpGet = Callable[..., requests.Response]
HttpPost = Callable[..., requests.Response]

DEFAULT_COORDINATE_ELEMENTS = ("ref", "biblStruct", "persName", "figure", "formula", "head", "s", "p")


class GrobidClient:
    """Thin client for a GROBID server turning PDFs into TEI markup."""

    def __init__(
        self,
        base_url: str = DEFAULT_GROBID_URL,
        timeout_seconds: float = 120,
        http_get: HttpGet = requests.get,
        http_post: HttpPost = requests.post,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.http_get = http_get
        self.http_post = http_post

    def is_alive(self) -> bool:
        try:
            response = self.http_get(f"{self.base_url}/api/isalive", timeout=10)
        except requests.RequestException as exc:
            logger.debug("Extraction service check failed: %s", exc)
            return False
        return response.status_code == 200 and response.text.strip().lower() == "true"

    def ensure_alive(self) -> None:
        if not self.is_alive():
            raise UpstreamUnavailable(SERVICE, f"not reachable at {self.base_url}. {START_HINT}")

    def _post_pdf(self, endpoint: str, pdf_path: str | Path, data: list[tuple[str, str]]) -> str:
        path = Path(pdf_path)
        if not path.is_file():
            raise FileNotFoundError(f"PDF not found: {path}")

        url = f"{self.base_url}/api/{endpoint}"
        try:
            with path.open("rb") as handle:
                response = self.http_post(
                    url,
                    files={"input": (path.name, handle, "application/pdf")},
                    data=data,
                    headers={"Accept": "application/xml"},
                    timeout=self.timeout_seconds,
                )
        except requests.Timeout as exc:
            raise UpstreamTimeout(SERVICE, f"{endpoint} timed out after {self.timeout_seconds}s for {path.name}") from exc
        except requests.ConnectionError as exc:
            raise UpstreamUnavailable(SERVICE, f"could not reach {self.base_url}. {START_HINT}") from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailable(SERVICE, f"{endpoint} failed for {path.name}: {exc}") from exc

        if response.status_code == 503:
            raise UpstreamRejected(SERVICE, "service is currently busy. Try again later.", status_code=503)
        if response.status_code >= 400:
            raise UpstreamRejected(
                SERVICE,
                f"{endpoint} returned HTTP {response.status_code} for {path.name}",
                status_code=response.status_code,
            )
        return response.text

    def process_fulltext(
        self,
        pdf_path: str | Path,
        consolidate_citations: bool = True,
        include_raw_citations: bool = True,
        tei_coordinates: tuple[str, ...] = DEFAULT_COORDINATE_ELEMENTS,
    ) -> str:
        data = [
            ("consolidateCitations", "1" if consolidate_citations else "0"),
            ("includeRawCitations", "1" if include_raw_citations else "0"),
        ]
        data.extend(("teiCoordinates", element) for element in tei_coordinates)
        logger.info("Sending %s to the extraction service", Path(pdf_path).name)
        return self._post_pdf("processFulltextDocument", pdf_path, data)

    def process_references(self, pdf_path: str | Path, include_raw_citations: bool = True) -> str:
        data = [("includeRawCitations", "1" if include_raw_citations else "0")]
        return self._post_pdf("processReferences", pdf_path, data)
