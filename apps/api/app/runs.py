from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from citecheck_core.errors import CitecheckError
from citecheck_core.grobid import GrobidClient
from citecheck_core.pipeline import process_pdf
from citecheck_core.progress import ProgressHub
from citecheck_core.store import DocumentStore
from citecheck_core.types import MissingReferenceHandling, ProgressEvent, RunStatus, VerificationReport
from citecheck_core.verify import CitationVerifier, Oracle

logger = logging.getLogger(__name__)


@dataclass
class RunRecord:
    run_id: str
    pdf_path: Path
    missing_ref_handling: MissingReferenceHandling
    status: RunStatus = "processing"
    report: VerificationReport | None = None
    error: str | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def output_dir(self) -> Path:
        return self.pdf_path.parent


class RunRegistry:
    """In-memory table of verification runs started through the service."""

    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._lock = threading.Lock()

    def create(
        self,
        pdf_path: Path,
        missing_ref_handling: MissingReferenceHandling,
        run_id: str | None = None,
    ) -> RunRecord:
        record = RunRecord(
            run_id=run_id or uuid4().hex,
            pdf_path=pdf_path,
            missing_ref_handling=missing_ref_handling,
        )
        with self._lock:
            self._runs[record.run_id] = record
        return record

    def get(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._runs.get(run_id)

    def list(self) -> list[RunRecord]:
        with self._lock:
            return sorted(self._runs.values(), key=lambda record: record.created_at)


def execute_run(
    record: RunRecord,
    *,
    client: GrobidClient,
    store: DocumentStore,
    oracle: Oracle,
    hub: ProgressHub,
    content_char_budget: int,
    max_workers: int = 1,
) -> None:
    """Run extraction and verification for one uploaded PDF, publishing progress."""
    hub.open_run(record.run_id)
    verifier = CitationVerifier(
        store,
        oracle,
        missing_ref_handling=record.missing_ref_handling,
        content_char_budget=content_char_budget,
        on_progress=hub.callback(record.run_id),
        max_workers=max_workers,
        cancel_event=record.cancel_event,
    )
    try:
        result = process_pdf(record.pdf_path, client, verifier, record.output_dir, run_id=record.run_id)
    except (CitecheckError, OSError) as exc:
        logger.error("Run %s failed for %s: %s", record.run_id, record.pdf_path.name, exc)
        _fail(record, hub, str(exc))
        return
    except Exception as exc:  # noqa: BLE001
        logger.exception("Run %s crashed for %s", record.run_id, record.pdf_path.name)
        _fail(record, hub, str(exc) or type(exc).__name__)
        return

    record.report = result.report
    record.status = "cancelled" if result.report.cancelled else "completed"
    logger.info("Run %s finished with status %s", record.run_id, record.status)


def _fail(record: RunRecord, hub: ProgressHub, message: str) -> None:
    record.status = "error"
    record.error = message
    previous = hub.latest(record.run_id)
    hub.publish(
        record.run_id,
        ProgressEvent(
            run_id=record.run_id,
            current_index=previous.current_index if previous else 0,
            total_references=previous.total_references if previous else 0,
            processed_references=previous.processed_references if previous else [],
            status="error",
            error=message,
        ),
    )
