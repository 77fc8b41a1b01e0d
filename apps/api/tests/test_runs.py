from __future__ import annotations

from pathlib import Path

from citecheck_core.progress import ProgressHub
from citecheck_core.store import DocumentStore

from app.runs import RunRegistry, execute_run


class CrashingGrobid:
    base_url = "http://grobid.test"

    def ensure_alive(self) -> None:
        return None

    def process_fulltext(self, pdf_path, **kwargs) -> str:
        raise ValueError("malformed upload")


def _run(tmp_path: Path, pdf_file: Path, client, oracle):
    hub = ProgressHub()
    record = RunRegistry().create(pdf_file, "skip")
    subscription = hub.subscribe(record.run_id)
    execute_run(
        record,
        client=client,
        store=DocumentStore(tmp_path / "db"),
        oracle=oracle,
        hub=hub,
        content_char_budget=10_000,
    )
    return record, hub, subscription


def test_execute_run_completes(tmp_path: Path, pdf_file: Path, grobid, oracle) -> None:
    record, hub, _ = _run(tmp_path, pdf_file, grobid, oracle)

    assert record.status == "completed"
    assert record.report is not None
    assert record.report.total_citations_checked == 2
    assert hub.latest(record.run_id).status == "completed"
    assert (pdf_file.parent / "paper-verification-report.json").exists()


def test_unexpected_failure_ends_the_run_with_an_error_event(tmp_path: Path, pdf_file: Path, oracle) -> None:
    record, hub, subscription = _run(tmp_path, pdf_file, CrashingGrobid(), oracle)

    assert record.status == "error"
    assert record.error == "malformed upload"
    assert record.report is None
    event = subscription.get(timeout=1)
    assert event is not None
    assert event.status == "error"
    assert event.error == "malformed upload"
