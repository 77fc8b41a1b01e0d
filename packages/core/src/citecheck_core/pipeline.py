"""End-to-end operations behind the CLI and the HTTP service."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from citecheck_core.errors import CitecheckError
from citecheck_core.grobid import GrobidClient
from citecheck_core.ingest import PdfText, extract_pdf_text, read_pdf_text
from citecheck_core.matching import build_citation_data, enhance_references
from citecheck_core.store import DocumentStore
from citecheck_core.tei import DocumentParser
from citecheck_core.types import CitationData, Document, EnhancedReference, VerificationReport
from citecheck_core.verify import CitationVerifier

logger = logging.getLogger(__name__)

_REFERENCE_LIST = TypeAdapter(list[EnhancedReference])


@dataclass(frozen=True)
class ProcessResult:
    references_path: Path
    report_path: Path
    report: VerificationReport


@dataclass
class ImportSummary:
    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def _write_json(path: Path, payload: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def extract_citation_data(
    pdf_path: str | Path, client: GrobidClient, tei_output_dir: str | Path | None = None
) -> CitationData:
    path = Path(pdf_path)
    tei = client.process_fulltext(path)
    if tei_output_dir is not None:
        tei_path = Path(tei_output_dir) / f"{path.stem}.tei.xml"
        tei_path.parent.mkdir(parents=True, exist_ok=True)
        tei_path.write_text(tei, encoding="utf-8")
        logger.info("Saved extraction markup to %s", tei_path)

    data = build_citation_data(tei)
    if not data.document_title:
        data.document_title = path.stem
    return data


def extract_references(pdf_path: str | Path, client: GrobidClient) -> list[EnhancedReference]:
    data = extract_citation_data(pdf_path, client)
    return enhance_references(data.reference_usage)


def references_path(pdf_path: str | Path, output_dir: str | Path) -> Path:
    return Path(output_dir) / f"{Path(pdf_path).stem}-references.json"


def save_references(references: list[EnhancedReference], pdf_path: str | Path, output_dir: str | Path) -> Path:
    path = references_path(pdf_path, output_dir)
    _write_json(path, [reference.model_dump(by_alias=True) for reference in references])
    logger.info("Saved %d references to %s", len(references), path)
    return path


def load_references(path: str | Path) -> list[EnhancedReference]:
    source = Path(path)
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
        return _REFERENCE_LIST.validate_python(payload)
    except (ValueError, ValidationError) as exc:
        raise CitecheckError(f"{source}: not a valid references file ({exc})") from exc


def verify_references(
    references: list[EnhancedReference],
    document_title: str,
    verifier: CitationVerifier,
    run_id: str | None = None,
) -> VerificationReport:
    logger.info("Verifying %d references for %r", len(references), document_title)
    return verifier.verify_all(references, document_title, run_id=run_id)


def report_path(stem: str, output_dir: str | Path) -> Path:
    return Path(output_dir) / f"{stem}-verification-report.json"


def save_report(report: VerificationReport, stem: str, output_dir: str | Path) -> Path:
    path = _write_json(report_path(stem, output_dir), report.model_dump(by_alias=True))
    logger.info("Saved verification report to %s", path)
    return path


def process_pdf(
    pdf_path: str | Path,
    client: GrobidClient,
    verifier: CitationVerifier,
    output_dir: str | Path,
    run_id: str | None = None,
) -> ProcessResult:
    """Extract references from a PDF, verify them and write both JSON files."""
    path = Path(pdf_path)
    client.ensure_alive()
    data = extract_citation_data(path, client)
    references = enhance_references(data.reference_usage)
    saved_references = save_references(references, path, output_dir)
    report = verify_references(references, data.document_title, verifier, run_id=run_id)
    saved_report = save_report(report, path.stem, output_dir)
    return ProcessResult(references_path=saved_references, report_path=saved_report, report=report)


def check_pdf_text(pdf_path: str | Path) -> PdfText:
    return read_pdf_text(pdf_path)


def ingest_pdf(
    pdf_path: str | Path,
    client: GrobidClient,
    store: DocumentStore,
    *,
    title: str | None = None,
    authors: list[str] | None = None,
    doi: str | None = None,
    year: str | None = None,
    journal: str | None = None,
    document_id: str | None = None,
) -> Document:
    """Add a PDF to the document store; explicit metadata overrides extracted metadata."""
    path = Path(pdf_path)
    metadata = DocumentParser(client.process_fulltext(path, consolidate_citations=False)).metadata()

    content = metadata.content
    if not content.strip():
        logger.info("Extraction markup for %s has no body text, reading PDF text directly", path.name)
        content = extract_pdf_text(path)
    if not content.strip():
        raise CitecheckError(f"No text could be extracted from {path.name}")

    return store.add_document(
        title or metadata.title,
        content,
        authors=authors if authors else metadata.authors,
        doi=doi or metadata.doi,
        year=year or metadata.year,
        journal=journal or metadata.journal,
        source_pdf=path.name,
        document_id=document_id,
    )


def import_pdf_directory(directory: str | Path, client: GrobidClient, store: DocumentStore) -> ImportSummary:
    """Ingest every PDF in ``directory`` that the store does not already hold."""
    client.ensure_alive()
    summary = ImportSummary()
    known = store.sources()

    for pdf in sorted(Path(directory).glob("*.pdf")):
        if pdf.name in known:
            summary.skipped.append(pdf.name)
            continue
        try:
            document = ingest_pdf(pdf, client, store)
        except (RuntimeError, OSError) as exc:
            logger.error("Failed to import %s: %s", pdf.name, exc)
            summary.failed[pdf.name] = str(exc)
            continue
        summary.imported.append(document.id)

    logger.info(
        "Imported %d PDFs (%d already stored, %d failed)",
        len(summary.imported),
        len(summary.skipped),
        len(summary.failed),
    )
    return summary
