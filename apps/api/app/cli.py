from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from citecheck_core.errors import CitecheckError, UpstreamError
from citecheck_core.export import export_citation_csv
from citecheck_core.grobid import START_HINT
from citecheck_core.matching import enhance_references
from citecheck_core.pipeline import (
    extract_citation_data,
    import_pdf_directory,
    ingest_pdf,
    load_references,
    process_pdf,
    save_references,
    save_report,
    verify_references,
)
from citecheck_core.progress import ProgressFileWriter
from citecheck_core.store import DocumentStore
from citecheck_core.types import ProgressEvent
from citecheck_core.verify import CitationVerifier, summarize_report

from app.logging_config import setup_logging
from app.services import build_grobid_client, build_oracle
from app.settings import Settings, validate_settings

console = Console()
err_console = Console(stderr=True)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="citecheck", description="Extract and verify citations in scholarly PDFs")
    parser.add_argument("--output-dir", default=".", help="Directory for generated JSON files")
    parser.add_argument(
        "--missing-ref-handling",
        choices=["skip", "log", "prompt", "fetch"],
        default=None,
        help="What to do with references missing from the document database",
    )
    parser.add_argument("--api-key", default=None, help="Gemini API key (overrides GEMINI_API_KEY)")
    parser.add_argument("--workers", type=int, default=None, help="Parallel verification calls")
    parser.add_argument("--progress-file", default=None, help="Mirror progress events into this JSON file")
    parser.add_argument("--db-path", default=None, help="Document database directory")
    parser.add_argument("--grobid-url", default=None, help="Extraction service URL")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    extract = commands.add_parser("extract", help="Extract references from a PDF")
    extract.add_argument("pdf")
    extract.add_argument("--tei-dir", default=None, help="Also save the raw extraction markup here")
    extract.add_argument("--csv", default=None, help="Also export citation contexts as CSV")

    verify = commands.add_parser("verify", help="Verify a saved references file")
    verify.add_argument("references")
    verify.add_argument("--title", default=None, help="Document title for the report")

    process = commands.add_parser("process", help="Extract and verify in one step")
    process.add_argument("pdf")

    add_document = commands.add_parser("add-document", help="Add a PDF to the document database")
    add_document.add_argument("pdf")
    add_document.add_argument("--title")
    add_document.add_argument("--authors", help="Comma-separated author names")
    add_document.add_argument("--doi")
    add_document.add_argument("--year")
    add_document.add_argument("--journal")
    add_document.add_argument("--id", dest="document_id", help="Replace the document with this id")

    commands.add_parser("list-documents", help="List stored documents")
    commands.add_parser("rebuild-index", help="Regenerate the lookup index from stored documents")
    commands.add_parser("fetch-list", help="Show references queued for acquisition")
    commands.add_parser("check-config", help="Report configuration problems")

    import_pdfs = commands.add_parser("import-pdfs", help="Add every new PDF in a directory")
    import_pdfs.add_argument("directory")

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    config = Settings()
    overrides: dict[str, object] = {}
    if args.missing_ref_handling:
        overrides["missing_ref_handling"] = args.missing_ref_handling
    if args.api_key:
        overrides["gemini_api_key"] = args.api_key
    if args.workers:
        overrides["verification_workers"] = max(1, args.workers)
    if args.db_path:
        overrides["document_db_path"] = args.db_path
    if args.grobid_url:
        overrides["grobid_url"] = args.grobid_url
    return config.model_copy(update=overrides)


def _progress_listener(args: argparse.Namespace) -> Callable[[ProgressEvent], None] | None:
    return ProgressFileWriter(args.progress_file) if args.progress_file else None


def _verifier(config: Settings, store: DocumentStore, args: argparse.Namespace) -> CitationVerifier:
    return CitationVerifier(
        store,
        build_oracle(config),
        missing_ref_handling=config.missing_ref_handling,
        content_char_budget=config.content_char_budget,
        on_progress=_progress_listener(args),
        max_workers=config.verification_workers,
    )


def _cmd_extract(args: argparse.Namespace, config: Settings) -> int:
    client = build_grobid_client(config)
    client.ensure_alive()
    data = extract_citation_data(args.pdf, client, tei_output_dir=args.tei_dir)
    references = enhance_references(data.reference_usage)
    path = save_references(references, args.pdf, args.output_dir)
    if args.csv:
        export_citation_csv(data, args.csv)
    console.print(f"Extracted {len(references)} references from [bold]{escape(data.document_title)}[/]")
    if data.diagnostics.orphaned_citations:
        console.print(f"{len(data.diagnostics.orphaned_citations)} citations could not be matched to a reference")
    console.print(f"Saved to {path}")
    return 0


def _cmd_verify(args: argparse.Namespace, config: Settings) -> int:
    references_file = Path(args.references)
    stem = references_file.stem.removesuffix("-references")
    references = load_references(references_file)
    store = DocumentStore(config.document_db_path)
    report = verify_references(references, args.title or stem, _verifier(config, store, args))
    path = save_report(report, stem, args.output_dir)
    console.print(escape(summarize_report(report)))
    console.print(f"Report saved to {path}")
    return 0


def _cmd_process(args: argparse.Namespace, config: Settings) -> int:
    store = DocumentStore(config.document_db_path)
    result = process_pdf(args.pdf, build_grobid_client(config), _verifier(config, store, args), args.output_dir)
    console.print(escape(summarize_report(result.report)))
    console.print(f"References saved to {result.references_path}")
    console.print(f"Report saved to {result.report_path}")
    return 0


def _cmd_add_document(args: argparse.Namespace, config: Settings) -> int:
    client = build_grobid_client(config)
    client.ensure_alive()
    authors = [name.strip() for name in args.authors.split(",") if name.strip()] if args.authors else None
    document = ingest_pdf(
        args.pdf,
        client,
        DocumentStore(config.document_db_path),
        title=args.title,
        authors=authors,
        doi=args.doi,
        year=args.year,
        journal=args.journal,
        document_id=args.document_id,
    )
    console.print(f"Added document [bold]{document.id}[/]: {escape(document.title)}")
    return 0


def _cmd_list_documents(args: argparse.Namespace, config: Settings) -> int:
    documents = DocumentStore(config.document_db_path).list_documents()
    if not documents:
        console.print("No documents in the database.")
        return 0
    table = Table(title=f"{len(documents)} documents")
    for column in ("ID", "Title", "Authors", "Year", "DOI"):
        table.add_column(column)
    for document in documents:
        table.add_row(
            document.id,
            escape(document.title),
            escape(", ".join(document.authors)),
            escape(document.year or ""),
            escape(document.doi or ""),
        )
    console.print(table)
    return 0


def _cmd_rebuild_index(args: argparse.Namespace, config: Settings) -> int:
    index = DocumentStore(config.document_db_path).rebuild_index()
    console.print(f"Index rebuilt: {len(index.by_title)} titles, {len(index.by_doi)} DOIs, {len(index.by_year)} years")
    return 0


def _cmd_fetch_list(args: argparse.Namespace, config: Settings) -> int:
    entries = DocumentStore(config.document_db_path).load_fetch_list()
    if not entries:
        console.print("Fetch list is empty.")
        return 0
    for entry in entries:
        console.print(f"- {escape(entry.title)}" + (f" (doi: {entry.doi})" if entry.doi else ""))
    return 0


def _cmd_check_config(args: argparse.Namespace, config: Settings) -> int:
    issues = validate_settings(config)
    for issue in issues:
        err_console.print(f"[yellow]![/] {issue}")
    if not issues:
        console.print("Configuration looks good.")
    return 1 if issues else 0


def _cmd_import_pdfs(args: argparse.Namespace, config: Settings) -> int:
    summary = import_pdf_directory(args.directory, build_grobid_client(config), DocumentStore(config.document_db_path))
    console.print(
        f"Imported {len(summary.imported)} PDFs, skipped {len(summary.skipped)} already stored, "
        f"{len(summary.failed)} failed"
    )
    for name, error in summary.failed.items():
        err_console.print(f"  {name}: {error}")
    return 1 if summary.failed else 0


COMMANDS: dict[str, Callable[[argparse.Namespace, Settings], int]] = {
    "extract": _cmd_extract,
    "verify": _cmd_verify,
    "process": _cmd_process,
    "add-document": _cmd_add_document,
    "list-documents": _cmd_list_documents,
    "rebuild-index": _cmd_rebuild_index,
    "fetch-list": _cmd_fetch_list,
    "check-config": _cmd_check_config,
    "import-pdfs": _cmd_import_pdfs,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config = _settings_from_args(args)
    setup_logging(config.log_level, verbose=args.verbose)

    try:
        return COMMANDS[args.command](args, config)
    except UpstreamError as exc:
        err_console.print(f"[red]Error:[/] {escape(str(exc))}")
        if exc.service == "extraction" and START_HINT not in str(exc):
            err_console.print(START_HINT)
        return 1
    except (CitecheckError, FileNotFoundError) as exc:
        err_console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
