from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal
from uuid import uuid4

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, HTTPException, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import Field

from citecheck_core.errors import CitecheckError, UpstreamError, UpstreamRejected
from citecheck_core.grobid import GrobidClient
from citecheck_core.matching import enhance_references
from citecheck_core.pipeline import extract_citation_data, ingest_pdf
from citecheck_core.progress import TERMINAL_STATUSES, ProgressHub
from citecheck_core.store import DocumentStore
from citecheck_core.types import (
    CamelModel,
    Document,
    EnhancedReference,
    ProgressEvent,
    ReferenceSummary,
    VerificationReport,
)
from citecheck_core.verify import Oracle

from app.logging_config import setup_logging
from app.runs import RunRecord, RunRegistry, execute_run
from app.services import (
    get_document_store,
    get_grobid_client,
    get_oracle,
    get_progress_hub,
    get_run_registry,
    get_settings,
)
from app.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SSE_KEEPALIVE_SECONDS = 15.0


class ExtractionStatusResponse(CamelModel):
    alive: bool
    url: str


class ExtractResponse(CamelModel):
    document_title: str
    references: list[EnhancedReference]
    orphaned_citations: int = 0
    unresolved_targets: list[str] = Field(default_factory=list)


class RunCreatedResponse(CamelModel):
    run_id: str
    status: str


class DocumentSummary(CamelModel):
    id: str
    title: str
    authors: list[str] = Field(default_factory=list)
    doi: str | None = None
    year: str | None = None
    journal: str | None = None
    source_pdf: str | None = None


class IndexRebuildResponse(CamelModel):
    dois: int
    titles: int
    title_words: int
    years: int


def _summary(document: Document) -> DocumentSummary:
    return DocumentSummary(
        id=document.id,
        title=document.title,
        authors=document.authors,
        doi=document.doi,
        year=document.year,
        journal=document.journal,
        source_pdf=document.source_pdf,
    )


def _upstream_http_error(exc: UpstreamError) -> HTTPException:
    status_code = 502 if isinstance(exc, UpstreamRejected) else 503
    return HTTPException(status_code=status_code, detail=str(exc))


async def _save_upload(file: UploadFile, directory: Path) -> Path:
    if not file.filename:
        raise HTTPException(status_code=400, detail="Missing filename")
    filename = Path(file.filename).name
    if Path(filename).suffix.lower() != ".pdf":
        raise HTTPException(status_code=400, detail="Only .pdf files are supported")
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_bytes(await file.read())
    return path


def create_app(config: Settings | None = None) -> FastAPI:
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.log_level)
        Path(config.storage_dir).mkdir(parents=True, exist_ok=True)
        store = DocumentStore(config.document_db_path)
        store.ensure_layout()
        app.state.settings = config
        app.state.document_store = store
        app.state.progress_hub = ProgressHub(grace_seconds=config.progress_grace_seconds)
        app.state.run_registry = RunRegistry()
        yield

    app = FastAPI(title="Citecheck API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/extraction/status", response_model=ExtractionStatusResponse)
    def extraction_status(client: GrobidClient = Depends(get_grobid_client)) -> ExtractionStatusResponse:
        return ExtractionStatusResponse(alive=client.is_alive(), url=client.base_url)

    @app.post("/v1/references/extract", response_model=ExtractResponse, response_model_by_alias=True)
    async def extract(
        file: UploadFile = File(...),
        config: Settings = Depends(get_settings),
        client: GrobidClient = Depends(get_grobid_client),
    ) -> ExtractResponse:
        pdf_path = await _save_upload(file, Path(config.storage_dir) / uuid4().hex)
        try:
            data = extract_citation_data(pdf_path, client)
        except UpstreamError as exc:
            raise _upstream_http_error(exc) from exc
        return ExtractResponse(
            document_title=data.document_title,
            references=enhance_references(data.reference_usage),
            orphaned_citations=len(data.diagnostics.orphaned_citations),
            unresolved_targets=data.diagnostics.unresolved_targets,
        )

    @app.post("/v1/runs", response_model=RunCreatedResponse, status_code=202)
    async def create_run(
        background_tasks: BackgroundTasks,
        file: UploadFile = File(...),
        missing_ref_handling: Literal["skip", "log", "fetch"] | None = Form(default=None),
        config: Settings = Depends(get_settings),
        client: GrobidClient = Depends(get_grobid_client),
        oracle: Oracle = Depends(get_oracle),
        store: DocumentStore = Depends(get_document_store),
        hub: ProgressHub = Depends(get_progress_hub),
        registry: RunRegistry = Depends(get_run_registry),
    ) -> RunCreatedResponse:
        policy = missing_ref_handling or config.missing_ref_handling
        if policy == "prompt":
            raise HTTPException(status_code=400, detail="The prompt policy needs an interactive terminal")

        hub.reap()
        run_id = uuid4().hex
        pdf_path = await _save_upload(file, Path(config.storage_dir) / run_id)
        record = registry.create(pdf_path, policy, run_id=run_id)
        hub.open_run(run_id)
        hub.publish(run_id, ProgressEvent(run_id=run_id, current_reference="Extracting references"))
        background_tasks.add_task(
            execute_run,
            record,
            client=client,
            store=store,
            oracle=oracle,
            hub=hub,
            content_char_budget=config.content_char_budget,
            max_workers=config.verification_workers,
        )
        return RunCreatedResponse(run_id=run_id, status=record.status)

    def _require_run(registry: RunRegistry, run_id: str) -> RunRecord:
        record = registry.get(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return record

    @app.get("/v1/runs/{run_id}/progress", response_model=ProgressEvent, response_model_by_alias=True)
    def run_progress(
        run_id: str,
        hub: ProgressHub = Depends(get_progress_hub),
        registry: RunRegistry = Depends(get_run_registry),
    ) -> ProgressEvent:
        record = _require_run(registry, run_id)
        latest = hub.latest(run_id)
        if latest is None:
            return ProgressEvent(run_id=run_id, status=record.status, error=record.error)
        return latest

    @app.get("/v1/runs/{run_id}/events")
    def run_events(
        run_id: str,
        hub: ProgressHub = Depends(get_progress_hub),
        registry: RunRegistry = Depends(get_run_registry),
    ) -> StreamingResponse:
        record = _require_run(registry, run_id)
        subscription = hub.subscribe(run_id)
        if hub.latest(run_id) is None:
            subscription.put(ProgressEvent(run_id=run_id, status=record.status, error=record.error))

        def stream() -> Iterator[str]:
            try:
                while True:
                    event = subscription.get(timeout=SSE_KEEPALIVE_SECONDS)
                    if event is None:
                        yield ": keep-alive\n\n"
                        continue
                    yield f"data: {json.dumps(event.model_dump(by_alias=True))}\n\n"
                    if event.status in TERMINAL_STATUSES:
                        return
            finally:
                hub.unsubscribe(subscription)

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.get("/v1/runs/{run_id}/report", response_model=VerificationReport, response_model_by_alias=True)
    def run_report(run_id: str, registry: RunRegistry = Depends(get_run_registry)) -> VerificationReport:
        record = _require_run(registry, run_id)
        if record.report is None:
            detail = record.error or "Run is still processing"
            raise HTTPException(status_code=409, detail=detail)
        return record.report

    @app.post("/v1/runs/{run_id}/cancel", response_model=RunCreatedResponse)
    def cancel_run(run_id: str, registry: RunRegistry = Depends(get_run_registry)) -> RunCreatedResponse:
        record = _require_run(registry, run_id)
        if record.status == "processing":
            record.cancel_event.set()
            logger.info("Cancellation requested for run %s", run_id)
        return RunCreatedResponse(run_id=run_id, status=record.status)

    @app.get("/v1/documents", response_model=list[DocumentSummary], response_model_by_alias=True)
    def list_documents(store: DocumentStore = Depends(get_document_store)) -> list[DocumentSummary]:
        return [_summary(document) for document in store.list_documents()]

    @app.post("/v1/documents", response_model=DocumentSummary, response_model_by_alias=True, status_code=201)
    async def add_document(
        file: UploadFile = File(...),
        title: str | None = Form(default=None),
        authors: str | None = Form(default=None),
        doi: str | None = Form(default=None),
        year: str | None = Form(default=None),
        journal: str | None = Form(default=None),
        config: Settings = Depends(get_settings),
        client: GrobidClient = Depends(get_grobid_client),
        store: DocumentStore = Depends(get_document_store),
    ) -> DocumentSummary:
        pdf_path = await _save_upload(file, Path(config.storage_dir) / uuid4().hex)
        author_list = [name.strip() for name in authors.split(",") if name.strip()] if authors else None
        try:
            document = ingest_pdf(
                pdf_path,
                client,
                store,
                title=title,
                authors=author_list,
                doi=doi,
                year=year,
                journal=journal,
            )
        except UpstreamError as exc:
            raise _upstream_http_error(exc) from exc
        except CitecheckError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _summary(document)

    @app.get("/v1/documents/{document_id}", response_model=Document, response_model_by_alias=True)
    def get_document(document_id: str, store: DocumentStore = Depends(get_document_store)) -> Document:
        document = store.get_document(document_id)
        if document is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    @app.delete("/v1/documents/{document_id}", status_code=204)
    def delete_document(document_id: str, store: DocumentStore = Depends(get_document_store)) -> Response:
        if not store.remove_document(document_id):
            raise HTTPException(status_code=404, detail="Document not found")
        return Response(status_code=204)

    @app.post("/v1/index/rebuild", response_model=IndexRebuildResponse, response_model_by_alias=True)
    def rebuild_index(store: DocumentStore = Depends(get_document_store)) -> IndexRebuildResponse:
        index = store.rebuild_index()
        return IndexRebuildResponse(
            dois=len(index.by_doi),
            titles=len(index.by_title),
            title_words=len(index.by_title_words),
            years=len(index.by_year),
        )

    @app.get("/v1/fetch-list", response_model=list[ReferenceSummary], response_model_by_alias=True)
    def fetch_list(store: DocumentStore = Depends(get_document_store)) -> list[ReferenceSummary]:
        return store.load_fetch_list()

    return app


app = create_app()
