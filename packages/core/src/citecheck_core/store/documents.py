from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from citecheck_core.errors import StoreCorruption
from citecheck_core.types import Document, ReferenceSummary

from .index import LookupIndex
from .normalize import (
    LOOSE_MATCH_THRESHOLD,
    has_common_authors,
    normalize_doi,
    normalize_title_key,
    slugify_title,
    titles_similar,
    word_match_ratio,
)

logger = logging.getLogger(__name__)

DOCUMENTS_DIR = "documents"
INDEX_FILE = "index.json"
FETCH_LIST_FILE = "fetch-list.json"

_REQUIRED_FIELDS = ("id", "title", "content")


@dataclass(frozen=True)
class LookupMatch:
    document: Document
    strategy: str


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def decode_document(raw: str, source: str) -> Document:
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise StoreCorruption(source, f"invalid JSON ({exc})") from exc
    if not isinstance(payload, dict):
        raise StoreCorruption(source, "expected a JSON object")

    missing = [name for name in _REQUIRED_FIELDS if not payload.get(name)]
    if missing:
        raise StoreCorruption(source, f"missing required fields: {', '.join(missing)}")
    if not isinstance(payload.get("authors"), list):
        payload["authors"] = []
    payload.setdefault("filePath", source)

    try:
        return Document.model_validate(payload)
    except ValidationError as exc:
        raise StoreCorruption(source, f"invalid document record ({exc.error_count()} errors)") from exc


class DocumentStore:
    """Flat-file store of evidence documents plus a derived lookup index.

    Layout under ``root``: ``documents/<id>.json`` (one record each),
    ``index.json`` and ``fetch-list.json``. A single re-entrant lock serializes
    index reads and writes.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.documents_dir = self.root / DOCUMENTS_DIR
        self.index_path = self.root / INDEX_FILE
        self.fetch_list_path = self.root / FETCH_LIST_FILE
        self._lock = threading.RLock()
        self._index: LookupIndex | None = None

    def ensure_layout(self) -> None:
        self.documents_dir.mkdir(parents=True, exist_ok=True)

    # records

    def _relative_path(self, document_id: str) -> str:
        return f"{DOCUMENTS_DIR}/{document_id}.json"

    def _read_record(self, relative_path: str) -> Document:
        path = self.root / relative_path
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreCorruption(relative_path, f"unreadable ({exc})") from exc
        return decode_document(raw, relative_path)

    def _load_record(self, relative_path: str) -> Document | None:
        if not (self.root / relative_path).exists():
            return None
        try:
            return self._read_record(relative_path)
        except StoreCorruption as exc:
            logger.warning("Skipping corrupt document record %s", exc)
            return None

    def iter_documents(self) -> Iterator[tuple[str, Document]]:
        if not self.documents_dir.is_dir():
            return
        for path in sorted(self.documents_dir.glob("*.json")):
            relative_path = self._relative_path(path.stem)
            document = self._load_record(relative_path)
            if document is not None:
                yield relative_path, document

    def _unique_id(self, title: str) -> str:
        base = slugify_title(title)
        candidate = base
        counter = 1
        while (self.documents_dir / f"{candidate}.json").exists():
            candidate = f"{base}_{counter}"
            counter += 1
        return candidate

    def add_document(
        self,
        title: str,
        content: str,
        *,
        authors: list[str] | None = None,
        doi: str | None = None,
        year: str | None = None,
        journal: str | None = None,
        source_pdf: str | None = None,
        document_id: str | None = None,
    ) -> Document:
        """Store a document and index it.

        Passing ``document_id`` replaces an existing record with that id.
        """
        with self._lock:
            self.ensure_layout()
            index = self.load_index()
            if document_id:
                relative_path = self._relative_path(document_id)
                index.discard(relative_path)
            else:
                document_id = self._unique_id(title)
                relative_path = self._relative_path(document_id)

            document = Document(
                id=document_id,
                title=title,
                authors=list(authors or []),
                doi=doi or None,
                file_path=relative_path,
                content=content,
                year=year or None,
                journal=journal or None,
                source_pdf=source_pdf,
            )
            _write_atomic(
                self.root / relative_path,
                json.dumps(document.model_dump(by_alias=True), indent=2, ensure_ascii=False) + "\n",
            )
            index.add(relative_path, document)
            self._write_index(index)

        logger.info("Stored document %s (%s)", document.id, document.title)
        return document

    def get_document(self, document_id: str) -> Document | None:
        return self._load_record(self._relative_path(document_id))

    def list_documents(self) -> list[Document]:
        return [document for _, document in self.iter_documents()]

    def remove_document(self, document_id: str) -> bool:
        relative_path = self._relative_path(document_id)
        with self._lock:
            path = self.root / relative_path
            if not path.exists():
                return False
            path.unlink()
            index = self.load_index()
            index.discard(relative_path)
            self._write_index(index)
        logger.info("Removed document %s", document_id)
        return True

    # index

    def _write_index(self, index: LookupIndex) -> None:
        _write_atomic(self.index_path, index.to_json())
        self._index = index

    def load_index(self) -> LookupIndex:
        with self._lock:
            if self._index is not None:
                return self._index
            if self.index_path.exists():
                try:
                    self._index = LookupIndex.from_json(
                        self.index_path.read_text(encoding="utf-8"), source=INDEX_FILE
                    )
                    return self._index
                except StoreCorruption as exc:
                    logger.warning("Lookup index is corrupt, rebuilding: %s", exc)
            return self.rebuild_index()

    def rebuild_index(self) -> LookupIndex:
        with self._lock:
            if self.index_path.exists():
                self.index_path.unlink()
            index = LookupIndex.from_documents(self.iter_documents())
            self._write_index(index)
        logger.info("Rebuilt lookup index (%d titles)", len(index.by_title))
        return index

    # lookup

    def _documents_at(self, paths: list[str]) -> list[Document]:
        documents = []
        for relative_path in paths:
            document = self._load_record(relative_path)
            if document is not None:
                documents.append(document)
        return documents

    def _indexed_then_scanned(self, paths: list[str]) -> Iterator[Document]:
        """Indexed candidates first, then every other record on disk.

        The index can lag behind the document files, so a miss among the
        indexed candidates still falls through to a full scan.
        """
        seen = set(paths)
        yield from self._documents_at(paths)
        for relative_path, document in self.iter_documents():
            if relative_path not in seen:
                yield document

    def _by_doi(self, index: LookupIndex, doi: str | None) -> Document | None:
        wanted = normalize_doi(doi)
        if not wanted:
            return None
        path = index.doi_path(wanted)
        if path:
            document = self._load_record(path)
            if document is not None and normalize_doi(document.doi) == wanted:
                return document
        for _, document in self.iter_documents():
            if normalize_doi(document.doi) == wanted:
                return document
        return None

    def _by_title(self, index: LookupIndex, title: str | None) -> Document | None:
        wanted = normalize_title_key(title)
        if not wanted:
            return None
        path = index.title_path(wanted)
        if path:
            document = self._load_record(path)
            if document is not None and normalize_title_key(document.title) == wanted:
                return document
        return None

    def _by_title_words(self, index: LookupIndex, title: str | None) -> Document | None:
        if not title:
            return None
        for document in self._indexed_then_scanned(index.title_word_paths(title)):
            if titles_similar(title, document.title):
                return document
        return None

    def _by_author_year(self, index: LookupIndex, authors: list[str], year: str | None) -> Document | None:
        if not authors or not year:
            return None
        for document in self._indexed_then_scanned(index.year_paths(year)):
            if document.year and document.year.strip() == year.strip() and has_common_authors(
                authors, document.authors
            ):
                return document
        return None

    def lookup(self, reference: ReferenceSummary) -> LookupMatch | None:
        """Find the stored document a reference points at.

        Tries DOI, exact title, similar title and finally author plus year,
        stopping at the first hit.
        """
        with self._lock:
            index = self.load_index()
            document = self._by_doi(index, reference.doi)
            if document is not None:
                return LookupMatch(document, "doi")
            document = self._by_title(index, reference.title)
            if document is not None:
                return LookupMatch(document, "title")
            document = self._by_title_words(index, reference.title)
            if document is not None:
                return LookupMatch(document, "title_words")
            document = self._by_author_year(index, reference.authors, reference.year)
            if document is not None:
                return LookupMatch(document, "author_year")
        return None

    def find_documents(self, reference: ReferenceSummary) -> list[Document]:
        match = self.lookup(reference)
        return [match.document] if match else []

    def find_matching_documents(self, title: str) -> list[Document]:
        """Best-effort lookup when only a title string is known."""
        with self._lock:
            index = self.load_index()
            document = self._by_title(index, title) or self._by_title_words(index, title)
            if document is not None:
                return [document]
            return [
                document
                for document in self.list_documents()
                if word_match_ratio(title, document.title) >= LOOSE_MATCH_THRESHOLD
            ]

    # fetch list

    def load_fetch_list(self) -> list[ReferenceSummary]:
        if not self.fetch_list_path.exists():
            return []
        try:
            payload = json.loads(self.fetch_list_path.read_text(encoding="utf-8"))
            if not isinstance(payload, list):
                raise ValueError("expected a JSON list")
            return [ReferenceSummary.model_validate(entry) for entry in payload]
        except (ValueError, ValidationError) as exc:
            corrupt_path = self.fetch_list_path.with_name(FETCH_LIST_FILE + ".corrupt")
            logger.warning("Fetch list is corrupt, moving it to %s: %s", corrupt_path.name, exc)
            os.replace(self.fetch_list_path, corrupt_path)
            return []

    def add_to_fetch_list(self, reference: ReferenceSummary) -> bool:
        with self._lock:
            entries = self.load_fetch_list()
            key = normalize_title_key(reference.title)
            if any(normalize_title_key(entry.title) == key for entry in entries):
                return False
            entries.append(reference)
            _write_atomic(
                self.fetch_list_path,
                json.dumps([entry.model_dump(by_alias=True) for entry in entries], indent=2, ensure_ascii=False)
                + "\n",
            )
        logger.info("Added %r to the fetch list", reference.title)
        return True

    def sources(self) -> set[str]:
        return {document.source_pdf for document in self.list_documents() if document.source_pdf}
