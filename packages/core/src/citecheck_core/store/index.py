from __future__ import annotations

import json
from collections.abc import Iterable

from citecheck_core.errors import StoreCorruption
from citecheck_core.types import Document

from .normalize import normalize_doi, normalize_title_key, significant_words


class LookupIndex:
    """Derived lookup tables over stored documents, keyed to record paths.

    Paths are relative to the store root (``documents/<id>.json``).
    """

    def __init__(
        self,
        by_doi: dict[str, str] | None = None,
        by_title: dict[str, str] | None = None,
        by_title_words: dict[str, list[str]] | None = None,
        by_year: dict[str, list[str]] | None = None,
    ) -> None:
        self.by_doi = by_doi or {}
        self.by_title = by_title or {}
        self.by_title_words = by_title_words or {}
        self.by_year = by_year or {}

    @classmethod
    def from_documents(cls, documents: Iterable[tuple[str, Document]]) -> LookupIndex:
        index = cls()
        for path, document in sorted(documents, key=lambda item: item[0]):
            index.add(path, document)
        return index

    def add(self, path: str, document: Document) -> None:
        doi = normalize_doi(document.doi)
        if doi:
            self.by_doi[doi] = path

        title = normalize_title_key(document.title)
        if title:
            self.by_title[title] = path

        for word in significant_words(document.title):
            paths = self.by_title_words.setdefault(word, [])
            if path not in paths:
                paths.append(path)

        if document.year:
            paths = self.by_year.setdefault(document.year.strip(), [])
            if path not in paths:
                paths.append(path)

    def discard(self, path: str) -> None:
        for table in (self.by_doi, self.by_title):
            for key in [key for key, value in table.items() if value == path]:
                del table[key]
        for table in (self.by_title_words, self.by_year):
            for key in list(table):
                if path in table[key]:
                    table[key].remove(path)
                if not table[key]:
                    del table[key]

    def doi_path(self, doi: str | None) -> str | None:
        return self.by_doi.get(normalize_doi(doi))

    def title_path(self, title: str | None) -> str | None:
        return self.by_title.get(normalize_title_key(title))

    def title_word_paths(self, title: str | None) -> list[str]:
        paths: list[str] = []
        for word in sorted(significant_words(title)):
            for path in self.by_title_words.get(word, []):
                if path not in paths:
                    paths.append(path)
        return paths

    def year_paths(self, year: str | None) -> list[str]:
        if not year:
            return []
        return list(self.by_year.get(year.strip(), []))

    def to_dict(self) -> dict[str, object]:
        return {
            "byDoi": dict(sorted(self.by_doi.items())),
            "byTitle": dict(sorted(self.by_title.items())),
            "byTitleWords": {word: sorted(paths) for word, paths in sorted(self.by_title_words.items())},
            "byYear": {year: sorted(paths) for year, paths in sorted(self.by_year.items())},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_json(cls, raw: str, source: str = "index.json") -> LookupIndex:
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise StoreCorruption(source, f"invalid JSON ({exc})") from exc
        if not isinstance(payload, dict):
            raise StoreCorruption(source, "expected a JSON object")

        def table(name: str) -> dict:
            value = payload.get(name) or {}
            if not isinstance(value, dict):
                raise StoreCorruption(source, f"{name} must be an object")
            return value

        return cls(
            by_doi={str(k): str(v) for k, v in table("byDoi").items()},
            by_title={str(k): str(v) for k, v in table("byTitle").items()},
            by_title_words={str(k): [str(p) for p in v] for k, v in table("byTitleWords").items()},
            by_year={str(k): [str(p) for p in v] for k, v in table("byYear").items()},
        )
