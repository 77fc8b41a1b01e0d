from __future__ import annotations

import re
from dataclasses import dataclass, field

from .citations import parse_author
from .xml import TeiTree, attr, descendants, first, first_text, node_text

UNTITLED_DOCUMENT = "Untitled Document"

_YEAR_RE = re.compile(r"\b(\d{4})\b")


@dataclass(frozen=True)
class DocumentMetadata:
    title: str
    authors: list[str] = field(default_factory=list)
    year: str | None = None
    journal: str | None = None
    doi: str | None = None
    content: str = ""


class DocumentParser:
    """Metadata and body text of a processed PDF, for storing it as evidence."""

    def __init__(self, markup: str | bytes | None) -> None:
        self.tree = TeiTree.parse(markup)

    def title(self) -> str:
        title = first_text(self.tree.find("titleStmt"), "title")
        if not title:
            title = first_text(self.tree.find("sourceDesc"), "title")
        return title or UNTITLED_DOCUMENT

    def authors(self) -> list[str]:
        names = self._author_names(self.tree.find("titleStmt"))
        if not names:
            source = self.tree.find("sourceDesc")
            names = self._author_names(first(source, "biblStruct"))
        return names

    def year(self) -> str | None:
        for date in self.tree.find_all("date"):
            value = attr(date, "when") or node_text(date)
            match = _YEAR_RE.search(value)
            if match:
                return match.group(1)
        return None

    def journal(self) -> str | None:
        return first_text(self.tree.find("sourceDesc"), "title", level="j") or None

    def doi(self) -> str | None:
        doi = first_text(self.tree.find("sourceDesc"), "idno", type="DOI")
        if not doi:
            idno = self.tree.find("idno")
            doi = node_text(idno)
        return doi or None

    def content(self) -> str:
        body = self.tree.find("body")
        paragraphs = [node_text(p) for p in descendants(body, "p")]
        text = " ".join(p for p in paragraphs if p)
        return text or node_text(body)

    def metadata(self) -> DocumentMetadata:
        return DocumentMetadata(
            title=self.title(),
            authors=self.authors(),
            year=self.year(),
            journal=self.journal(),
            doi=self.doi(),
            content=self.content(),
        )

    @staticmethod
    def _author_names(node) -> list[str]:
        names: list[str] = []
        for author_node in descendants(node, "author"):
            author = parse_author(author_node)
            if author is not None and author.display_name not in names:
                names.append(author.display_name)
        return names
