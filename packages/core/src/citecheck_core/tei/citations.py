from __future__ import annotations

import logging
import re

from citecheck_core.types import (
    Author,
    BibReference,
    BoundingBox,
    CitationContext,
    ExtractedId,
    PageRange,
    PositionalId,
)

from .xml import Element, TeiTree, attr, children, descendants, first, first_text, node_text

logger = logging.getLogger(__name__)

CONTEXT_WINDOW_CHARS = 200

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


def parse_author(node: Element) -> Author | None:
    pers_names = children(node, "persName")
    if pers_names:
        pers_name = pers_names[0]
        author = Author(
            first_name=first_text(pers_name, "forename", type="first") or None,
            middle_name=first_text(pers_name, "forename", type="middle") or None,
            last_name=first_text(pers_name, "surname") or None,
        )
    else:
        raw = node_text(node)
        author = Author(raw_name=raw) if raw else None
    if author is None or not author.display_name:
        return None
    return author


def parse_coordinates(value: str) -> tuple[int, BoundingBox | None] | None:
    """Read the first box of a ``coords`` attribute.

    Accepts the extraction service's ``page,x,y,w,h[;...]`` form and the
    labelled ``p:page;bbox:x1,y1,x2,y2`` form.
    """
    value = value.strip()
    if not value:
        return None

    if value.startswith("p:"):
        parts = value.split(";")
        try:
            page = int(parts[0].split(":", 1)[1])
        except (IndexError, ValueError):
            return None
        if len(parts) < 2 or ":" not in parts[1]:
            return page, None
        try:
            x1, y1, x2, y2 = (float(v) for v in parts[1].split(":", 1)[1].split(",")[:4])
        except ValueError:
            return page, None
        return page, BoundingBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    first_box = value.split(";")[0].split(",")
    try:
        page = int(float(first_box[0]))
    except ValueError:
        return None
    if len(first_box) < 5:
        return page, None
    try:
        x, y, width, height = (float(v) for v in first_box[1:5])
    except ValueError:
        return page, None
    return page, BoundingBox(x=x, y=y, width=width, height=height)


def surrounding_sentence(paragraph: str, marker: str, window: int = CONTEXT_WINDOW_CHARS) -> str:
    if not marker:
        return paragraph.strip()

    for sentence in _SENTENCE_SPLIT_RE.split(paragraph):
        if marker in sentence:
            return sentence.strip()

    position = paragraph.find(marker)
    if position < 0:
        return paragraph.strip()
    start = max(0, position - window)
    end = min(len(paragraph), position + len(marker) + window)
    return paragraph[start:end].strip()


def _split_targets(raw: str) -> list[str]:
    targets: list[str] = []
    for token in raw.split():
        target = token[1:] if token.startswith("#") else token
        if target and target not in targets:
            targets.append(target)
    return targets


class CitationParser:
    """Reads bibliography entries and in-text citation markers from TEI markup."""

    def __init__(self, markup: str | bytes | None) -> None:
        self.tree = TeiTree.parse(markup)

    def extract_title(self) -> str:
        title_stmt = self.tree.find("titleStmt")
        return first_text(title_stmt, "title")

    def extract_references(self) -> list[BibReference]:
        references: list[BibReference] = []
        position = 0
        for list_bibl in self.tree.find_all("listBibl"):
            for bibl in children(list_bibl, "biblStruct"):
                references.append(self._parse_reference(bibl, position))
                position += 1
        return references

    def extract_citation_contexts(self) -> list[CitationContext]:
        contexts: list[CitationContext] = []
        for marker in self.tree.find_all("ref", type="bibr"):
            coordinates = parse_coordinates(attr(marker, "coords"))
            page, bbox = coordinates if coordinates else (1, None)
            contexts.append(
                CitationContext(
                    id=attr(marker, "id") or None,
                    text=node_text(marker),
                    page=page,
                    bbox=bbox,
                    reference_ids=_split_targets(attr(marker, "target")),
                    surrounding_text=self._surrounding_text(marker),
                )
            )
        return contexts

    def extract_full_text(self) -> str:
        body = self.tree.find("body")
        paragraphs = [node_text(p) for p in descendants(body, "p")]
        return "\n\n".join(text for text in paragraphs if text)

    def extract_document_authors(self) -> list[Author]:
        title_stmt = self.tree.find("titleStmt")
        authors = [parse_author(node) for node in descendants(title_stmt, "author")]
        return [author for author in authors if author is not None]

    def _parse_reference(self, bibl: Element, position: int) -> BibReference:
        xml_id = attr(bibl, "id")
        ref_id: ExtractedId | PositionalId = (
            ExtractedId(value=xml_id) if xml_id else PositionalId(index=position)
        )

        date_node = first(bibl, "date", type="published")
        if date_node is None:
            date_node = first(bibl, "date")
        date = attr(date_node, "when") or node_text(date_node)

        page_scope = first(bibl, "biblScope", unit="page")
        page_start = attr(page_scope, "from") or node_text(page_scope)

        authors = [parse_author(node) for node in descendants(bibl, "author")]

        return BibReference(
            id=ref_id,
            title=first_text(bibl, "title", level=("a", "m")) or None,
            authors=[author for author in authors if author is not None],
            date=date or None,
            journal=first_text(bibl, "title", level="j") or None,
            volume=first_text(bibl, "biblScope", unit="volume") or None,
            issue=first_text(bibl, "biblScope", unit="issue") or None,
            pages=PageRange(start=page_start or None, end=attr(page_scope, "to") or None),
            doi=first_text(bibl, "idno", type="DOI") or None,
            raw_text=first_text(bibl, "note", type="raw_reference") or None,
        )

    def _surrounding_text(self, marker: Element) -> str:
        container = self.tree.ancestor(marker, "p")
        if container is None:
            container = self.tree.parent(marker)
        if container is None:
            return ""
        return surrounding_sentence(node_text(container), node_text(marker))
