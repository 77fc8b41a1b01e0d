from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

INCONCLUSIVE_CONFIDENCE = -1.0

MissingReferenceHandling = Literal["skip", "log", "prompt", "fetch"]
ReferenceStatus = Literal["valid", "invalid", "uncertain"]
RunStatus = Literal["processing", "completed", "error", "cancelled"]

_YEAR_RE = re.compile(r"\b(\d{4})\b")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Author(CamelModel):
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    raw_name: str | None = None

    @property
    def display_name(self) -> str:
        if self.raw_name and self.raw_name.strip():
            return " ".join(self.raw_name.split())
        given = " ".join(part for part in (self.first_name, self.middle_name) if part)
        if self.last_name and given:
            return f"{self.last_name}, {given}"
        return (self.last_name or given).strip()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Author):
            return NotImplemented
        return self.display_name == other.display_name

    def __hash__(self) -> int:
        return hash(self.display_name)


class ExtractedId(BaseModel):
    """Identifier assigned by the extraction service (``xml:id``)."""

    kind: Literal["extracted"] = "extracted"
    value: str

    @property
    def label(self) -> str:
        return self.value


class PositionalId(BaseModel):
    """Run-local identifier synthesized from the bibliography position.

    Never resolvable from an in-text citation target.
    """

    kind: Literal["positional"] = "positional"
    index: int

    @property
    def label(self) -> str:
        return f"b{self.index}"


ReferenceId = Annotated[ExtractedId | PositionalId, Field(discriminator="kind")]


class PageRange(CamelModel):
    start: str | None = None
    end: str | None = None


class BibReference(CamelModel):
    id: ReferenceId
    title: str | None = None
    authors: list[Author] = Field(default_factory=list)
    date: str | None = None
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: PageRange = Field(default_factory=PageRange)
    doi: str | None = None
    raw_text: str | None = None

    @property
    def year(self) -> str | None:
        if not self.date:
            return None
        match = _YEAR_RE.search(self.date)
        return match.group(1) if match else None


class BoundingBox(CamelModel):
    x: float
    y: float
    width: float
    height: float


class CitationContext(CamelModel):
    id: str | None = None
    text: str = ""
    page: int = 1
    bbox: BoundingBox | None = None
    reference_ids: list[str] = Field(default_factory=list)
    surrounding_text: str = ""


class ReferenceUsage(CamelModel):
    reference: BibReference
    contexts: list[CitationContext] = Field(default_factory=list)


class MatchDiagnostics(CamelModel):
    orphaned_citations: list[CitationContext] = Field(default_factory=list)
    unresolved_targets: list[str] = Field(default_factory=list)
    duplicate_ids: list[str] = Field(default_factory=list)


class CitationData(CamelModel):
    document_title: str = ""
    references: list[BibReference] = Field(default_factory=list)
    citation_contexts: list[CitationContext] = Field(default_factory=list)
    reference_usage: list[ReferenceUsage] = Field(default_factory=list)
    diagnostics: MatchDiagnostics = Field(default_factory=MatchDiagnostics)


class ReferenceSummary(CamelModel):
    id: str
    title: str = ""
    authors: list[str] = Field(default_factory=list)
    journal: str | None = None
    year: str | None = None
    doi: str | None = None
    raw_text: str | None = None


class ContextSnippet(CamelModel):
    text: str = ""
    page: int = 1
    surrounding_text: str = ""


class EnhancedReference(CamelModel):
    reference: ReferenceSummary
    citation_count: int = 0
    contexts: list[ContextSnippet] = Field(default_factory=list)

    @computed_field(alias="citationContext")  # type: ignore[prop-decorator]
    @property
    def primary_context(self) -> str | None:
        if not self.contexts:
            return None
        return self.contexts[0].surrounding_text

    @property
    def title(self) -> str:
        return self.reference.title


class Document(CamelModel):
    id: str
    title: str
    authors: list[str] = Field(default_factory=list)
    doi: str | None = None
    file_path: str = ""
    content: str
    year: str | None = None
    journal: str | None = None
    source_pdf: str | None = None


class VerificationResult(CamelModel):
    citation_context: str
    reference_title: str
    is_verified: bool = False
    confidence_score: float = 0.0
    match_location: str | None = None
    explanation: str = ""
    reference_found: bool = False


class VerificationReport(CamelModel):
    document_title: str
    total_citations_checked: int = 0
    verified_citations: int = 0
    unverified_citations: int = 0
    inconclusive_citations: int = 0
    missing_references: int = 0
    cancelled: bool = False
    results: list[VerificationResult] = Field(default_factory=list)


class ProcessedReference(CamelModel):
    id: str
    title: str
    status: ReferenceStatus
    link: str = "#"


class ProgressEvent(CamelModel):
    run_id: str | None = None
    current_reference: str = ""
    current_index: int = 0
    total_references: int = 0
    processed_references: list[ProcessedReference] = Field(default_factory=list)
    status: RunStatus = "processing"
    error: str | None = None
