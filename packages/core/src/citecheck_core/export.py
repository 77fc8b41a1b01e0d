from __future__ import annotations

import csv
from pathlib import Path

from citecheck_core.types import CitationData

CSV_COLUMNS = (
    "citation_id",
    "citation_text",
    "page",
    "reference_id",
    "reference_title",
    "reference_year",
    "reference_doi",
    "surrounding_text",
)


def citation_rows(data: CitationData) -> list[dict[str, object]]:
    """One row per (citation, cited reference) pair; orphaned citations get an empty reference."""
    rows: list[dict[str, object]] = []
    for usage in data.reference_usage:
        reference = usage.reference
        for context in usage.contexts:
            rows.append(
                {
                    "citation_id": context.id or "",
                    "citation_text": context.text,
                    "page": context.page,
                    "reference_id": reference.id.label,
                    "reference_title": reference.title or "",
                    "reference_year": reference.year or "",
                    "reference_doi": reference.doi or "",
                    "surrounding_text": context.surrounding_text,
                }
            )
    for context in data.diagnostics.orphaned_citations:
        rows.append(
            {
                "citation_id": context.id or "",
                "citation_text": context.text,
                "page": context.page,
                "reference_id": "",
                "reference_title": "",
                "reference_year": "",
                "reference_doi": "",
                "surrounding_text": context.surrounding_text,
            }
        )
    return rows


def export_citation_csv(data: CitationData, path: str | Path) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(citation_rows(data))
    return output
