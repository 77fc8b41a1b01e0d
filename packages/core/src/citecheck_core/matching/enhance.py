from __future__ import annotations

import logging

from citecheck_core.store.normalize import aggressive_normalize
from citecheck_core.types import ContextSnippet, EnhancedReference, ReferenceSummary, ReferenceUsage

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10
MIN_DEDUP_KEY_LENGTH = 10

_BACKFILL_FIELDS = ("doi", "journal", "year", "raw_text")


def to_enhanced(usage: ReferenceUsage) -> EnhancedReference:
    reference = usage.reference
    return EnhancedReference(
        reference=ReferenceSummary(
            id=reference.id.label,
            title=(reference.title or "").strip(),
            authors=[author.display_name for author in reference.authors],
            journal=reference.journal,
            year=reference.year,
            doi=reference.doi,
            raw_text=reference.raw_text,
        ),
        citation_count=len(usage.contexts),
        contexts=[
            ContextSnippet(text=context.text, page=context.page, surrounding_text=context.surrounding_text)
            for context in usage.contexts
        ],
    )


def keep_reference(reference: EnhancedReference) -> bool:
    summary = reference.reference
    if len(summary.title.strip()) > MIN_TITLE_LENGTH:
        return True
    if summary.authors and summary.doi:
        return True
    return reference.citation_count > 0


def dedup_key(title: str) -> str | None:
    key = aggressive_normalize(title)
    return key if len(key) > MIN_DEDUP_KEY_LENGTH else None


def deduplicate_references(references: list[EnhancedReference]) -> list[EnhancedReference]:
    """Collapse entries whose normalized titles agree.

    The first occurrence is retained; later ones add their citation count and
    contexts and fill in metadata the retained entry lacks. Inputs are not
    modified.
    """
    merged: list[EnhancedReference] = []
    by_key: dict[str, EnhancedReference] = {}

    for reference in references:
        key = dedup_key(reference.reference.title)
        if key is None or key not in by_key:
            kept = reference.model_copy(deep=True)
            merged.append(kept)
            if key is not None:
                by_key[key] = kept
            continue

        kept = by_key[key]
        logger.debug("Merging duplicate reference %r into %r", reference.reference.id, kept.reference.id)
        kept.citation_count += reference.citation_count
        kept.contexts.extend(context.model_copy() for context in reference.contexts)
        for field in _BACKFILL_FIELDS:
            if not getattr(kept.reference, field) and getattr(reference.reference, field):
                setattr(kept.reference, field, getattr(reference.reference, field))
        if not kept.reference.authors and reference.reference.authors:
            kept.reference.authors = list(reference.reference.authors)

    return merged


def enhance_references(usages: list[ReferenceUsage]) -> list[EnhancedReference]:
    enhanced = [to_enhanced(usage) for usage in usages]
    kept = [reference for reference in enhanced if keep_reference(reference)]
    if len(kept) < len(enhanced):
        logger.info("Dropped %d low-quality bibliography entries", len(enhanced) - len(kept))
    deduplicated = deduplicate_references(kept)
    if len(deduplicated) < len(kept):
        logger.info("Merged %d duplicate references", len(kept) - len(deduplicated))
    return deduplicated
