from __future__ import annotations

import logging

from citecheck_core.tei import CitationParser
from citecheck_core.types import (
    BibReference,
    CitationContext,
    CitationData,
    ExtractedId,
    MatchDiagnostics,
    ReferenceUsage,
)

logger = logging.getLogger(__name__)


def match_citations_to_references(
    references: list[BibReference], contexts: list[CitationContext]
) -> tuple[list[ReferenceUsage], MatchDiagnostics]:
    """Pair every reference with the in-text citations that point at it.

    Returns one usage per reference in bibliography order, including references
    nobody cites. A citation naming several targets is added to each of them.
    """
    diagnostics = MatchDiagnostics()
    usages = [ReferenceUsage(reference=reference) for reference in references]

    by_id: dict[str, ReferenceUsage] = {}
    for usage in usages:
        ref_id = usage.reference.id
        if not isinstance(ref_id, ExtractedId):
            continue
        if ref_id.value in by_id:
            logger.warning("Duplicate reference id %r; later entry receives its citations", ref_id.value)
            if ref_id.value not in diagnostics.duplicate_ids:
                diagnostics.duplicate_ids.append(ref_id.value)
        by_id[ref_id.value] = usage

    for context in contexts:
        resolved = 0
        for target in context.reference_ids:
            usage = by_id.get(target)
            if usage is None:
                if target not in diagnostics.unresolved_targets:
                    diagnostics.unresolved_targets.append(target)
                continue
            usage.contexts.append(context)
            resolved += 1
        if resolved == 0:
            logger.warning(
                "Orphaned citation %r on page %d (targets: %s)",
                context.text,
                context.page,
                ", ".join(context.reference_ids) or "none",
            )
            diagnostics.orphaned_citations.append(context)

    return usages, diagnostics


def build_citation_data(markup: str | bytes | None, document_title: str | None = None) -> CitationData:
    parser = CitationParser(markup)
    references = parser.extract_references()
    contexts = parser.extract_citation_contexts()
    usages, diagnostics = match_citations_to_references(references, contexts)
    logger.info(
        "Matched %d citations to %d references (%d orphaned)",
        len(contexts),
        len(references),
        len(diagnostics.orphaned_citations),
    )
    return CitationData(
        document_title=document_title or parser.extract_title(),
        references=references,
        citation_contexts=contexts,
        reference_usage=usages,
        diagnostics=diagnostics,
    )
