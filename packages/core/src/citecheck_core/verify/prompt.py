from __future__ import annotations

from citecheck_core.types import Document

DEFAULT_CHAR_BUDGET = 100_000
TRUNCATION_MARKER = "... [content truncated for length]"

_TEMPLATE = """\
You are a scholarly citation verifier. Decide whether the citation below accurately represents the source document.

SOURCE DOCUMENT:
{metadata}

DOCUMENT CONTENT:
{content}

CITATION CONTEXT TO VERIFY:
{citation}

TASK:
1. Determine whether the citation context accurately represents what the source document states.
2. Quote the passage of the source document that confirms or contradicts the citation.
3. Note whether the citation misrepresents the source, takes it out of context, or makes claims the source does not contain.

Answer with a single JSON object of this shape:
{{
  "isVerified": boolean,
  "confidenceScore": number between 0 and 1,
  "matchLocation": "passage from the source document that matches",
  "explanation": "reasoning behind the verdict"
}}
"""


def truncate_content(content: str, char_budget: int = DEFAULT_CHAR_BUDGET) -> str:
    if char_budget <= 0 or len(content) <= char_budget:
        return content
    return content[:char_budget] + TRUNCATION_MARKER


def _metadata_lines(document: Document) -> str:
    lines = [f"Title: {document.title}", f"Authors: {', '.join(document.authors)}"]
    if document.doi:
        lines.append(f"DOI: {document.doi}")
    if document.year:
        lines.append(f"Year: {document.year}")
    if document.journal:
        lines.append(f"Journal: {document.journal}")
    return "\n".join(lines)


def build_verification_prompt(
    citation_context: str, document: Document, char_budget: int = DEFAULT_CHAR_BUDGET
) -> str:
    return _TEMPLATE.format(
        metadata=_metadata_lines(document),
        content=truncate_content(document.content, char_budget),
        citation=citation_context.strip() or "(no citation text available)",
    )
