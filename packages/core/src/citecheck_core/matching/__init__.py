from .enhance import deduplicate_references, enhance_references, keep_reference, to_enhanced
from .usage import build_citation_data, match_citations_to_references

__all__ = [
    "build_citation_data",
    "deduplicate_references",
    "enhance_references",
    "keep_reference",
    "match_citations_to_references",
    "to_enhanced",
]
