from .citations import CitationParser, parse_coordinates, surrounding_sentence
from .document import UNTITLED_DOCUMENT, DocumentMetadata, DocumentParser

__all__ = [
    "CitationParser",
    "DocumentMetadata",
    "DocumentParser",
    "UNTITLED_DOCUMENT",
    "parse_coordinates",
    "surrounding_sentence",
]
