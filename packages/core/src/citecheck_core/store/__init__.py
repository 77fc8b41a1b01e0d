from .documents import DocumentStore, LookupMatch, decode_document
from .index import LookupIndex

__all__ = ["DocumentStore", "LookupIndex", "LookupMatch", "decode_document"]
