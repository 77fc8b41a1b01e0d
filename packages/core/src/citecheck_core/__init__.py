from .errors import (
    CitecheckError,
    OracleNotConfigured,
    StoreCorruption,
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from .types import (
    INCONCLUSIVE_CONFIDENCE,
    BibReference,
    CitationContext,
    CitationData,
    Document,
    EnhancedReference,
    ProgressEvent,
    ReferenceUsage,
    VerificationReport,
    VerificationResult,
)

__all__ = [
    "INCONCLUSIVE_CONFIDENCE",
    "BibReference",
    "CitationContext",
    "CitationData",
    "CitecheckError",
    "Document",
    "EnhancedReference",
    "OracleNotConfigured",
    "ProgressEvent",
    "ReferenceUsage",
    "StoreCorruption",
    "UpstreamError",
    "UpstreamRejected",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "VerificationReport",
    "VerificationResult",
]
