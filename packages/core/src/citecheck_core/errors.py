from __future__ import annotations


class CitecheckError(RuntimeError):
    """Base class for citecheck failures."""


class UpstreamError(CitecheckError):
    """Raised when an external service call fails."""

    def __init__(self, service: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{service} service: {message}")
        self.service = service
        self.detail = message
        self.status_code = status_code


class UpstreamUnavailable(UpstreamError):
    """The service could not be reached at all."""


class UpstreamTimeout(UpstreamError):
    """The service did not answer within the configured timeout."""


class UpstreamRejected(UpstreamError):
    """The service answered with an error status or an unusable body."""


class OracleNotConfigured(CitecheckError):
    """No credentials are available for the verification oracle."""


class StoreCorruption(CitecheckError):
    """A persisted store file could not be decoded."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
