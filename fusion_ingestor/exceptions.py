"""Custom exceptions for Fusion_Ingestor."""

from __future__ import annotations

from typing import Any


class FusionIngestorError(Exception):
    """Base exception for all Fusion_Ingestor errors."""

    pass


class AuthenticationError(FusionIngestorError):
    """Raised when a caller cannot be authenticated."""

    pass


class SignatureVerificationError(AuthenticationError):
    """Raised when a webhook signature is missing, stale, or does not match."""

    pass


class ValidationError(FusionIngestorError):
    """Raised when request input fails validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class UpstreamError(FusionIngestorError):
    """Raised when a vendor API or the remote engine fails or is unreachable."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(FusionIngestorError):
    """Raised when a database write fails."""

    pass


class ConfigurationError(FusionIngestorError):
    """Raised when configuration is invalid or missing."""

    pass


class ConnectorNotFoundError(FusionIngestorError):
    """Raised when requested poller is not registered."""

    pass


class PermissionDeniedError(FusionIngestorError):
    """Raised when a caller is identified but not allowed to use an operator route."""

    pass
