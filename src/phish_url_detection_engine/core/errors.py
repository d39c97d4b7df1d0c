"""Custom exceptions for the URL risk engine."""


class EngineError(Exception):
    """Base exception for application-level errors."""


class ConfigError(EngineError):
    """Raised when configuration cannot be loaded or validated."""


class InvalidInputError(EngineError):
    """Raised when the scanned value is not a syntactically valid URL."""


class BackendError(EngineError):
    """Base class for inference backend failures."""

    def __init__(self, message: str, *, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend


class BackendTimeoutError(BackendError):
    """Raised when a backend misses its deadline."""


class BackendUnavailableError(BackendError):
    """Raised when a backend cannot serve requests (missing model, not configured)."""


class RemoteScanError(EngineError):
    """Base class for hybrid/deep remote scan failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(RemoteScanError):
    """Transient transport or server failure; safe to retry."""


class AuthError(RemoteScanError):
    """Authentication or authorization failure; never retried."""
