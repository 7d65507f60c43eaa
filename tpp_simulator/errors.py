"""Error types raised while talking to the Open Banking sandbox."""
from typing import Any, Optional


class SimulatorError(Exception):
    """Base error; carries the HTTP status and details returned to API callers."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(message)


class ConfigError(SimulatorError):
    """Raised when client ID or key material is missing."""


class DiscoveryError(SimulatorError):
    """Raised when the OIDC discovery document is unreachable or incomplete."""

    status_code = 502


class TokenExchangeError(SimulatorError):
    """Raised when the token endpoint rejects the client assertion or code."""

    status_code = 502


class RemoteApiError(SimulatorError):
    """Raised when a sandbox REST call returns a non-2xx response."""

    status_code = 502


class NetworkError(SimulatorError):
    """Raised when the sandbox cannot be reached at all."""

    status_code = 502
