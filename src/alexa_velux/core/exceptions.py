"""Exception classes for the credential lifecycle and request layers.

Every error raised by alexa_velux derives from VeluxError, which carries a
short message and optional details (rendered on a second line). The
classification of authorization failures (AuthorizationFailure) lives here
too because both the executor and the retry orchestrator depend on it.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alexa_velux.core.models import GrantType


# =============================================================================
# Base Exception
# =============================================================================


class VeluxError(Exception):
    """Base exception for all alexa_velux errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message


# =============================================================================
# Session / Configuration Errors
# =============================================================================


class ConfigurationMissing(VeluxError):
    """Raised when the settings record cannot be found.

    Settings can never legitimately be absent, so this is fatal and aborts
    warm-up without any retry.
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Settings not found under key '{key}'",
            "Seed the store with 'alexa-velux store put-settings <file>' and try again.",
        )


class IncompleteSessionError(VeluxError):
    """Raised when an operation runs before the session holds what it needs."""

    def __init__(self, missing: list[str], operation: str | None = None):
        self.missing = missing
        self.operation = operation
        message = "Session is incomplete"
        if operation:
            message = f"Session is incomplete for {operation}"
        super().__init__(message, f"Missing: {', '.join(missing)}")


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(VeluxError):
    """Raised when a store read or write fails."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
    ):
        self.key = key
        self.original_error = original_error
        if details is None and original_error is not None:
            details = f"Original error: {original_error}"
        super().__init__(message, details)


class ConditionalCheckFailedError(PersistenceError):
    """Raised when a conditional update targets a record that does not exist."""

    def __init__(self, key: str):
        super().__init__(
            f"Conditional update failed: no record with key '{key}'",
            key=key,
            details="The record must already exist; updates never create it.",
        )


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(VeluxError):
    """Raised when an HTTP exchange with the Velux backend fails.

    Attributes:
        url: The URL that was requested.
        status_code: HTTP status code, None for network-level failures.
        response_body: Raw response body if one was received.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        self.url = url
        self.status_code = status_code
        self.response_body = response_body
        details_parts = []
        if url:
            details_parts.append(f"url={url}")
        if status_code is not None:
            details_parts.append(f"status={status_code}")
        if response_body:
            details_parts.append(f"body={response_body[:200]}")
        super().__init__(message, " ".join(details_parts) if details_parts else None)


class NetworkTimeoutError(TransportError):
    """Raised when a request to the backend times out."""

    def __init__(self, url: str, timeout: float):
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout}s", url=url)


class NetworkConnectionError(TransportError):
    """Raised when the backend cannot be reached."""

    def __init__(self, url: str, original_error: Exception):
        self.original_error = original_error
        super().__init__(f"Failed to connect: {original_error}", url=url)


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthRequestError(VeluxError):
    """Raised when a password or refresh grant fails.

    The upstream cause (transport or persistence error) is chained as
    ``__cause__``. The session token is untouched when this is raised.
    """

    def __init__(
        self,
        grant_type: GrantType | str,
        reason: str,
        status_code: int | None = None,
    ):
        self.grant_type = grant_type
        self.status_code = status_code
        grant = getattr(grant_type, "value", grant_type)
        details = f"status={status_code}" if status_code is not None else None
        super().__init__(f"The {grant} token request failed: {reason}", details)


class AuthorizationFailure(Enum):
    """Classification of a 403 response from a domain endpoint."""

    EXPIRED = "expired"  # access token expired, refresh it
    INVALID = "invalid"  # access token rejected, re-authenticate
    OTHER = "other"  # not recoverable by a token grant

    @property
    def recoverable(self) -> bool:
        """Whether a token grant can fix this failure."""
        return self is not AuthorizationFailure.OTHER
