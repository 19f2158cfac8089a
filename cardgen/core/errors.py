"""Error taxonomy shared by the generation pipeline and the HTTP layer.

Provider failures carry a ``retryable`` flag which is the only thing the
provider client's retry loop looks at. ``categorize_error`` folds any
exception into the small set of categories used for user-facing messages.
"""

from __future__ import annotations

import enum
import re
from typing import Optional


class CardgenError(Exception):
    """Base class for all domain errors."""


class InputLengthError(CardgenError):
    def __init__(self, length: int, min_chars: int, max_chars: int) -> None:
        self.length = length
        self.min_chars = min_chars
        self.max_chars = max_chars
        super().__init__(
            f"Input text must be between {min_chars} and {max_chars} characters (got {length})"
        )


class ConfigurationError(CardgenError):
    pass


class ProviderRequestError(CardgenError):
    """A provider call failed. Subclasses decide whether a retry may help."""

    retryable = False

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(ProviderRequestError):
    retryable = False


class RateLimitError(ProviderRequestError):
    retryable = True


class ProviderError(ProviderRequestError):
    """Provider-side 5xx."""

    retryable = True


class ClientError(ProviderRequestError):
    """4xx other than auth and rate limiting."""

    retryable = False


class NetworkError(ProviderRequestError):
    retryable = True


class ProviderTimeoutError(ProviderRequestError):
    retryable = True


class InvalidResponseError(CardgenError):
    """Provider body does not have the chat-completion shape."""


class MalformedResponseError(CardgenError):
    """Model content is not the expected flashcards JSON document."""


class ValidationError(CardgenError):
    def __init__(self, message: str, *, constraint: Optional[str] = None) -> None:
        super().__init__(message)
        self.constraint = constraint


class PersistenceError(CardgenError):
    def __init__(self, message: str, *, proposals_written: bool = False) -> None:
        super().__init__(message)
        # True when flashcards already reached the store before the failure
        self.proposals_written = proposals_written


class NotFoundError(CardgenError):
    pass


class StoreError(CardgenError):
    """Raised by persistence adapters for any backend failure."""


class ErrorCategory(str, enum.Enum):
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    NETWORK = "network"
    GENERIC = "generic"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.TIMEOUT: "The AI service took too long to respond. Please try again.",
    ErrorCategory.RATE_LIMIT: "The AI service is busy right now. Please try again in a moment.",
    ErrorCategory.AUTH: "The AI service is not configured correctly. Please contact support.",
    ErrorCategory.NETWORK: "Could not reach the AI service. Check your connection and try again.",
    ErrorCategory.GENERIC: "Failed to generate flashcards. Please try again or contact support.",
}


def categorize_error(exc: BaseException) -> ErrorCategory:
    if isinstance(exc, ProviderTimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, RateLimitError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(exc, (AuthError, ConfigurationError)):
        return ErrorCategory.AUTH
    if isinstance(exc, NetworkError):
        return ErrorCategory.NETWORK
    return ErrorCategory.GENERIC


_CATEGORY_PREFIX = re.compile(r"^\[(?P<category>[a-z_]+)\]\s?")


def format_error_info(exc: BaseException, max_length: int) -> str:
    """Render an exception as the ``error_info`` value stored on a generation log."""
    message = str(exc) or type(exc).__name__
    text = f"[{categorize_error(exc).value}] {message}"
    return text[:max_length]


def parse_error_info(error_info: Optional[str]) -> Optional[ErrorCategory]:
    if not error_info:
        return None
    match = _CATEGORY_PREFIX.match(error_info)
    if match:
        try:
            return ErrorCategory(match.group("category"))
        except ValueError:
            pass
    return ErrorCategory.GENERIC
