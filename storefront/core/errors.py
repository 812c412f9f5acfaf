"""
Error taxonomy for I/O-facing storefront code.

Pure decision functions (normalizer, matcher, evaluator, line keys) never raise
for well-typed input; incomplete selections and missing variants are reported
as AvailabilityReason codes instead.
"""

from typing import Any, Optional


class StorefrontError(Exception):
    """Base class for storefront engine errors."""


class NetworkTransientError(StorefrontError):
    """Timeout, dropped connection or retryable status, after retries ran out."""

    def __init__(self, message: str, attempts: int = 1, status_code: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


class AuthExpiredError(StorefrontError):
    """HTTP 401. The stored credential has already been cleared."""

    status_code = 401


class NotFoundError(StorefrontError):
    """HTTP 404. Read paths surface this as an absent result."""

    status_code = 404


class ApiError(StorefrontError):
    """Any other non-success response."""

    def __init__(self, message: str, status_code: int, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedPayloadError(StorefrontError):
    """Fetched entity is missing its identifier field."""
