"""Exceptions for package input and platform API errors."""

from __future__ import annotations


class PackageError(Exception):
    """A package could not be read or its resource graph could not be built."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class PlatformError(Exception):
    """Base exception for platform API errors.

    Attributes:
        status_code: HTTP status code from the API response
        error_code: Error code from the platform error body (e.g., "not found", "unauthorized")
        message: Human-readable error message
        response: The full response object
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        response: object | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.response = response

    def __repr__(self) -> str:
        parts = [f"status_code={self.status_code}"]
        if self.error_code:
            parts.append(f"error_code={self.error_code!r}")
        return f"{self.__class__.__name__}({self.message!r}, {', '.join(parts)})"


class PlatformTransientError(PlatformError):
    """Transient platform errors that can be retried."""

    pass


class PlatformPermanentError(PlatformError):
    """Permanent platform errors that should not be retried."""

    pass


# Transient errors (retryable)
class PlatformRateLimitError(PlatformTransientError):
    """429 Too Many Requests - Rate limit exceeded."""

    pass


class PlatformServerError(PlatformTransientError):
    """5xx Server Error - Transient server-side issue."""

    pass


# Permanent errors (non-retryable)
class PlatformBadRequestError(PlatformPermanentError):
    """400 Bad Request - Invalid request format."""

    pass


class PlatformUnauthorizedError(PlatformPermanentError):
    """401 Unauthorized - Token missing or invalid."""

    pass


class PlatformForbiddenError(PlatformPermanentError):
    """403 Forbidden - Token lacks permission for the organization."""

    pass


class PlatformNotFoundError(PlatformPermanentError):
    """404 Not Found - Resource or organization does not exist."""

    pass
