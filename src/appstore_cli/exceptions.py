"""
Exception classes for appstore-cli.
"""

from typing import Dict, List, Optional


class AppStoreConnectError(Exception):
    """Base exception class for App Store Connect API errors."""

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        title: Optional[str] = None,
        detail: Optional[str] = None,
        associated_errors: Optional[Dict[str, List[Dict[str, str]]]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.title = title
        self.detail = detail
        self.associated_errors = associated_errors or {}


class AuthenticationError(AppStoreConnectError):
    """Raised when authentication fails."""

    pass


class MissingAuthError(AuthenticationError):
    """Raised when no credentials could be resolved."""

    pass


class RateLimitError(AppStoreConnectError):
    """Raised when rate limits are exceeded."""

    def __init__(self, message: str = "", retry_after: float = 0.0, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ValidationError(AppStoreConnectError):
    """Raised when request validation fails."""

    pass


class ConfigError(ValidationError):
    """Raised when the configuration file cannot be read or parsed."""

    pass


class NotFoundError(AppStoreConnectError):
    """Raised when requested resource is not found."""

    pass


class PermissionError(AppStoreConnectError):
    """Raised when insufficient permissions for operation."""

    pass


class ConflictError(AppStoreConnectError):
    """Raised when the resource already exists or is in a conflicting state."""

    pass


class ServerError(AppStoreConnectError):
    """Raised when server returns 5xx error."""

    def __init__(self, message: str = "", retry_after: float = 0.0, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class PaginationError(AppStoreConnectError):
    """Raised when following pagination links fails.

    The pages aggregated before the failure are available as ``result``.
    """

    def __init__(self, message: str = "", result: Optional[Dict] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.result = result
