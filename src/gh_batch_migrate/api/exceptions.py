"""Migration API exceptions."""

from typing import Any, List, Optional


class MigrationAPIError(Exception):
    """Base exception for source and target API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
    ):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class AuthenticationError(MigrationAPIError):
    """Authentication error (bad or missing personal access token)."""

    pass


class RateLimitError(MigrationAPIError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class NotFoundError(MigrationAPIError):
    """Resource not found error."""

    pass


class GraphQLError(MigrationAPIError):
    """GraphQL request returned an ``errors`` payload."""

    def __init__(self, message: str, errors: Optional[List[dict]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
