"""Source and target API clients."""

from .client import AdoClient, APIResponse, BaseAPIClient, ClientFactory, GithubClient
from .exceptions import (
    AuthenticationError,
    GraphQLError,
    MigrationAPIError,
    NotFoundError,
    RateLimitError,
)
from .rate_limiter import PollingBackoff, RateLimiter

__all__ = [
    'AdoClient',
    'APIResponse',
    'BaseAPIClient',
    'ClientFactory',
    'GithubClient',
    'AuthenticationError',
    'GraphQLError',
    'MigrationAPIError',
    'NotFoundError',
    'RateLimitError',
    'PollingBackoff',
    'RateLimiter',
]
