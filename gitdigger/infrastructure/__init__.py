"""
Infrastructure layer for GitDigger.

Contains the ambient stack (logging, error taxonomy, retry and rate limit
handling) and the capabilities the core consumes from outside:
- HTTPClient: outbound HTTP transport
- GitClient: clone / update through an external git executable
- StateStore: persisted per-repository sync state
"""

from .logger import logger
from .error_handler import (
    GitDiggerError,
    NotFoundError,
    RateLimitError,
    AuthenticationError,
    TransientNetworkError,
    ProviderError,
    MalformedResponseError,
    CloneFailedError,
    UpdateFailedError,
    UnsupportedProviderError,
    GitCommandError,
)
from .http_client import HTTPClient, HTTPResponse, HttpxClient
from .git_client import GitClient, SubprocessGitClient
from .rate_limiter import RateLimiter, RateLimitInfo, RateLimitRegistry
from .retry_manager import RetryManager
from .state_store import StateStore, MemoryStateStore, JsonStateStore

__all__ = [
    "logger",
    "GitDiggerError",
    "NotFoundError",
    "RateLimitError",
    "AuthenticationError",
    "TransientNetworkError",
    "ProviderError",
    "MalformedResponseError",
    "CloneFailedError",
    "UpdateFailedError",
    "UnsupportedProviderError",
    "GitCommandError",
    "HTTPClient",
    "HTTPResponse",
    "HttpxClient",
    "GitClient",
    "SubprocessGitClient",
    "RateLimiter",
    "RateLimitInfo",
    "RateLimitRegistry",
    "RetryManager",
    "StateStore",
    "MemoryStateStore",
    "JsonStateStore",
]
