"""
Core data models API surface for GitDigger.

This file re-exports model classes from domain-specific modules so imports
like `from gitdigger.models import X` keep working.
"""

from .repository import (
    ProviderKind,
    Visibility,
    RepoReference,
    RepoIdentity,
    ResolvedReference,
    RawRepo,
    GitHubRawRepo,
    GitLabRawRepo,
    GenericRawRepo,
    RepoRecord,
)
from .sync import (
    SyncState,
    FetchError,
    SyncOptions,
    SyncStatistics,
    SyncResult,
)
from .config import (
    UnqualifiedPolicy,
    ProviderCredentials,
    BackoffConfig,
    SyncConfig,
)

__all__ = [
    # Repository models
    "ProviderKind",
    "Visibility",
    "RepoReference",
    "RepoIdentity",
    "ResolvedReference",
    "RawRepo",
    "GitHubRawRepo",
    "GitLabRawRepo",
    "GenericRawRepo",
    "RepoRecord",
    # Sync models
    "SyncState",
    "FetchError",
    "SyncOptions",
    "SyncStatistics",
    "SyncResult",
    # Config models
    "UnqualifiedPolicy",
    "ProviderCredentials",
    "BackoffConfig",
    "SyncConfig",
]
