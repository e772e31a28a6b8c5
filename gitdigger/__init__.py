"""
GitDigger: enumerate, fetch metadata for and clone repositories across
GitHub, GitLab and Gitea compatible hosts through one interface.
"""

from .interfaces.api import GitDigger, sync, classify
from .models import (
    ProviderKind,
    Visibility,
    RepoReference,
    RepoIdentity,
    RepoRecord,
    SyncState,
    FetchError,
    SyncOptions,
    SyncResult,
    SyncConfig,
    BackoffConfig,
    ProviderCredentials,
    UnqualifiedPolicy,
)
from .infrastructure.error_handler import GitDiggerError

__version__ = "0.1.0"

__all__ = [
    "GitDigger",
    "sync",
    "classify",
    "ProviderKind",
    "Visibility",
    "RepoReference",
    "RepoIdentity",
    "RepoRecord",
    "SyncState",
    "FetchError",
    "SyncOptions",
    "SyncResult",
    "SyncConfig",
    "BackoffConfig",
    "ProviderCredentials",
    "UnqualifiedPolicy",
    "GitDiggerError",
]
