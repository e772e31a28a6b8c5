"""
Configuration models for GitDigger syncs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Sequence

from .repository import ProviderKind


class UnqualifiedPolicy(Enum):
    """How a bare 'owner/name' reference without a provider hint is resolved."""

    REQUIRE_HINT = "require_hint"           # Report it as unknown
    DEFAULT_PROVIDER = "default_provider"   # Use SyncConfig.default_provider
    PROBE = "probe"                         # Try each provider in probe_order


@dataclass
class ProviderCredentials:
    """Token and optional API base URL override for one provider instance."""

    token: Optional[str] = None
    base_url: Optional[str] = None


@dataclass
class BackoffConfig:
    """Retry policy for rate limited and transient failures."""

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 4
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays cannot be negative")


@dataclass
class SyncConfig:
    """
    Unified configuration for repository syncs.

    Combines provider credentials, concurrency, backoff and local clone
    settings. Provides comprehensive control over sync behavior.
    """

    # Keyed by kind for public instances, by host for self-hosted ones
    providers: Dict[ProviderKind, ProviderCredentials] = field(default_factory=dict)
    host_credentials: Dict[str, ProviderCredentials] = field(default_factory=dict)

    # Concurrency and retry settings
    concurrency: int = 4
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    timeout: float = 30.0
    page_size: int = 100

    # Local clone settings
    clone: bool = False
    clone_root: Optional[Path] = None
    clone_depth: Optional[int] = None

    # Reference resolution
    hosts: Dict[str, ProviderKind] = field(default_factory=dict)
    unqualified: UnqualifiedPolicy = UnqualifiedPolicy.REQUIRE_HINT
    default_provider: Optional[ProviderKind] = None
    probe_order: Sequence[ProviderKind] = (
        ProviderKind.GITHUB, ProviderKind.GITLAB, ProviderKind.GENERIC
    )

    # Persisted state; None keeps state in memory only
    state_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.concurrency <= 0:
            raise ValueError("concurrency must be positive")
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.clone_depth is not None and self.clone_depth <= 0:
            raise ValueError("clone_depth must be positive")
        if self.clone and self.clone_root is None:
            raise ValueError("clone_root is required when clone is enabled")
        if (
            self.unqualified is UnqualifiedPolicy.DEFAULT_PROVIDER
            and self.default_provider in (None, ProviderKind.UNKNOWN)
        ):
            raise ValueError("default_provider is required for the default_provider policy")

        self.providers = {
            ProviderKind.parse(kind): credentials
            for kind, credentials in self.providers.items()
        }
        self.hosts = {
            host.lower(): ProviderKind.parse(kind) for host, kind in self.hosts.items()
        }
        self.host_credentials = {
            host.lower(): credentials for host, credentials in self.host_credentials.items()
        }
        if self.clone_root is not None:
            self.clone_root = Path(self.clone_root)
        if self.state_dir is not None:
            self.state_dir = Path(self.state_dir)

    def credentials_for(
        self, kind: ProviderKind, host: Optional[str] = None
    ) -> ProviderCredentials:
        if host:
            return self.host_credentials.get(host.lower()) or ProviderCredentials()
        return self.providers.get(kind) or ProviderCredentials()

    @classmethod
    def from_env(cls, **overrides) -> "SyncConfig":
        """Build a config from GITHUB_TOKEN / GITLAB_TOKEN / GITEA_TOKEN."""

        providers = {}
        for kind, variable in _TOKEN_VARIABLES.items():
            token = os.environ.get(variable)
            if token:
                providers[kind] = ProviderCredentials(token=token)

        overrides.setdefault("providers", providers)
        state_dir = os.environ.get("GIT_DIGGER_STATE_DIR")
        if state_dir:
            overrides.setdefault("state_dir", Path(state_dir))
        return cls(**overrides)


_TOKEN_VARIABLES = {
    ProviderKind.GITHUB: "GITHUB_TOKEN",
    ProviderKind.GITLAB: "GITLAB_TOKEN",
    ProviderKind.GENERIC: "GITEA_TOKEN",
}


__all__ = [
    "UnqualifiedPolicy",
    "ProviderCredentials",
    "BackoffConfig",
    "SyncConfig",
]
