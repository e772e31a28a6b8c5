"""
Public Python API for GitDigger.

Example:
    async with GitDigger(SyncConfig.from_env()) as digger:
        result = await digger.sync([
            "https://github.com/acme/widgets",
            RepoReference.from_parts("acme", "gadgets", provider="gitlab"),
        ])
        for record in result.succeeded:
            print(record.full_name, record.default_branch)
"""

import logging
from typing import Iterable, List, Optional, Union

from ..core.clone_manager import CloneManager
from ..core.identifier import ProviderIdentifier, classify as _classify
from ..core.orchestrator import SyncOrchestrator
from ..infrastructure.git_client import GitClient, SubprocessGitClient
from ..infrastructure.http_client import HTTPClient, HttpxClient
from ..infrastructure.logger import logger
from ..infrastructure.rate_limiter import RateLimitRegistry
from ..infrastructure.retry_manager import RetryManager
from ..infrastructure.state_store import JsonStateStore, MemoryStateStore, StateStore
from ..models import (
    ProviderKind, RepoRecord, RepoReference, SyncConfig, SyncOptions, SyncResult
)
from ..services.registry import ClientRegistry


Reference = Union[RepoReference, str]


class GitDigger:
    """
    High level entry point wiring identifier, provider clients, state store
    and clone manager from one SyncConfig.

    Every collaborator can be injected (an HTTP client, a git client, a
    store) so callers control transport and persistence.
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        http_client: Optional[HTTPClient] = None,
        git_client: Optional[GitClient] = None,
        store: Optional[StateStore] = None,
        rate_limits: Optional[RateLimitRegistry] = None,
        verbose: bool = False,
    ):
        self.config = config or SyncConfig()
        self.verbose = verbose
        self._configure_logging()

        self._owns_http_client = http_client is None
        self.http_client = http_client or HttpxClient(timeout=self.config.timeout)
        self.git_client = git_client or SubprocessGitClient()
        self.store = store or self._default_store()
        self.rate_limits = rate_limits or RateLimitRegistry()

        self.identifier = ProviderIdentifier(
            hosts=self.config.hosts,
            unqualified=self.config.unqualified,
            default_provider=self.config.default_provider,
        )
        self.clients = ClientRegistry(self.config, self.http_client, self.rate_limits)
        self.clone_manager = CloneManager(
            self.git_client, self.store, depth=self.config.clone_depth
        )
        self.orchestrator = SyncOrchestrator(
            clients=self.clients,
            store=self.store,
            identifier=self.identifier,
            retry_manager=RetryManager.from_backoff(self.config.backoff),
            clone_manager=self.clone_manager,
            max_concurrency=self.config.concurrency,
            clone=self.config.clone,
            clone_root=self.config.clone_root,
            probe_order=self.config.probe_order,
        )

    def _default_store(self) -> StateStore:
        if self.config.state_dir is not None:
            return JsonStateStore(self.config.state_dir)
        return MemoryStateStore()

    def _configure_logging(self) -> None:
        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    def set_verbose(self, verbose: bool) -> None:
        """Toggle DEBUG logging for the package logger."""

        self.verbose = verbose
        self._configure_logging()
        logger.debug("Verbose logging enabled")

    async def sync(
        self, references: Iterable[Reference], options: Optional[SyncOptions] = None
    ) -> SyncResult:
        """
        Fetch, normalize, persist and optionally clone every reference.

        Args:
            references: RepoReferences, URLs or 'owner/name' strings
            options: Per-batch clone overrides

        Returns:
            SyncResult; failures are reported per reference, never raised
        """

        return await self.orchestrator.sync(references, options)

    def classify(self, reference: Reference) -> ProviderKind:
        """Classify a reference using this instance's host table and policy."""

        return self.identifier.classify(reference)

    async def list_repositories(
        self, provider: Union[ProviderKind, str], owner: str, host: Optional[str] = None
    ) -> List[RepoRecord]:
        """Enumerate every repository of an owner on one provider."""

        return await self.orchestrator.list_owner(ProviderKind.parse(provider), owner, host)

    def cancel(self) -> bool:
        """Cancel the running sync between repositories."""

        return self.orchestrator.cancel()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "GitDigger":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


async def sync(
    references: Iterable[Reference],
    config: Optional[SyncConfig] = None,
    options: Optional[SyncOptions] = None,
    **kwargs,
) -> SyncResult:
    """One-shot sync with a throwaway GitDigger; kwargs go to its constructor."""

    async with GitDigger(config, **kwargs) as digger:
        return await digger.sync(references, options)


def classify(reference: Reference) -> ProviderKind:
    """Classify a reference against the built-in host table."""

    return _classify(reference)


__all__ = ["GitDigger", "sync", "classify"]
