"""
Orchestrator for synchronizing a batch of repository references
with bounded concurrency and per-repository failure isolation.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..models import (
    FetchError, ProviderKind, RawRepo, RepoIdentity, RepoRecord, RepoReference,
    ResolvedReference, SyncOptions, SyncResult, SyncState, SyncStatistics,
    UnqualifiedPolicy,
)
from ..infrastructure.error_handler import (
    MalformedResponseError, NotFoundError, UnsupportedProviderError
)
from ..infrastructure.logger import logger
from ..infrastructure.retry_manager import RetryManager
from ..infrastructure.state_store import StateStore
from ..services.registry import ClientRegistry
from .clone_manager import CloneAction, CloneManager
from .identifier import ProviderIdentifier
from .normalizer import normalize


####
##      BATCH BOOKKEEPING
#####
@dataclass
class _Job:
    """One unique repository to sync, with every reference that maps to it."""

    resolved: ResolvedReference
    references: List[RepoReference] = field(default_factory=list)
    candidates: List[Tuple[ProviderKind, Optional[str]]] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.resolved.owner}/{self.resolved.name}"


@dataclass
class _Outcome:
    record: Optional[RepoRecord] = None
    error: Optional[BaseException] = None
    identity: Optional[RepoIdentity] = None
    cancelled: bool = False


####
##      SYNC ORCHESTRATOR
#####
class SyncOrchestrator:
    """
    Drives classify -> fetch -> normalize -> store -> clone for a batch of
    references, isolating failures per repository.
    """

    def __init__(
        self,
        clients: ClientRegistry,
        store: StateStore,
        identifier: Optional[ProviderIdentifier] = None,
        retry_manager: Optional[RetryManager] = None,
        clone_manager: Optional[CloneManager] = None,
        max_concurrency: int = 4,
        clone: bool = False,
        clone_root: Optional[Path] = None,
        probe_order: Sequence[ProviderKind] = (),
    ):
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")

        self.clients = clients
        self.store = store
        self.identifier = identifier or ProviderIdentifier()
        self.retry_manager = retry_manager or RetryManager()
        self.clone_manager = clone_manager
        self.max_concurrency = max_concurrency
        self.clone = clone
        self.clone_root = clone_root
        self.probe_order = list(probe_order)
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._cancellation_event = asyncio.Event()
        self._is_running = False

    async def sync(
        self,
        references: Iterable[Union[RepoReference, str]],
        options: Optional[SyncOptions] = None,
    ) -> SyncResult:
        """
        Synchronize every reference and report per-repository outcomes.

        Args:
            references: Repository references (or URL / 'owner/name' strings)
            options: Per-batch overrides of the clone settings

        Returns:
            SyncResult separating succeeded records, failures and
            references skipped because of cancellation
        """

        clone, clone_root = self._clone_settings(options)
        references = [
            RepoReference.parse(ref) if isinstance(ref, str) else ref
            for ref in references
        ]

        stats = SyncStatistics(start_time=datetime.now(), total_references=len(references))
        result = SyncResult(statistics=stats)
        jobs = self._plan_jobs(references, result)
        stats.unique_repositories = len(jobs)

        logger.debug(
            f"Starting sync of {len(references)} references "
            f"({len(jobs)} unique repositories)"
        )

        self._is_running = True
        try:
            tasks = [
                self._sync_with_semaphore(job, clone, clone_root, stats)
                for job in jobs
            ]
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._is_running = False
            self._cancellation_event.clear()

        records: Dict[RepoIdentity, RepoRecord] = {}
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                outcome = _Outcome(error=outcome, identity=job.resolved.identity)

            if outcome.cancelled:
                result.cancelled.extend(job.references)
            elif outcome.record is not None:
                record = outcome.record
                current = records.get(record.identity)
                if current is None or record.fetched_at >= current.fetched_at:
                    records[record.identity] = record
                for reference in job.references:
                    result.resolved[reference] = record.identity
            else:
                for reference in job.references:
                    result.failed.append(
                        (reference, FetchError.from_exception(reference, outcome.error, outcome.identity))
                    )

        result.succeeded = list(records.values())
        stats.end_time = datetime.now()

        logger.info(
            f"Sync completed: {len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed, {len(result.cancelled)} cancelled "
            f"in {stats.duration_seconds:.2f}s"
        )
        return result

    def _clone_settings(self, options: Optional[SyncOptions]) -> Tuple[bool, Optional[Path]]:
        clone = self.clone
        clone_root = self.clone_root
        if options is not None:
            if options.clone is not None:
                clone = options.clone
            if options.clone_root is not None:
                clone_root = Path(options.clone_root)

        if clone and (self.clone_manager is None or clone_root is None):
            raise ValueError("Cloning requires a clone manager and a clone root directory")
        return clone, clone_root

    def _plan_jobs(self, references: List[RepoReference], result: SyncResult) -> List[_Job]:
        """Resolve references, fail unsupported ones and collapse duplicates."""

        jobs: Dict[object, _Job] = {}
        for reference in references:
            resolved = self.identifier.resolve(reference)

            if resolved.is_supported:
                key = resolved.identity
                candidates = [(resolved.kind, resolved.host)]
            elif self._can_probe(reference, resolved):
                key = ("probe", resolved.owner, resolved.name)
                candidates = [(kind, None) for kind in self.probe_order]
            else:
                error = UnsupportedProviderError(
                    f"Cannot determine hosting provider for {reference.display_name}"
                )
                logger.warning(str(error))
                result.failed.append((reference, FetchError.from_exception(reference, error)))
                continue

            job = jobs.get(key)
            if job is None:
                job = jobs[key] = _Job(resolved=resolved, candidates=candidates)
            job.references.append(reference)

        return list(jobs.values())

    def _can_probe(self, reference: RepoReference, resolved: ResolvedReference) -> bool:
        return (
            self.identifier.unqualified is UnqualifiedPolicy.PROBE
            and bool(self.probe_order)
            and reference.url is None
            and reference.provider is None
            and bool(resolved.owner and resolved.name)
        )

    async def _sync_with_semaphore(
        self,
        job: _Job,
        clone: bool,
        clone_root: Optional[Path],
        stats: SyncStatistics,
    ) -> _Outcome:
        async with self._semaphore:
            # Cancellation is honored between repositories, never mid-fetch
            if self._cancellation_event.is_set():
                logger.debug(f"Skipping {job.display_name}: sync cancelled")
                return _Outcome(cancelled=True)
            return await self._sync_repository(job, clone, clone_root, stats)

    async def _sync_repository(
        self,
        job: _Job,
        clone: bool,
        clone_root: Optional[Path],
        stats: SyncStatistics,
    ) -> _Outcome:
        """
        Run one repository's pipeline: fetch, normalize, store, clone.

        Any failure is returned as the outcome's error instead of raised,
        after being recorded in the repository's SyncState when one exists.
        """

        identity = job.resolved.identity
        try:
            kind, raw = await self._fetch(job, stats)
            record = normalize(kind, raw)
            identity = record.identity

            async with self.store.lock(identity):
                state = self._merge(record)
                self.store.put(state)

                if clone:
                    state = await self._materialize(record, state, clone_root, stats)
                    self.store.put(state)

            logger.debug(f"Synced {record.display_name}")
            return _Outcome(record=record, identity=identity)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            stats.failures += 1
            logger.error(f"Failed to sync {job.display_name}: {e}")
            if identity is not None:
                async with self.store.lock(identity):
                    previous = self.store.get(identity)
                    if previous is not None:
                        self.store.put(previous.record_failure(str(e)))
            return _Outcome(error=e, identity=identity)

    async def _fetch(self, job: _Job, stats: SyncStatistics) -> Tuple[ProviderKind, RawRepo]:
        owner, name = job.resolved.owner, job.resolved.name

        async def count_retry(attempt: int, error: BaseException, delay: float) -> None:
            stats.retries += 1

        not_found: List[str] = []
        for kind, host in job.candidates:
            client = self.clients.get(kind, host)

            async def fetch_once() -> RawRepo:
                stats.fetches += 1
                return await client.get_repository(owner, name)

            try:
                raw = await self.retry_manager.execute(fetch_once, on_retry=count_retry)
                return kind, raw
            except NotFoundError:
                if len(job.candidates) == 1:
                    raise
                logger.debug(f"{owner}/{name} not found on {kind.value}")
                not_found.append(kind.value)

        raise NotFoundError(f"{owner}/{name} not found on any of: {', '.join(not_found)}")

    def _merge(self, record: RepoRecord) -> SyncState:
        previous = self.store.get(record.identity)
        if previous is None:
            return SyncState(identity=record.identity).record_success(record)

        if previous.last_fetched_at and previous.last_fetched_at > record.fetched_at:
            # Another reference fetched this repository more recently
            return previous
        return previous.record_success(record)

    async def _materialize(
        self,
        record: RepoRecord,
        state: SyncState,
        clone_root: Path,
        stats: SyncStatistics,
    ) -> SyncState:
        action = self.clone_manager.plan(record, clone_root)
        path = await self.clone_manager.ensure_local(record, clone_root)

        if action is CloneAction.CLONE:
            stats.clones += 1
        elif action is CloneAction.UPDATE:
            stats.updates += 1
        else:
            stats.clones_skipped += 1
        return replace(state, clone_path=path, fetched_ref=record.revision)

    async def list_owner(
        self, kind: ProviderKind, owner: str, host: Optional[str] = None
    ) -> List[RepoRecord]:
        """
        Enumerate and normalize every repository of an owner.

        Malformed entries are logged and skipped. The walk is retried from
        the first page on retryable failures.
        """

        client = self.clients.get(kind, host)

        async def collect() -> List[RawRepo]:
            return [raw async for raw in client.list_repositories(owner)]

        records = []
        for raw in await self.retry_manager.execute(collect):
            try:
                records.append(normalize(kind, raw))
            except MalformedResponseError as e:
                logger.warning(f"Skipping malformed repository entry for {owner}: {e}")

        logger.debug(f"Listed {len(records)} repositories for {owner} on {kind.value}")
        return records

    def cancel(self) -> bool:
        """
        Cancel the running batch. Repositories already in flight complete;
        the rest are reported in SyncResult.cancelled.

        Returns:
            False when no batch is running
        """

        if not self._is_running:
            logger.warning("No active sync to cancel")
            return False

        self._cancellation_event.set()
        logger.info("Sync cancelled by user")
        return True

    @property
    def is_running(self) -> bool:
        return self._is_running


__all__ = ["SyncOrchestrator"]
