"""
Synchronization domain models for GitDigger.

This module contains data classes representing persisted per-repository
sync state, per-repository failures and the result of one sync batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .repository import RepoIdentity, RepoRecord, RepoReference


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncState:
    """Per-repository bookkeeping persisted between runs."""

    identity: RepoIdentity
    record: Optional[RepoRecord] = None
    last_fetched_at: Optional[datetime] = None
    fetched_ref: Optional[str] = None       # Revision the local copy reflects
    clone_path: Optional[Path] = None
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    failure_count: int = 0                  # Consecutive failures since the last success

    def record_success(self, record: RepoRecord) -> "SyncState":
        """Return a copy updated with a freshly fetched record. The last error stays inspectable."""

        return replace(
            self,
            record=record,
            last_fetched_at=record.fetched_at,
            failure_count=0,
        )

    def record_failure(self, message: str) -> "SyncState":
        """Return a copy carrying the failure, keeping the last known record."""

        return replace(
            self,
            last_error=message,
            last_error_at=_utcnow(),
            failure_count=self.failure_count + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "record": self.record.to_dict() if self.record else None,
            "last_fetched_at": _format(self.last_fetched_at),
            "fetched_ref": self.fetched_ref,
            "clone_path": str(self.clone_path) if self.clone_path else None,
            "last_error": self.last_error,
            "last_error_at": _format(self.last_error_at),
            "failure_count": self.failure_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncState":
        record = data.get("record")
        clone_path = data.get("clone_path")
        return cls(
            identity=RepoIdentity.from_dict(data["identity"]),
            record=RepoRecord.from_dict(record) if record else None,
            last_fetched_at=_parse(data.get("last_fetched_at")),
            fetched_ref=data.get("fetched_ref"),
            clone_path=Path(clone_path) if clone_path else None,
            last_error=data.get("last_error"),
            last_error_at=_parse(data.get("last_error_at")),
            failure_count=data.get("failure_count", 0),
        )


@dataclass
class FetchError:
    """A per-repository failure attached to a batch result."""

    reference: RepoReference
    kind: str
    message: str
    retryable: bool = False
    identity: Optional[RepoIdentity] = None
    status: Optional[int] = None
    occurred_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_exception(
        cls,
        reference: RepoReference,
        error: BaseException,
        identity: Optional[RepoIdentity] = None,
    ) -> "FetchError":
        return cls(
            reference=reference,
            kind=getattr(error, "kind", type(error).__name__),
            message=str(error),
            retryable=getattr(error, "retryable", False),
            identity=identity,
            status=getattr(error, "status", None),
        )

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass
class SyncOptions:
    """Per-batch overrides of the configured clone behaviour."""

    clone: Optional[bool] = None
    clone_root: Optional[Path] = None


@dataclass
class SyncStatistics:
    """Detailed statistics for one sync batch."""

    total_references: int = 0
    unique_repositories: int = 0
    fetches: int = 0
    retries: int = 0
    clones: int = 0
    updates: int = 0
    clones_skipped: int = 0
    failures: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""

        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0


@dataclass
class SyncResult:
    """Outcome of one batch: succeeded records, per-reference failures and cancellations."""

    succeeded: List[RepoRecord] = field(default_factory=list)
    failed: List[Tuple[RepoReference, FetchError]] = field(default_factory=list)
    cancelled: List[RepoReference] = field(default_factory=list)
    statistics: SyncStatistics = field(default_factory=SyncStatistics)
    resolved: Dict[RepoReference, RepoIdentity] = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return not self.failed and not self.cancelled

    def record_for(self, reference: RepoReference) -> Optional[RepoRecord]:
        """Return the record an original reference resolved to, if it succeeded."""

        identity = self.resolved.get(reference)
        if identity is None:
            return None
        for record in self.succeeded:
            if record.identity == identity:
                return record
        return None

    def error_for(self, reference: RepoReference) -> Optional[FetchError]:
        for failed_reference, error in self.failed:
            if failed_reference == reference:
                return error
        return None


def _format(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


__all__ = [
    "SyncState",
    "FetchError",
    "SyncOptions",
    "SyncStatistics",
    "SyncResult",
]
