"""
Repository domain models for GitDigger.

This module contains strongly typed data classes and enums representing
hosting providers, caller supplied references and the unified repository
record every provider response is normalized into.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ProviderKind(Enum):
    """Enumeration of supported hosting provider families."""

    GITHUB = "github-like"
    GITLAB = "gitlab-like"
    GENERIC = "generic"         # Gitea / Forgejo compatible API
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ProviderKind":
        """Map a hint such as 'github', 'GitLab' or 'gitlab-like' to a kind."""

        if isinstance(value, ProviderKind):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN

        text = value.strip().lower()
        for kind in cls:
            if text in (kind.value, kind.name.lower()):
                return kind
        return _PROVIDER_ALIASES.get(text, cls.UNKNOWN)


_PROVIDER_ALIASES = {
    "github": ProviderKind.GITHUB,
    "gitlab": ProviderKind.GITLAB,
    "gitea": ProviderKind.GENERIC,
    "forgejo": ProviderKind.GENERIC,
    "codeberg": ProviderKind.GENERIC,
}


class Visibility(Enum):
    """Repository visibility as reported by the provider."""

    PUBLIC = "public"
    PRIVATE = "private"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RepoReference:
    """Immutable caller supplied reference: a full URL or a (hint, owner, name) triple."""

    url: Optional[str] = None
    provider: Optional[str] = None
    owner: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_url(cls, url: str) -> "RepoReference":
        return cls(url=url)

    @classmethod
    def from_parts(
        cls, owner: str, name: str, provider: Optional[Any] = None
    ) -> "RepoReference":
        if isinstance(provider, ProviderKind):
            provider = provider.value
        return cls(provider=provider, owner=owner, name=name)

    @classmethod
    def parse(cls, text: str) -> "RepoReference":
        """Build a reference from either a URL or a bare 'owner/name' string."""

        text = text.strip()
        if "://" in text or text.startswith("git@"):
            return cls.from_url(text)

        owner, _, name = text.rpartition("/")
        if owner and name:
            return cls.from_parts(owner, name)
        return cls.from_url(text)

    @property
    def display_name(self) -> str:
        if self.url:
            return self.url
        prefix = f"{self.provider}:" if self.provider else ""
        return f"{prefix}{self.owner}/{self.name}"


@dataclass(frozen=True)
class RepoIdentity:
    """
    Stable (provider, owner, name) identity on one provider instance,
    compared case-insensitively. `host` is None for the public instance.
    """

    provider: ProviderKind
    owner: str
    name: str
    host: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.owner or not self.name:
            raise ValueError("Repository owner and name are required")

        object.__setattr__(self, "owner", self.owner.lower())
        object.__setattr__(self, "name", self.name.lower())
        if self.host:
            object.__setattr__(self, "host", self.host.lower())

    @property
    def instance(self) -> str:
        prefix = self.provider.name.lower()
        return f"{prefix}@{self.host}" if self.host else prefix

    @property
    def key(self) -> str:
        return f"{self.instance}/{self.owner}/{self.name}"

    def path_parts(self) -> List[str]:
        """Directory segments for on-disk layouts, without traversal segments."""

        parts = [self.instance, *self.owner.split("/"), self.name]
        return [part for part in parts if part not in ("", ".", "..")]

    def __str__(self) -> str:
        return self.key

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "provider": self.provider.value,
            "owner": self.owner,
            "name": self.name,
            "host": self.host,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "RepoIdentity":
        return cls(
            provider=ProviderKind(data["provider"]),
            owner=data["owner"],
            name=data["name"],
            host=data.get("host"),
        )


@dataclass(frozen=True)
class ResolvedReference:
    """Result of classifying a reference: provider, owner, name and optional host."""

    kind: ProviderKind
    owner: Optional[str] = None
    name: Optional[str] = None
    host: Optional[str] = None     # Set only for self-hosted instances

    @property
    def is_supported(self) -> bool:
        return self.kind is not ProviderKind.UNKNOWN and bool(self.owner and self.name)

    @property
    def identity(self) -> Optional[RepoIdentity]:
        if not self.is_supported:
            return None
        return RepoIdentity(self.kind, self.owner, self.name, self.host)


####
##      RAW PROVIDER RESPONSES
#####
@dataclass(frozen=True)
class RawRepo:
    """A provider's native repository payload, before normalization."""

    payload: Any
    host: Optional[str] = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    kind = ProviderKind.UNKNOWN

    @staticmethod
    def for_kind(
        kind: ProviderKind, payload: Any, host: Optional[str] = None
    ) -> "RawRepo":
        variant = _RAW_VARIANTS.get(kind)
        if variant is None:
            raise ValueError(f"No raw repository variant for provider {kind}")
        return variant(payload=payload, host=host)


@dataclass(frozen=True)
class GitHubRawRepo(RawRepo):
    kind = ProviderKind.GITHUB


@dataclass(frozen=True)
class GitLabRawRepo(RawRepo):
    kind = ProviderKind.GITLAB


@dataclass(frozen=True)
class GenericRawRepo(RawRepo):
    kind = ProviderKind.GENERIC


_RAW_VARIANTS = {
    ProviderKind.GITHUB: GitHubRawRepo,
    ProviderKind.GITLAB: GitLabRawRepo,
    ProviderKind.GENERIC: GenericRawRepo,
}


####
##      UNIFIED RECORD
#####
@dataclass(frozen=True)
class RepoRecord:
    """Immutable provider agnostic repository metadata container."""

    identity: RepoIdentity
    full_name: str
    clone_url: str
    web_url: Optional[str] = None
    default_branch: Optional[str] = None
    description: Optional[str] = None
    visibility: Visibility = Visibility.UNKNOWN
    updated_at: Optional[datetime] = None
    size_kb: Optional[int] = None
    stars: Optional[int] = None
    forks: Optional[int] = None
    is_fork: Optional[bool] = None
    archived: Optional[bool] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_name(self) -> str:
        return self.full_name

    @property
    def revision(self) -> Optional[str]:
        """Upstream change marker used to decide whether a local copy is current."""

        if self.updated_at is None:
            return None
        return self.updated_at.isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "full_name": self.full_name,
            "clone_url": self.clone_url,
            "web_url": self.web_url,
            "default_branch": self.default_branch,
            "description": self.description,
            "visibility": self.visibility.value,
            "updated_at": _format_datetime(self.updated_at),
            "size_kb": self.size_kb,
            "stars": self.stars,
            "forks": self.forks,
            "is_fork": self.is_fork,
            "archived": self.archived,
            "extensions": self.extensions,
            "fetched_at": _format_datetime(self.fetched_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepoRecord":
        return cls(
            identity=RepoIdentity.from_dict(data["identity"]),
            full_name=data["full_name"],
            clone_url=data["clone_url"],
            web_url=data.get("web_url"),
            default_branch=data.get("default_branch"),
            description=data.get("description"),
            visibility=Visibility(data.get("visibility", "unknown")),
            updated_at=_parse_datetime(data.get("updated_at")),
            size_kb=data.get("size_kb"),
            stars=data.get("stars"),
            forks=data.get("forks"),
            is_fork=data.get("is_fork"),
            archived=data.get("archived"),
            extensions=data.get("extensions") or {},
            fetched_at=_parse_datetime(data.get("fetched_at")) or datetime.now(timezone.utc),
        )


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


__all__ = [
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
]
