"""
Normalization of provider specific repository payloads into RepoRecord.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Set

from ..models import (
    ProviderKind, RawRepo, RepoIdentity, RepoRecord, Visibility
)
from ..infrastructure.error_handler import MalformedResponseError
from .identifier import DEFAULT_HOSTS



def normalize(kind: ProviderKind, raw: RawRepo) -> RepoRecord:
    """
    Map one provider payload onto the unified record shape.

    Pure and deterministic. Absent optional fields become None; only a
    missing owner or name raises.

    Raises:
        MalformedResponseError: If the payload is not an object or lacks
            owner / name
    """

    branch = _BRANCHES.get(kind)
    if branch is None:
        raise MalformedResponseError(f"No normalizer for provider {kind.value}")
    if not isinstance(raw.payload, dict):
        raise MalformedResponseError(
            f"Expected a repository object from {kind.value}, got {type(raw.payload).__name__}"
        )
    return branch(raw)


class _Payload:
    """Read-tracking view over a payload so unconsumed keys land in extensions."""

    def __init__(self, data: Dict[str, Any]):
        self.data = data
        self.consumed: Set[str] = set()

    def get(self, key: str, default: Any = None) -> Any:
        self.consumed.add(key)
        value = self.data.get(key)
        return default if value is None else value

    def first(self, *keys: str) -> Any:
        values = [self.get(key) for key in keys]
        return next((value for value in values if value is not None), None)

    def extensions(self, ignore: Iterable[str] = ()) -> Dict[str, Any]:
        skip = self.consumed | set(ignore)
        return {key: value for key, value in self.data.items() if key not in skip}


def _normalize_github(raw: RawRepo) -> RepoRecord:
    payload = _Payload(raw.payload)
    owner = _login(payload.get("owner"))
    name = payload.get("name")
    _require(ProviderKind.GITHUB, owner, name)

    host = raw.host or DEFAULT_HOSTS[ProviderKind.GITHUB]
    private = payload.get("private")
    return RepoRecord(
        identity=RepoIdentity(ProviderKind.GITHUB, owner, name, raw.host),
        full_name=payload.get("full_name") or f"{owner}/{name}",
        clone_url=payload.get("clone_url") or _clone_url(host, owner, name),
        web_url=payload.get("html_url") or _web_url(host, owner, name),
        default_branch=payload.get("default_branch"),
        description=payload.get("description"),
        visibility=_visibility(payload.get("visibility"), private),
        updated_at=_timestamp(payload.first("pushed_at", "updated_at")),
        size_kb=_int(payload.get("size")),
        stars=_int(payload.get("stargazers_count")),
        forks=_int(payload.get("forks_count")),
        is_fork=_bool(payload.get("fork")),
        archived=_bool(payload.get("archived")),
        extensions=payload.extensions(),
        fetched_at=raw.fetched_at,
    )


def _normalize_gitlab(raw: RawRepo) -> RepoRecord:
    payload = _Payload(raw.payload)
    path_with_namespace = payload.get("path_with_namespace") or ""
    namespace = payload.get("namespace")

    owner = None
    if isinstance(namespace, dict):
        owner = namespace.get("full_path") or namespace.get("path")
    elif isinstance(namespace, str):
        owner = namespace
    if not owner and "/" in path_with_namespace:
        owner = path_with_namespace.rsplit("/", 1)[0]
    owner = owner or _login(payload.get("owner"))
    name = payload.first("path", "name")
    _require(ProviderKind.GITLAB, owner, name)

    host = raw.host or DEFAULT_HOSTS[ProviderKind.GITLAB]
    statistics = payload.get("statistics")
    size_bytes = statistics.get("repository_size") if isinstance(statistics, dict) else None
    return RepoRecord(
        identity=RepoIdentity(ProviderKind.GITLAB, owner, name, raw.host),
        full_name=path_with_namespace or f"{owner}/{name}",
        clone_url=payload.get("http_url_to_repo") or _clone_url(host, owner, name),
        web_url=payload.get("web_url") or _web_url(host, owner, name),
        default_branch=payload.get("default_branch"),
        description=payload.get("description"),
        visibility=_visibility(payload.get("visibility"), None),
        updated_at=_timestamp(payload.get("last_activity_at")),
        size_kb=_int(size_bytes // 1024) if isinstance(size_bytes, int) else None,
        stars=_int(payload.get("star_count")),
        forks=_int(payload.get("forks_count")),
        is_fork=True if payload.get("forked_from_project") else None,
        archived=_bool(payload.get("archived")),
        extensions=payload.extensions(),
        fetched_at=raw.fetched_at,
    )


def _normalize_generic(raw: RawRepo) -> RepoRecord:
    payload = _Payload(raw.payload)
    owner = _login(payload.get("owner"))
    name = payload.get("name")
    _require(ProviderKind.GENERIC, owner, name)

    host = raw.host or DEFAULT_HOSTS[ProviderKind.GENERIC]
    private = payload.get("private")
    internal = payload.get("internal")
    return RepoRecord(
        identity=RepoIdentity(ProviderKind.GENERIC, owner, name, raw.host),
        full_name=payload.get("full_name") or f"{owner}/{name}",
        clone_url=payload.get("clone_url") or _clone_url(host, owner, name),
        web_url=payload.get("html_url") or _web_url(host, owner, name),
        default_branch=payload.get("default_branch"),
        description=payload.get("description"),
        visibility=Visibility.INTERNAL if internal else _visibility(None, private),
        updated_at=_timestamp(payload.get("updated_at")),
        size_kb=_int(payload.get("size")),
        stars=_int(payload.get("stars_count")),
        forks=_int(payload.get("forks_count")),
        is_fork=_bool(payload.get("fork")),
        archived=_bool(payload.get("archived")),
        extensions=payload.extensions(),
        fetched_at=raw.fetched_at,
    )


_BRANCHES: Dict[ProviderKind, Callable[[RawRepo], RepoRecord]] = {
    ProviderKind.GITHUB: _normalize_github,
    ProviderKind.GITLAB: _normalize_gitlab,
    ProviderKind.GENERIC: _normalize_generic,
}


####
##      FIELD HELPERS
#####
def _require(kind: ProviderKind, owner: Any, name: Any) -> None:
    if not isinstance(owner, str) or not owner.strip():
        raise MalformedResponseError(f"{kind.value} repository payload is missing its owner")
    if not isinstance(name, str) or not name.strip():
        raise MalformedResponseError(f"{kind.value} repository payload is missing its name")

    segments = [*owner.split("/"), name]
    if any(segment.strip() in ("", ".", "..") for segment in segments) or "/" in name:
        raise MalformedResponseError(
            f"{kind.value} repository payload has an unusable path {owner}/{name}"
        )


def _login(owner: Any) -> Optional[str]:
    if isinstance(owner, dict):
        return owner.get("login") or owner.get("username") or owner.get("name")
    if isinstance(owner, str):
        return owner
    return None


def _clone_url(host: str, owner: str, name: str) -> str:
    return f"https://{host}/{owner}/{name}.git"


def _web_url(host: str, owner: str, name: str) -> str:
    return f"https://{host}/{owner}/{name}"


def _visibility(value: Any, private: Any) -> Visibility:
    if isinstance(value, str):
        try:
            return Visibility(value.lower())
        except ValueError:
            return Visibility.UNKNOWN
    if private is True:
        return Visibility.PRIVATE
    if private is False:
        return Visibility.PUBLIC
    return Visibility.UNKNOWN


def _timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


__all__ = ["normalize"]
