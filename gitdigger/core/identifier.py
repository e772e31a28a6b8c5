"""
Provider identification: map a repository reference to a hosting provider
and decompose it into owner, name and an optional self-hosted host.
"""

import re
from typing import Dict, Mapping, Optional, Union
from urllib.parse import urlparse

from ..models import (
    ProviderKind, RepoReference, ResolvedReference, UnqualifiedPolicy
)
from ..infrastructure.logger import logger


KNOWN_HOSTS: Dict[str, ProviderKind] = {
    "github.com": ProviderKind.GITHUB,
    "gitlab.com": ProviderKind.GITLAB,
    "codeberg.org": ProviderKind.GENERIC,
    "gitea.com": ProviderKind.GENERIC,
}

# Public instances reached without a host override
DEFAULT_HOSTS: Dict[ProviderKind, str] = {
    ProviderKind.GITHUB: "github.com",
    ProviderKind.GITLAB: "gitlab.com",
    ProviderKind.GENERIC: "codeberg.org",
}

# scp-like syntax: git@host:owner/name.git
_SCP_URL = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*)$")
_NAME = re.compile(r"^[\w.-]+$")

UNKNOWN = ResolvedReference(ProviderKind.UNKNOWN)


class ProviderIdentifier:
    """
    Classifies references by host pattern and explicit provider hints.

    Both `classify` and `resolve` are pure and total: anything that cannot
    be mapped resolves to `ProviderKind.UNKNOWN` instead of raising.
    """

    def __init__(
        self,
        hosts: Optional[Mapping[str, ProviderKind]] = None,
        unqualified: UnqualifiedPolicy = UnqualifiedPolicy.REQUIRE_HINT,
        default_provider: Optional[ProviderKind] = None,
    ):
        self.hosts = dict(KNOWN_HOSTS)
        self.custom_hosts = {host.lower(): kind for host, kind in (hosts or {}).items()}
        self.hosts.update(self.custom_hosts)
        self.unqualified = unqualified
        self.default_provider = default_provider

    def classify(self, reference: Union[RepoReference, str]) -> ProviderKind:
        return self.resolve(reference).kind

    def resolve(self, reference: Union[RepoReference, str]) -> ResolvedReference:
        try:
            if isinstance(reference, str):
                reference = RepoReference.parse(reference)
            if not isinstance(reference, RepoReference):
                return UNKNOWN
            if reference.url:
                return self._resolve_url(reference.url)
            return self._resolve_parts(reference)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Could not classify reference {reference!r}: {e}")
            return UNKNOWN

    def _resolve_parts(self, reference: RepoReference) -> ResolvedReference:
        owner = (reference.owner or "").strip().strip("/")
        name = _strip_git_suffix((reference.name or "").strip().strip("/"))
        if not _valid_path(owner.split("/"), name):
            return UNKNOWN

        if reference.provider:
            kind = ProviderKind.parse(reference.provider)
        elif self.unqualified is UnqualifiedPolicy.DEFAULT_PROVIDER and self.default_provider:
            kind = self.default_provider
        else:
            # REQUIRE_HINT, or PROBE which the orchestrator performs itself
            kind = ProviderKind.UNKNOWN

        if kind is ProviderKind.UNKNOWN:
            return ResolvedReference(ProviderKind.UNKNOWN, owner.lower(), name.lower())
        if "/" in owner and kind is not ProviderKind.GITLAB:
            return UNKNOWN
        return ResolvedReference(kind, owner.lower(), name.lower())

    def _resolve_url(self, url: str) -> ResolvedReference:
        host, path = _split_url(url.strip())
        if not host:
            logger.warning(f"No match for repo in '{url}'")
            return UNKNOWN

        kind = self.hosts.get(host)
        if kind is None:
            logger.warning(f"No match for repo in '{url}'")
            return UNKNOWN

        segments = [segment for segment in path.split("/") if segment]
        if kind is ProviderKind.GITLAB:
            # Subgroups: everything before the '/-/' separator belongs to the project path
            if "-" in segments:
                segments = segments[:segments.index("-")]
            owner_segments, name = segments[:-1], segments[-1] if segments else ""
        else:
            owner_segments, name = segments[:1], segments[1] if len(segments) > 1 else ""

        name = _strip_git_suffix(name)
        if not _valid_path(owner_segments, name):
            logger.warning(f"No match for repo in '{url}'")
            return UNKNOWN

        override = None if DEFAULT_HOSTS.get(kind) == host else host
        return ResolvedReference(
            kind, "/".join(owner_segments).lower(), name.lower(), override
        )


def _split_url(url: str):
    if "://" in url:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https", "ssh", "git"):
            return None, ""
        host = (parsed.hostname or "").lower()
        path = parsed.path
    else:
        match = _SCP_URL.match(url)
        if not match:
            return None, ""
        host = match.group("host").lower()
        path = match.group("path")

    if host.startswith("www."):
        host = host[len("www."):]
    return host, path


def _valid_path(owner_segments, name: str) -> bool:
    segments = [*owner_segments, name]
    return bool(owner_segments) and all(
        _NAME.match(segment) and segment not in (".", "..") for segment in segments
    )


def _strip_git_suffix(name: str) -> str:
    return name[:-len(".git")] if name.endswith(".git") else name


_default_identifier = ProviderIdentifier()


def classify(reference: Union[RepoReference, str]) -> ProviderKind:
    """Classify a reference with the default host table."""

    return _default_identifier.classify(reference)


def resolve(reference: Union[RepoReference, str]) -> ResolvedReference:
    return _default_identifier.resolve(reference)


__all__ = ["ProviderIdentifier", "KNOWN_HOSTS", "classify", "resolve"]
