"""
Shared fakes for the HTTP transport, the git collaborator and provider clients.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from gitdigger.infrastructure.git_client import GitClient
from gitdigger.infrastructure.http_client import HTTPClient, HTTPResponse
from gitdigger.models import ProviderKind, RawRepo


def make_response(payload: Any = None, status: int = 200, headers=None, body=None) -> HTTPResponse:
    if body is None:
        body = json.dumps(payload).encode("utf-8")
    return HTTPResponse(status=status, headers=dict(headers or {}), body=body)


class FakeHTTPClient(HTTPClient):
    """Serves queued responses per URL; unknown URLs answer 404."""

    def __init__(self):
        self.routes: Dict[str, List[Any]] = {}
        self.requests: List[Tuple[str, str, Dict[str, str]]] = []

    def add(self, url: str, *responses) -> None:
        self.routes.setdefault(url, []).extend(responses)

    async def request(self, method, url, headers=None) -> HTTPResponse:
        self.requests.append((method, url, dict(headers or {})))
        queue = self.routes.get(url)
        if not queue:
            return make_response({"message": "Not Found"}, status=404)

        # The last queued response keeps answering once the others are used up
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def urls(self) -> List[str]:
        return [url for _, url, _ in self.requests]


class FakeGitClient(GitClient):
    """Records clone / update calls and fakes a checkout on disk."""

    def __init__(self):
        self.clones: List[Tuple[str, Path, Optional[int]]] = []
        self.updates: List[Path] = []
        self.error: Optional[Exception] = None

    async def clone(self, url, dest, depth=None) -> None:
        self.clones.append((url, Path(dest), depth))
        if self.error:
            raise self.error
        (Path(dest) / ".git").mkdir(parents=True)

    async def update(self, path) -> None:
        self.updates.append(Path(path))
        if self.error:
            raise self.error

    @property
    def call_count(self) -> int:
        return len(self.clones) + len(self.updates)


class MockProviderClient:
    """
    Stand-in ProviderClient. `effects[(owner, name)]` is a payload dict, an
    exception, or a list of those consumed one per call.
    """

    def __init__(self, kind: ProviderKind = ProviderKind.GITHUB, effects=None, listings=None):
        self.kind = kind
        self.effects: Dict[Tuple[str, str], Any] = dict(effects or {})
        self.listings: Dict[str, List[Any]] = dict(listings or {})
        self.calls: List[Tuple[str, str]] = []

    async def get_repository(self, owner: str, name: str) -> RawRepo:
        self.calls.append((owner, name))
        effect = self.effects.get((owner, name))
        if isinstance(effect, list):
            effect = effect.pop(0) if len(effect) > 1 else effect[0]
        if effect is None:
            from gitdigger.infrastructure.error_handler import NotFoundError
            raise NotFoundError(f"{owner}/{name} not found")
        if isinstance(effect, BaseException):
            raise effect
        return RawRepo.for_kind(self.kind, dict(effect))

    async def list_repositories(self, owner: str):
        for payload in self.listings.get(owner, []):
            yield RawRepo.for_kind(self.kind, payload)


@pytest.fixture
def http_client():
    return FakeHTTPClient()


@pytest.fixture
def git_client():
    return FakeGitClient()


@pytest.fixture
def response():
    """Factory for canned HTTPResponse objects."""

    return make_response


@pytest.fixture
def mock_provider():
    """Factory for MockProviderClient instances."""

    return MockProviderClient
