"""
Provider client capability shared by every hosting provider adapter.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional, Tuple
from urllib.parse import urlencode

from ..models import ProviderKind, RawRepo
from ..infrastructure.error_handler import (
    MalformedResponseError, RateLimitError, decode_json, raise_for_response
)
from ..infrastructure.http_client import HTTPClient, HTTPResponse
from ..infrastructure.logger import logger
from ..infrastructure.rate_limiter import RateLimiter


class ProviderClient(ABC):
    """
    Uniform access to one provider's repository API.

    Clients are stateless apart from the shared, per-provider RateLimiter,
    so one instance can serve every worker of every concurrent batch.
    Pagination cursors are private to each adapter: the `_first_page` /
    `_next_cursor` pair threads an opaque continuation value through
    `list_repositories`.
    """

    kind: ProviderKind = ProviderKind.UNKNOWN

    def __init__(
        self,
        http_client: HTTPClient,
        rate_limiter: Optional[RateLimiter] = None,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        host: Optional[str] = None,
        page_size: int = 100,
    ):
        self.http_client = http_client
        self.rate_limiter = rate_limiter or RateLimiter()
        self.token = token
        self.host = host
        self.base_url = (base_url or self.default_base_url(host)).rstrip("/")
        self.page_size = page_size

    @classmethod
    @abstractmethod
    def default_base_url(cls, host: Optional[str]) -> str:
        """API root for the public instance, or for a self-hosted `host`."""

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        """Provider specific authentication headers."""

    @abstractmethod
    def _repository_path(self, owner: str, name: str) -> str:
        """API path of a single repository."""

    @abstractmethod
    def _first_page(self, owner: str) -> Any:
        """Cursor of the first page of an owner's repositories."""

    @abstractmethod
    def _next_cursor(self, cursor: Any, response: HTTPResponse, items: list) -> Any:
        """Cursor of the page after `cursor`, or None when the walk is done."""

    @abstractmethod
    def _page_url(self, cursor: Any) -> str:
        """Absolute URL for a cursor."""

    async def get_repository(self, owner: str, name: str) -> RawRepo:
        """
        Fetch metadata for one repository.

        Raises:
            NotFoundError, RateLimitError, AuthenticationError,
            TransientNetworkError, ProviderError, MalformedResponseError
        """

        url = self.base_url + self._repository_path(owner, name)
        _, payload = await self._get_json(url)
        return RawRepo.for_kind(self.kind, payload, host=self.host)

    async def list_repositories(self, owner: str) -> AsyncIterator[RawRepo]:
        """
        Lazily walk every page of an owner's repositories.

        Each call starts a fresh walk from the first page.
        """

        async for raw in self._walk(self._first_page(owner), owner):
            yield raw

    async def _walk(self, cursor: Any, owner: str) -> AsyncIterator[RawRepo]:
        while cursor is not None:
            response, items = await self._get_json(self._page_url(cursor))
            if not isinstance(items, list):
                raise MalformedResponseError(
                    f"Expected a list of repositories from {self._page_url(cursor)}"
                )

            logger.debug(f"{self.kind.value}: page with {len(items)} repositories for {owner}")
            for item in items:
                yield RawRepo.for_kind(self.kind, item, host=self.host)

            cursor = self._next_cursor(cursor, response, items) if items else None

    async def _get_json(self, url: str) -> Tuple[HTTPResponse, Any]:
        await self.rate_limiter.acquire()
        response = await self.http_client.request("GET", url, self._headers())
        await self.rate_limiter.update_rate_limit_info(response.headers or {})

        try:
            raise_for_response(response, url)
        except RateLimitError as e:
            await self.rate_limiter.note_rate_limited(e.retry_after)
            raise
        return response, decode_json(response.body, url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers.update(self._auth_headers())
        return headers

    @staticmethod
    def _with_query(url: str, **params) -> str:
        return f"{url}?{urlencode(params)}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_url!r})"


def parse_link_header(value: Optional[str]) -> Dict[str, str]:
    """Parse an RFC 8288 `Link` header into a {rel: url} mapping."""

    links: Dict[str, str] = {}
    if not value:
        return links

    for part in value.split(","):
        sections = part.split(";")
        url = sections[0].strip()
        if not (url.startswith("<") and url.endswith(">")):
            continue
        for param in sections[1:]:
            key, _, rel = param.strip().partition("=")
            if key.strip() == "rel":
                for name in rel.strip().strip('"').split():
                    links[name] = url[1:-1]
    return links


__all__ = ["ProviderClient", "parse_link_header"]
