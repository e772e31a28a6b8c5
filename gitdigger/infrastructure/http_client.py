"""
HTTP client capability consumed by the provider clients, plus the default
adapter built on httpx.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from .error_handler import handle_api_error
from .logger import logger


DEFAULT_USER_AGENT = "git-digger"


@dataclass
class HTTPResponse:
    """Status, headers and raw body of one HTTP exchange."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""

        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class HTTPClient(ABC):
    """Transport capability: one request in, one response out."""

    @abstractmethod
    async def request(
        self, method: str, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> HTTPResponse:
        """
        Perform a single request.

        Raises:
            TransientNetworkError: On any transport level failure
        """

    async def aclose(self) -> None:
        return None


class HttpxClient(HTTPClient):
    """HTTPClient backed by a shared httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

    @handle_api_error
    async def request(
        self, method: str, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> HTTPResponse:
        logger.debug(f"{method} {url}")
        response = await self._client.request(method, url, headers=dict(headers or {}))
        return HTTPResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["HTTPResponse", "HTTPClient", "HttpxClient"]
