"""
GitLab REST API (v4) adapter.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional
from urllib.parse import quote

from ..models import ProviderKind, RawRepo
from ..infrastructure.error_handler import NotFoundError
from ..infrastructure.http_client import HTTPResponse
from ..infrastructure.logger import logger
from .base import ProviderClient


@dataclass(frozen=True)
class _PageCursor:
    """Owner collection path plus page number (from `X-Next-Page`)."""

    collection: str
    page: int


class GitLabClient(ProviderClient):
    """GitLab.com and self-managed GitLab instances."""

    kind = ProviderKind.GITLAB

    @classmethod
    def default_base_url(cls, host: Optional[str]) -> str:
        return f"https://{host or 'gitlab.com'}/api/v4"

    def _auth_headers(self) -> Dict[str, str]:
        return {"PRIVATE-TOKEN": self.token}

    def _repository_path(self, owner: str, name: str) -> str:
        # Projects are addressed by their URL-encoded full path
        return f"/projects/{quote(f'{owner}/{name}', safe='')}?statistics=true"

    async def list_repositories(self, owner: str) -> AsyncIterator[RawRepo]:
        """
        Walk a group's projects (subgroups included), falling back to the
        user namespace when no group of that name exists.
        """

        try:
            async for raw in self._walk(self._first_page(owner), owner):
                yield raw
            return
        except NotFoundError:
            logger.debug(f"gitlab: no group named {owner}, listing user projects")

        users = _PageCursor(f"/users/{quote(owner, safe='')}/projects", 1)
        async for raw in self._walk(users, owner):
            yield raw

    def _first_page(self, owner: str) -> _PageCursor:
        return _PageCursor(f"/groups/{quote(owner, safe='')}/projects", 1)

    def _page_url(self, cursor: _PageCursor) -> str:
        params = {"per_page": self.page_size, "page": cursor.page}
        if cursor.collection.startswith("/groups/"):
            params["include_subgroups"] = "true"
        return self._with_query(self.base_url + cursor.collection, **params)

    def _next_cursor(
        self, cursor: _PageCursor, response: HTTPResponse, items: list
    ) -> Optional[_PageCursor]:
        next_page = (response.header("x-next-page") or "").strip()
        if not next_page.isdigit():
            return None
        return _PageCursor(cursor.collection, int(next_page))


__all__ = ["GitLabClient"]
