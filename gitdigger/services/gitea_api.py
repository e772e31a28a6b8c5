"""
Gitea / Forgejo compatible API adapter, used for generic self-hosted forges.
"""

from typing import Dict, Optional
from urllib.parse import quote

from ..models import ProviderKind
from ..infrastructure.http_client import HTTPResponse
from .base import ProviderClient, parse_link_header


class GiteaClient(ProviderClient):
    """Any forge exposing the Gitea `/api/v1` surface (Codeberg, Forgejo, Gitea)."""

    kind = ProviderKind.GENERIC

    @classmethod
    def default_base_url(cls, host: Optional[str]) -> str:
        return f"https://{host or 'codeberg.org'}/api/v1"

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"token {self.token}"}

    def _repository_path(self, owner: str, name: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(name, safe='')}"

    # Cursor: (owner, page number)
    def _first_page(self, owner: str):
        return owner, 1

    def _page_url(self, cursor) -> str:
        owner, page = cursor
        return self._with_query(
            f"{self.base_url}/users/{quote(owner, safe='')}/repos",
            limit=self.page_size,
            page=page,
        )

    def _next_cursor(self, cursor, response: HTTPResponse, items: list):
        owner, page = cursor
        has_more = (response.header("x-hasmore") or "").lower() == "true"
        if has_more or "next" in parse_link_header(response.header("link")):
            return owner, page + 1
        return None


__all__ = ["GiteaClient"]
