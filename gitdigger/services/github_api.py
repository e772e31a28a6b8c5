"""
GitHub REST API adapter.
"""

from typing import Dict, Optional
from urllib.parse import quote

from ..models import ProviderKind
from ..infrastructure.http_client import HTTPResponse
from .base import ProviderClient, parse_link_header


class GitHubClient(ProviderClient):
    """GitHub.com and GitHub Enterprise Server (`https://<host>/api/v3`)."""

    kind = ProviderKind.GITHUB

    @classmethod
    def default_base_url(cls, host: Optional[str]) -> str:
        if host:
            return f"https://{host}/api/v3"
        return "https://api.github.com"

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github+json"
        headers["X-GitHub-Api-Version"] = "2022-11-28"
        return headers

    def _repository_path(self, owner: str, name: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(name, safe='')}"

    # Cursor: the absolute URL of the page, taken from the Link header
    def _first_page(self, owner: str) -> str:
        return self._with_query(
            f"{self.base_url}/users/{quote(owner, safe='')}/repos",
            per_page=self.page_size,
        )

    def _page_url(self, cursor: str) -> str:
        return cursor

    def _next_cursor(self, cursor: str, response: HTTPResponse, items: list) -> Optional[str]:
        return parse_link_header(response.header("link")).get("next")


__all__ = ["GitHubClient"]
