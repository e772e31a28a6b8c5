"""
Tests for the GitHub, GitLab and Gitea adapters against a fake transport.
"""

import pytest

from gitdigger.infrastructure.error_handler import (
    AuthenticationError, MalformedResponseError, NotFoundError, RateLimitError
)
from gitdigger.infrastructure.rate_limiter import RateLimiter
from gitdigger.models import GitHubRawRepo, GitLabRawRepo, GenericRawRepo, ProviderKind
from gitdigger.services.base import parse_link_header
from gitdigger.services.gitea_api import GiteaClient
from gitdigger.services.github_api import GitHubClient
from gitdigger.services.gitlab_api import GitLabClient


async def collect(client, owner):
    return [raw async for raw in client.list_repositories(owner)]


# ---- Link header -----------------------------------------------------------

def test_parse_link_header():
    value = (
        '<https://api.github.com/user/1/repos?page=2>; rel="next", '
        '<https://api.github.com/user/1/repos?page=5>; rel="last"'
    )

    assert parse_link_header(value) == {
        "next": "https://api.github.com/user/1/repos?page=2",
        "last": "https://api.github.com/user/1/repos?page=5",
    }


@pytest.mark.parametrize("value", [None, "", "garbage", "https://x; rel=next"])
def test_parse_link_header_ignores_garbage(value):
    assert parse_link_header(value) == {}


# ---- GitHub ----------------------------------------------------------------

class TestGitHubClient:

    @pytest.mark.asyncio
    async def test_get_repository(self, http_client, response):
        http_client.add(
            "https://api.github.com/repos/acme/widgets",
            response({"name": "widgets", "owner": {"login": "acme"}}),
        )
        client = GitHubClient(http_client, token="secret")

        raw = await client.get_repository("acme", "widgets")

        assert isinstance(raw, GitHubRawRepo)
        assert raw.kind is ProviderKind.GITHUB
        assert raw.payload["name"] == "widgets"
        assert raw.host is None
        _, _, headers = http_client.requests[0]
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_anonymous_requests_send_no_authorization(self, http_client, response):
        http_client.add("https://api.github.com/repos/acme/widgets", response({"name": "widgets"}))

        await GitHubClient(http_client).get_repository("acme", "widgets")

        _, _, headers = http_client.requests[0]
        assert "Authorization" not in headers

    @pytest.mark.asyncio
    async def test_enterprise_host(self, http_client, response):
        http_client.add("https://ghe.example.com/api/v3/repos/acme/widgets", response({"name": "widgets"}))
        client = GitHubClient(http_client, host="ghe.example.com")

        raw = await client.get_repository("acme", "widgets")

        assert raw.host == "ghe.example.com"

    @pytest.mark.asyncio
    async def test_pagination_follows_link_header(self, http_client, response):
        next_url = "https://api.github.com/user/1/repos?per_page=2&page=2"
        http_client.add(
            "https://api.github.com/users/acme/repos?per_page=2",
            response([{"name": "a"}, {"name": "b"}], headers={"Link": f'<{next_url}>; rel="next"'}),
        )
        http_client.add(next_url, response([{"name": "c"}]))
        client = GitHubClient(http_client, page_size=2)

        repos = await collect(client, "acme")

        assert [raw.payload["name"] for raw in repos] == ["a", "b", "c"]
        assert len(http_client.requests) == 2

    @pytest.mark.asyncio
    async def test_listing_starts_fresh_each_time(self, http_client, response):
        http_client.add("https://api.github.com/users/acme/repos?per_page=100", response([{"name": "a"}]))
        client = GitHubClient(http_client)

        assert len(await collect(client, "acme")) == 1
        assert len(await collect(client, "acme")) == 1

    @pytest.mark.asyncio
    async def test_missing_repository(self, http_client):
        with pytest.raises(NotFoundError):
            await GitHubClient(http_client).get_repository("acme", "missing")

    @pytest.mark.asyncio
    async def test_rate_limit_is_shared_with_limiter(self, http_client, response):
        http_client.add(
            "https://api.github.com/repos/acme/widgets",
            response({"message": "API rate limit exceeded"}, status=403, headers={
                "X-RateLimit-Limit": "60",
                "X-RateLimit-Remaining": "0",
                "Retry-After": "30",
            }),
        )
        limiter = RateLimiter()
        client = GitHubClient(http_client, rate_limiter=limiter)

        with pytest.raises(RateLimitError) as exc_info:
            await client.get_repository("acme", "widgets")

        assert exc_info.value.retry_after == 30.0
        assert limiter.rate_limit_info.limit == 60
        assert limiter.rate_limit_info.is_exhausted
        assert 0 < limiter.rate_limit_info.reset_in_seconds <= 30

    @pytest.mark.asyncio
    async def test_quota_headers_update_limiter(self, http_client, response):
        http_client.add(
            "https://api.github.com/repos/acme/widgets",
            response({"name": "widgets"}, headers={"x-ratelimit-remaining": "4999"}),
        )
        limiter = RateLimiter()

        await GitHubClient(http_client, rate_limiter=limiter).get_repository("acme", "widgets")

        assert limiter.rate_limit_info.remaining == 4999

    @pytest.mark.asyncio
    async def test_bad_credentials(self, http_client, response):
        http_client.add(
            "https://api.github.com/repos/acme/private",
            response({"message": "Bad credentials"}, status=401),
        )

        with pytest.raises(AuthenticationError):
            await GitHubClient(http_client, token="expired").get_repository("acme", "private")

    @pytest.mark.asyncio
    async def test_invalid_json(self, http_client, response):
        http_client.add("https://api.github.com/repos/acme/widgets", response(body=b"<html>"))

        with pytest.raises(MalformedResponseError):
            await GitHubClient(http_client).get_repository("acme", "widgets")

    @pytest.mark.asyncio
    async def test_listing_that_is_not_a_list(self, http_client, response):
        http_client.add("https://api.github.com/users/acme/repos?per_page=100", response({"oops": True}))

        with pytest.raises(MalformedResponseError):
            await collect(GitHubClient(http_client), "acme")


# ---- GitLab ----------------------------------------------------------------

class TestGitLabClient:

    @pytest.mark.asyncio
    async def test_get_repository_uses_encoded_project_path(self, http_client, response):
        http_client.add(
            "https://gitlab.com/api/v4/projects/acme%2Ftools%2Fwidgets?statistics=true",
            response({"path": "widgets", "path_with_namespace": "acme/tools/widgets"}),
        )
        client = GitLabClient(http_client, token="glpat")

        raw = await client.get_repository("acme/tools", "widgets")

        assert isinstance(raw, GitLabRawRepo)
        _, _, headers = http_client.requests[0]
        assert headers["PRIVATE-TOKEN"] == "glpat"

    @pytest.mark.asyncio
    async def test_self_managed_host(self, http_client):
        client = GitLabClient(http_client, host="git.example.com")

        assert client.base_url == "https://git.example.com/api/v4"

    @pytest.mark.asyncio
    async def test_group_listing_follows_next_page(self, http_client, response):
        base = "https://gitlab.com/api/v4/groups/acme/projects?per_page=100&page={}&include_subgroups=true"
        http_client.add(base.format(1), response([{"path": "a"}], headers={"X-Next-Page": "2"}))
        http_client.add(base.format(2), response([{"path": "b"}], headers={"X-Next-Page": ""}))

        repos = await collect(GitLabClient(http_client), "acme")

        assert [raw.payload["path"] for raw in repos] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_falls_back_to_user_projects(self, http_client, response):
        http_client.add(
            "https://gitlab.com/api/v4/users/jdoe/projects?per_page=100&page=1",
            response([{"path": "dotfiles"}]),
        )

        repos = await collect(GitLabClient(http_client), "jdoe")

        assert [raw.payload["path"] for raw in repos] == ["dotfiles"]
        assert "/groups/jdoe/projects" in http_client.urls[0]
        assert "/users/jdoe/projects" in http_client.urls[1]

    @pytest.mark.asyncio
    async def test_unknown_owner(self, http_client):
        with pytest.raises(NotFoundError):
            await collect(GitLabClient(http_client), "nobody")


# ---- Gitea / Forgejo -------------------------------------------------------

class TestGiteaClient:

    @pytest.mark.asyncio
    async def test_get_repository(self, http_client, response):
        http_client.add(
            "https://codeberg.org/api/v1/repos/acme/widgets",
            response({"name": "widgets", "owner": {"login": "acme"}}),
        )

        raw = await GiteaClient(http_client, token="abc").get_repository("acme", "widgets")

        assert isinstance(raw, GenericRawRepo)
        _, _, headers = http_client.requests[0]
        assert headers["Authorization"] == "token abc"

    @pytest.mark.asyncio
    async def test_pagination_uses_has_more(self, http_client, response):
        base = "https://git.example.org/api/v1/users/acme/repos?limit=1&page={}"
        http_client.add(base.format(1), response([{"name": "a"}], headers={"X-HasMore": "true"}))
        http_client.add(base.format(2), response([{"name": "b"}]))
        client = GiteaClient(http_client, host="git.example.org", page_size=1)

        repos = await collect(client, "acme")

        assert [raw.payload["name"] for raw in repos] == ["a", "b"]
        assert all(raw.host == "git.example.org" for raw in repos)

    @pytest.mark.asyncio
    async def test_empty_page_ends_walk(self, http_client, response):
        http_client.add(
            "https://codeberg.org/api/v1/users/acme/repos?limit=100&page=1",
            response([], headers={"X-HasMore": "true"}),
        )

        assert await collect(GiteaClient(http_client), "acme") == []
        assert len(http_client.requests) == 1
