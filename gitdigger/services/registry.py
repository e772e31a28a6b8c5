"""
Client factory: one ProviderClient per (provider kind, host).
"""

from typing import Dict, Optional, Tuple, Type

from ..models import ProviderKind, SyncConfig
from ..infrastructure.error_handler import UnsupportedProviderError
from ..infrastructure.http_client import HTTPClient
from ..infrastructure.rate_limiter import RateLimitRegistry
from .base import ProviderClient
from .github_api import GitHubClient
from .gitlab_api import GitLabClient
from .gitea_api import GiteaClient


CLIENT_CLASSES: Dict[ProviderKind, Type[ProviderClient]] = {
    ProviderKind.GITHUB: GitHubClient,
    ProviderKind.GITLAB: GitLabClient,
    ProviderKind.GENERIC: GiteaClient,
}


class ClientRegistry:
    """
    Creates and caches provider clients.

    Every client for the same provider instance shares one RateLimiter from
    the injected RateLimitRegistry, so quota accounting covers the whole
    batch rather than one worker.
    """

    def __init__(
        self,
        config: SyncConfig,
        http_client: HTTPClient,
        rate_limits: Optional[RateLimitRegistry] = None,
        client_classes: Optional[Dict[ProviderKind, Type[ProviderClient]]] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.rate_limits = rate_limits or RateLimitRegistry()
        self.client_classes = dict(client_classes or CLIENT_CLASSES)
        self._clients: Dict[Tuple[ProviderKind, Optional[str]], ProviderClient] = {}

    def get(self, kind: ProviderKind, host: Optional[str] = None) -> ProviderClient:
        """
        Return the client for a provider instance.

        Raises:
            UnsupportedProviderError: If no adapter is registered for `kind`
        """

        key = (kind, host)
        if key in self._clients:
            return self._clients[key]

        client_class = self.client_classes.get(kind)
        if client_class is None:
            raise UnsupportedProviderError(f"No client registered for provider {kind.value}")

        credentials = self.config.credentials_for(kind, host)
        client = client_class(
            self.http_client,
            rate_limiter=self.rate_limits.for_provider(kind, host),
            token=credentials.token,
            base_url=credentials.base_url,
            host=host,
            page_size=self.config.page_size,
        )
        self._clients[key] = client
        return client

    def register(self, kind: ProviderKind, client: ProviderClient, host: Optional[str] = None) -> None:
        """Install a ready-made client, e.g. a test double."""

        self._clients[(kind, host)] = client


__all__ = ["ClientRegistry", "CLIENT_CLASSES"]
