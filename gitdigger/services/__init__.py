"""
Provider clients for GitDigger.

One adapter per hosting provider family behind the ProviderClient
capability (`list_repositories`, `get_repository`).
"""

from .base import ProviderClient, parse_link_header
from .github_api import GitHubClient
from .gitlab_api import GitLabClient
from .gitea_api import GiteaClient
from .registry import ClientRegistry, CLIENT_CLASSES

__all__ = [
    "ProviderClient",
    "parse_link_header",
    "GitHubClient",
    "GitLabClient",
    "GiteaClient",
    "ClientRegistry",
    "CLIENT_CLASSES",
]
