"""Repository mirroring for remote documentation sources."""

from .cache import RepositoryCache
from .github import FetchError, GitHubFetcher, RepositoryRef, parse_repository_url

__all__ = [
    "FetchError",
    "GitHubFetcher",
    "RepositoryCache",
    "RepositoryRef",
    "parse_repository_url",
]
