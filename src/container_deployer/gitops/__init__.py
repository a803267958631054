"""Git operations helpers."""

from .manager import (
    GitCheckoutError,
    GitCloneError,
    GitCommandError,
    GitFetchError,
    GitPullError,
    GitSyncResult,
    RepositorySynchronizer,
    authenticated_url,
    repository_name,
)

__all__ = [
    "GitCheckoutError",
    "GitCloneError",
    "GitCommandError",
    "GitFetchError",
    "GitPullError",
    "GitSyncResult",
    "RepositorySynchronizer",
    "authenticated_url",
    "repository_name",
]
