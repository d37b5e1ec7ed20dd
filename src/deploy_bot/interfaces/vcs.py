"""Abstract interface for source-control integrations."""

from typing import Protocol

from ..models.commit import Commit


class VCSProvider(Protocol):
    """Abstract interface for source-control integrations."""

    async def list_commits(self, org: str, repo: str) -> list[Commit]:
        """
        Fetch the commit history of a repository's default branch.

        Commits are returned in provider order, which for GitHub is newest
        first. No sorting is applied.

        Args:
            org: Organization or user that owns the repository
            repo: Repository name

        Returns:
            Commits in provider order

        Raises:
            CommitListError: If the history cannot be fetched
        """
        ...
