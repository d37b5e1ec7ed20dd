"""Data models for source-control commits."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Commit:
    """A commit as returned by the source-control provider."""

    sha: str
    message: str = ""
    author: str = ""
    url: str = ""

    @property
    def short_sha(self) -> str:
        """Return the 12-character abbreviation used for image tags."""
        return self.sha[:12]
