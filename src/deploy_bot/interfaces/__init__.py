"""Protocol definitions for pluggable adapters."""

from .chat import ChatProvider
from .orchestrator import OrchestratorProvider
from .vcs import VCSProvider

__all__ = ["ChatProvider", "OrchestratorProvider", "VCSProvider"]
