"""AI-powered rewording of pushed commit messages with a non-interactive rebase."""

__version__ = "1.0.0"

from .git import CommitRef, DiffRecord
from .history import HistoryRewriter
from .pipeline import ChunkedRequestPipeline, ImprovedMessage
from .rewriter import GitCommitReworder

__all__ = [
    "GitCommitReworder",
    "ChunkedRequestPipeline",
    "HistoryRewriter",
    "CommitRef",
    "DiffRecord",
    "ImprovedMessage",
    "__version__",
]
