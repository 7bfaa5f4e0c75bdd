"""Core package for clonefleet."""

from .types import (
    OutcomeKind,
    SnippetInfo,
    CommitCounts,
    RepoDescriptor,
    RepoOutcome,
    SyncStatus,
    SyncOutcome,
    CloneStats,
)

from .errors import ClonefleetError, ConfigError, GitError
from .stats import StatsAggregator
from .logger import setup_logging, get_logger

__all__ = [
    # Types
    'OutcomeKind',
    'SnippetInfo',
    'CommitCounts',
    'RepoDescriptor',
    'RepoOutcome',
    'SyncStatus',
    'SyncOutcome',
    'CloneStats',
    # Errors
    'ClonefleetError',
    'ConfigError',
    'GitError',
    # Stats and logging
    'StatsAggregator',
    'setup_logging',
    'get_logger',
]
