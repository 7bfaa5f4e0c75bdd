"""Per-repository operations: processing, default branch sync and pruning."""

from .processor import RepositoryProcessor, repo_exists_locally
from .sync import DefaultBranchSync
from .prune import (
    confirm_on_tty,
    find_local_repositories,
    prune_removed,
    prune_untouched,
)

__all__ = [
    'RepositoryProcessor',
    'repo_exists_locally',
    'DefaultBranchSync',
    'confirm_on_tty',
    'find_local_repositories',
    'prune_removed',
    'prune_untouched',
]
