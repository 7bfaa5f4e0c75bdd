"""Abstract git capability consumed by the processor and sync engine."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.types import RepoDescriptor


class GitPort(ABC):
    """Git primitives, each operating on ``repo.host_path``.

    Every method is synchronous and raises ``GitError`` on failure.
    """

    @abstractmethod
    def clone(self, repo: RepoDescriptor) -> None:
        """Clone ``repo.clone_url`` into ``repo.host_path``."""

    @abstractmethod
    def checkout(self, repo: RepoDescriptor) -> None:
        """Checkout ``repo.clone_branch``."""

    @abstractmethod
    def clean(self, repo: RepoDescriptor) -> None:
        """Remove untracked files and directories."""

    @abstractmethod
    def reset(self, repo: RepoDescriptor) -> None:
        """Hard reset to ``origin/<clone_branch>``."""

    @abstractmethod
    def pull(self, repo: RepoDescriptor) -> None:
        """Pull ``clone_branch`` from origin."""

    @abstractmethod
    def set_origin(self, repo: RepoDescriptor) -> None:
        """Point origin at the credential-free browse URL."""

    @abstractmethod
    def set_origin_with_credentials(self, repo: RepoDescriptor) -> None:
        """Point origin at the authenticated clone URL."""

    @abstractmethod
    def fetch_all(self, repo: RepoDescriptor) -> None:
        """Fetch every remote."""

    @abstractmethod
    def fetch_clone_branch(self, repo: RepoDescriptor) -> None:
        """Fetch ``clone_branch`` from origin."""

    @abstractmethod
    def update_remote(self, repo: RepoDescriptor) -> None:
        """Update remote refs without touching a working tree."""

    @abstractmethod
    def branch(self, repo: RepoDescriptor) -> List[str]:
        """Names of local branches."""

    @abstractmethod
    def short_status(self, repo: RepoDescriptor) -> str:
        """Output of ``git status --short``, stripped."""

    @abstractmethod
    def repo_commit_count(self, repo: RepoDescriptor) -> int:
        """Number of commits reachable from ``clone_branch``."""

    @abstractmethod
    def rev_list_compare(self, repo: RepoDescriptor, local: str, remote: str) -> List[str]:
        """Commits reachable from ``local`` but not from ``remote``."""

    @abstractmethod
    def has_remote_heads(self, repo: RepoDescriptor) -> bool:
        """Whether the remote has any branch at all."""

    @abstractmethod
    def get_remote_url(self, repo: RepoDescriptor) -> Optional[str]:
        """URL of origin, or None if origin is not configured."""

    @abstractmethod
    def has_local_changes(self, repo: RepoDescriptor) -> bool:
        """Whether tracked modifications or untracked files exist."""

    @abstractmethod
    def has_unpushed_commits(self, repo: RepoDescriptor) -> bool:
        """Whether the current branch is ahead of its origin counterpart."""

    @abstractmethod
    def get_current_branch(self, repo: RepoDescriptor) -> Optional[str]:
        """Checked out branch name, or None on a detached HEAD."""

    @abstractmethod
    def has_commits_not_on_default_branch(self, repo: RepoDescriptor, current_branch: str) -> bool:
        """Whether ``current_branch`` has commits missing from ``origin/<clone_branch>``."""

    @abstractmethod
    def update_ref(self, repo: RepoDescriptor) -> None:
        """Point ``refs/heads/<clone_branch>`` at ``refs/remotes/origin/<clone_branch>``."""
