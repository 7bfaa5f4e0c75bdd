"""Default branch sync: fast-forward a clone only when nothing local can be lost."""

import logging

from ..config import SyncConfig
from ..core.errors import GitError
from ..core.types import RepoDescriptor, SyncOutcome
from ..git.base import GitPort

logger = logging.getLogger('clonefleet')


class DefaultBranchSync:
    """Moves a local default branch to its freshly fetched remote commit.

    The working tree is only touched once all of these hold: no
    uncommitted or untracked changes, no commits unpushed to the current
    branch's origin counterpart, and no commits on the current branch
    missing from the default branch. Any unmet precondition is a skip;
    git failures while checking or syncing are reported as failures.
    """

    def __init__(self, git: GitPort, config: SyncConfig):
        self.git = git
        self.config = config

    def sync(self, repo: RepoDescriptor) -> SyncOutcome:
        """Sync ``repo.clone_branch`` with ``origin/<clone_branch>``.

        Args:
            repo: Descriptor with a resolved host path

        Returns:
            SyncOutcome: skipped with a reason, synced, or failed with the error
        """
        if not self.config.sync_default_branch:
            return self._skip(repo, "default branch sync is disabled")

        try:
            remote_url = self.git.get_remote_url(repo)
        except GitError as e:
            return SyncOutcome.failed(e)
        if not remote_url:
            return self._skip(repo, "no origin remote")

        try:
            if self.git.has_local_changes(repo):
                return self._skip(repo, "working directory has uncommitted changes")

            current_branch = self.git.get_current_branch(repo)
            if current_branch is None:
                return self._skip(repo, "repository is in detached HEAD state")

            if self.git.has_unpushed_commits(repo):
                return self._skip(repo, "branch has unpushed commits")

            if self.git.has_commits_not_on_default_branch(repo, current_branch):
                return self._skip(repo, "current branch has commits not on default branch")
        except GitError as e:
            return SyncOutcome.failed(e)

        if current_branch != repo.clone_branch:
            try:
                self.git.checkout(repo)
            except GitError as e:
                return self._skip(repo, f"could not checkout {repo.clone_branch}: {e}")

        try:
            self.git.fetch_clone_branch(repo)
            self.git.update_ref(repo)
            self.git.reset(repo)
        except GitError as e:
            return SyncOutcome.failed(e)

        logger.debug(f"Synced {repo.name} {repo.clone_branch} with origin")
        return SyncOutcome.synced()

    def _skip(self, repo: RepoDescriptor, reason: str) -> SyncOutcome:
        logger.debug(f"Skipping sync for {repo.name}: {reason}")
        return SyncOutcome.skipped(reason)
