"""Per-repository decision state machine: prune-check, clone, or update."""

import os
import time
import logging
import threading
from typing import Callable, Dict, List, Optional

from ..config import SyncConfig, SyncMode
from ..core.errors import GitError
from ..core.slugs import SlugResolver
from ..core.stats import StatsAggregator
from ..core.types import OutcomeKind, RepoDescriptor, RepoOutcome
from ..git.base import GitPort

logger = logging.getLogger('clonefleet')


def repo_exists_locally(repo: RepoDescriptor) -> bool:
    return os.path.exists(repo.host_path)


class RepositoryProcessor:
    """Clones new repositories and updates existing ones.

    ``process`` never raises for git failures: every path ends in exactly
    one ``RepoOutcome``. Counters are bumped on the shared stats as work
    completes; Info/Error messages are recorded by the caller from the
    returned outcome.
    """

    def __init__(
        self,
        git: GitPort,
        config: SyncConfig,
        resolver: SlugResolver,
        stats: StatsAggregator
    ):
        """Initialize repository processor.

        Args:
            git: Git primitives
            config: Run configuration
            resolver: Host path resolver shared by the run
            stats: Run statistics shared by the run
        """
        self.git = git
        self.config = config
        self.resolver = resolver
        self.stats = stats
        self._lock = threading.Lock()
        self._untouched: List[str] = []

    def untouched_repos(self) -> List[str]:
        """Host paths judged untouched, in discovery order."""
        with self._lock:
            return list(self._untouched)

    def process(self, repo: RepoDescriptor, index: int) -> RepoOutcome:
        """Process one repository.

        Args:
            repo: Descriptor, updated in place (host path, commit counters)
            index: Position of the repo in the run's list

        Returns:
            The repo's terminal outcome
        """
        if self.config.branch:
            repo.clone_branch = self.config.branch

        try:
            self.resolver.assign(repo, index)
        except ValueError as e:
            return self._error(repo, "resolving path", f"Could not resolve local path: {e}")

        if self.config.mode == SyncMode.PRUNE_UNTOUCHED:
            # Prune mode never clones or updates
            return self._check_untouched(repo)

        if self.config.clone_delay_seconds > 0:
            logger.info(
                f"Applying {self.config.clone_delay_seconds} second delay before processing {repo.url}"
            )
            time.sleep(self.config.clone_delay_seconds)

        if repo_exists_locally(repo):
            return self._handle_existing(repo)
        return self._handle_new(repo)

    # Prune-untouched

    def _check_untouched(self, repo: RepoDescriptor) -> RepoOutcome:
        action = "pruning"
        if not repo_exists_locally(repo):
            return self._success(repo, action, "Not cloned locally, nothing to prune")

        try:
            self.git.fetch_clone_branch(repo)
        except GitError as e:
            logger.debug(f"Fetch before prune check failed for {repo.name}: {e}")

        try:
            branches = self.git.branch(repo)
        except GitError as e:
            return self._error(
                repo, action, f"Failed to list local branches for repository {repo.name}: {e}"
            )

        if not branches:
            return self._mark_untouched(repo)

        if len(branches) > 1:
            return self._success(repo, action, "Multiple local branches, keeping")

        try:
            status = self.git.short_status(repo)
        except GitError as e:
            return self._error(
                repo, action, f"Failed to get short status for repository {repo.name}: {e}"
            )
        if status:
            return self._success(repo, action, "Uncommitted changes, keeping")

        try:
            commits = self.git.rev_list_compare(repo, "HEAD", "@{u}")
        except GitError as e:
            return self._info(
                repo,
                action,
                f"Could not compare {repo.name} with its upstream, the repository may be empty "
                f"or have no tracking branch, keeping it. Error: {e}"
            )
        if commits:
            return self._success(repo, action, "Local commits not on upstream, keeping")

        return self._mark_untouched(repo)

    def _mark_untouched(self, repo: RepoDescriptor) -> RepoOutcome:
        with self._lock:
            self._untouched.append(repo.host_path)
        return self._success(repo, "pruning", "Untouched, marked for pruning")

    # New repositories

    def _handle_new(self, repo: RepoDescriptor) -> RepoOutcome:
        action = "cloning"
        try:
            self.git.clone(repo)
        except GitError as e:
            if repo.is_wiki:
                return self._empty_wiki(repo, action, e)
            return self._error(repo, action, f"Problem trying to clone: {repo.url} Error: {e}")

        if self.config.branch:
            try:
                self.git.checkout(repo)
            except GitError as e:
                stripped = self._strip_credentials(repo, action)
                if stripped is not None:
                    return stripped
                return self._info(
                    repo,
                    action,
                    f"Could not checkout out {repo.clone_branch}, branch may not exist or may not "
                    f"have any contents/commits, no changes to: {repo.url} Error: {e}"
                )

        stripped = self._strip_credentials(repo, action)
        if stripped is not None:
            return stripped

        if self.config.fetch_all:
            try:
                self._fetch_all_with_credentials(repo)
            except GitError as e:
                return self._error(repo, action, f"Could not fetch remotes: {repo.url} Error: {e}")

        self.stats.increment_cloned()
        return self._success(repo, action, self._success_message(repo, action))

    def _empty_wiki(self, repo: RepoDescriptor, action: str, error: GitError) -> RepoOutcome:
        # Keep the directory layout consistent for wikis that are enabled but empty
        try:
            os.makedirs(repo.host_path, exist_ok=True)
        except OSError as e:
            return self._error(
                repo, action, f"Failed to create directory for empty wiki: {repo.host_path} Error: {e}"
            )
        return self._info(
            repo,
            action,
            f"Wiki may be enabled but there was no content to clone: {repo.url} Error: {error}"
        )

    def _fetch_all_with_credentials(self, repo: RepoDescriptor) -> None:
        self.git.set_origin_with_credentials(repo)
        try:
            self.git.fetch_all(repo)
        finally:
            self.git.set_origin(repo)

    def _strip_credentials(self, repo: RepoDescriptor, action: str) -> Optional[RepoOutcome]:
        try:
            self.git.set_origin(repo)
        except GitError as e:
            return self._error(repo, action, f"Problem trying to set remote: {repo.url} Error: {e}")
        return None

    # Existing repositories

    def _handle_existing(self, repo: RepoDescriptor) -> RepoOutcome:
        handlers: Dict[SyncMode, Callable[[RepoDescriptor], RepoOutcome]] = {
            SyncMode.BACKUP: self._handle_backup,
            SyncMode.NO_CLEAN: self._handle_no_clean,
            SyncMode.STANDARD: self._handle_standard,
        }
        handler = handlers[self.config.mode]

        try:
            self.git.set_origin_with_credentials(repo)
        except GitError as e:
            return self._error(
                repo, "pulling", f"Problem setting remote with credentials on: {repo.name} Error: {e}"
            )

        try:
            outcome = handler(repo)
        finally:
            # Credentials come off origin whatever the handler did
            try:
                self.git.set_origin(repo)
                reset_error = None
            except GitError as e:
                reset_error = e

        if reset_error is not None:
            return self._error(
                repo, outcome.action, f"Problem resetting remote: {repo.name} Error: {reset_error}"
            )
        if not outcome.success:
            return outcome

        if self.config.mode == SyncMode.BACKUP:
            self.stats.increment_remote_updated()
        else:
            self.stats.add_new_commits(repo.commits.diff)
            self.stats.increment_pulled()
        return outcome

    def _handle_backup(self, repo: RepoDescriptor) -> RepoOutcome:
        action = "updating remote"
        try:
            self.git.update_remote(repo)
        except GitError as e:
            if repo.is_wiki:
                return self._info(
                    repo,
                    action,
                    f"Wiki may be enabled but there was no content to clone on: {repo.url} Error: {e}"
                )
            return self._error(repo, action, f"Could not update remotes: {repo.url} Error: {e}")
        return self._success(repo, action, self._success_message(repo, action))

    def _handle_no_clean(self, repo: RepoDescriptor) -> RepoOutcome:
        action = "fetching"
        try:
            self.git.fetch_all(repo)
        except GitError as e:
            if repo.is_wiki:
                return self._info(
                    repo,
                    action,
                    f"Wiki may be enabled but there was no content to clone on: {repo.url} Error: {e}"
                )
            return self._error(repo, action, f"Could not fetch remotes: {repo.url} Error: {e}")
        return self._success(repo, action, self._success_message(repo, action))

    def _handle_standard(self, repo: RepoDescriptor) -> RepoOutcome:
        action = "pulling"
        if self.config.fetch_all:
            try:
                self.git.fetch_all(repo)
            except GitError as e:
                return self._error(repo, action, f"Could not fetch remotes: {repo.url} Error: {e}")

        failed = self._checkout_with_retry(repo, action)
        if failed is not None:
            return failed

        pre_pull = self._commit_count(repo, "pre pull")

        try:
            self.git.clean(repo)
        except GitError as e:
            return self._error(repo, action, f"Problem running git clean: {repo.url} Error: {e}")

        try:
            self.git.reset(repo)
        except GitError as e:
            return self._error(
                repo,
                action,
                f"Problem resetting branch: {repo.clone_branch} for: {repo.url} Error: {e}"
            )

        try:
            self.git.pull(repo)
        except GitError as e:
            return self._error(
                repo,
                action,
                f"Problem trying to pull branch: {repo.clone_branch} for: {repo.url} Error: {e}"
            )

        post_pull = self._commit_count(repo, "post pull")

        repo.commits.pre_pull = pre_pull or 0
        repo.commits.post_pull = post_pull or 0
        if pre_pull is None or post_pull is None:
            repo.commits.diff = 0
        else:
            repo.commits.diff = post_pull - pre_pull

        return self._success(repo, action, self._success_message(repo, action))

    def _checkout_with_retry(self, repo: RepoDescriptor, action: str) -> Optional[RepoOutcome]:
        """Checkout the target branch, retrying once after fetching it.

        Returns:
            None on success, otherwise the Info/Error outcome to stop with
        """
        try:
            self.git.checkout(repo)
            return None
        except GitError as e:
            logger.debug(f"Checkout of {repo.clone_branch} failed for {repo.name}, fetching: {e}")

        try:
            self.git.fetch_clone_branch(repo)
        except GitError as e:
            logger.debug(f"Fetch of {repo.clone_branch} failed for {repo.name}: {e}")

        try:
            self.git.checkout(repo)
            return None
        except GitError as e:
            retry_error = e

        try:
            has_heads = self.git.has_remote_heads(repo)
        except GitError as e:
            return self._error(
                repo,
                action,
                f"Could not checkout {repo.clone_branch}, branch may not exist or may not have any "
                f"contents/commits, no changes made on: {repo.url} Errors: {retry_error} {e}"
            )

        if has_heads:
            return self._error(
                repo,
                action,
                f"Could not checkout {repo.clone_branch}, branch may not exist or may not have any "
                f"contents/commits, no changes made on: {repo.url} Error: {retry_error}"
            )
        return self._info(
            repo,
            action,
            f"Could not checkout {repo.clone_branch} due to repository being empty, "
            f"no changes made on: {repo.url}"
        )

    def _commit_count(self, repo: RepoDescriptor, stage: str) -> Optional[int]:
        try:
            return self.git.repo_commit_count(repo)
        except GitError as e:
            logger.warning(f"Problem trying to get {stage} commit count for repo: {repo.url} ({e})")
            return None

    # Outcomes

    def _success_message(self, repo: RepoDescriptor, action: str) -> str:
        if repo.commits.diff > 0:
            return (
                f"Success {action} {repo.url}, branch: {repo.clone_branch}, "
                f"new commits: {repo.commits.diff}"
            )
        return f"Success {action} {repo.url}, branch: {repo.clone_branch}"

    def _success(self, repo: RepoDescriptor, action: str, message: str) -> RepoOutcome:
        return RepoOutcome(OutcomeKind.SUCCESS, repo.name, message, action)

    def _info(self, repo: RepoDescriptor, action: str, message: str) -> RepoOutcome:
        return RepoOutcome(OutcomeKind.INFO, repo.name, message, action)

    def _error(self, repo: RepoDescriptor, action: str, message: str) -> RepoOutcome:
        return RepoOutcome(OutcomeKind.ERROR, repo.name, message, action)
