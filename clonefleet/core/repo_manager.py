"""Repository manager for orchestrating a synchronization run."""

import os
import time
import logging
from typing import List, Optional
from concurrent.futures import ThreadPoolExecutor, as_completed

from .slugs import SlugResolver, detect_collisions
from .stats import StatsAggregator
from .types import CloneStats, OutcomeKind, RepoDescriptor, RepoOutcome, SyncStatus
from ..config import SyncConfig, SyncMode
from ..git.base import GitPort
from ..operations.processor import RepositoryProcessor
from ..operations.prune import Confirm, confirm_on_tty, find_local_repositories, prune_removed, prune_untouched
from ..operations.sync import DefaultBranchSync

logger = logging.getLogger('clonefleet')

SYNCABLE_ACTIONS = ("cloning", "pulling")


class RepoManager:
    """Runs one task per repository and collects exactly one outcome from each."""

    def __init__(
        self,
        git: GitPort,
        config: SyncConfig,
        confirm: Confirm = confirm_on_tty
    ):
        """Initialize repository manager.

        Args:
            git: Git primitives shared by every task
            config: Run configuration
            confirm: Yes/no prompt used before deleting anything
        """
        self.git = git
        self.config = config
        self.confirm = confirm
        self.outcomes: List[RepoOutcome] = []
        self.has_collisions = False
        self.collided_names: List[str] = []

    def run(self, repos: List[RepoDescriptor]) -> CloneStats:
        """Synchronize every repository into the output directory.

        Args:
            repos: Already filtered descriptors, updated in place

        Returns:
            Immutable statistics for the run
        """
        started = time.monotonic()
        stats = StatsAggregator()
        self.outcomes = []
        root = self.config.output_dir_abs

        self._log_inventory(repos)

        table, self.has_collisions = detect_collisions(
            repos, self.config.preserve_directory_structure
        )
        resolver = SlugResolver(
            root, table, self.has_collisions, self.config.preserve_directory_structure
        )

        if self.config.dry_run:
            self._print_dry_run(repos, resolver)
            return stats.snapshot()

        os.makedirs(root, exist_ok=True)

        processor = RepositoryProcessor(self.git, self.config, resolver, stats)
        default_branch_sync = DefaultBranchSync(self.git, self.config)

        if self.config.concurrency > 1:
            logger.info(f"Using parallel processing with {self.config.concurrency} workers")
            self._execute_parallel(processor, default_branch_sync, stats, repos)
        else:
            logger.info("Using sequential processing")
            self._execute_sequential(processor, default_branch_sync, stats, repos)

        if self.config.mode == SyncMode.PRUNE_UNTOUCHED:
            prune_untouched(
                processor.untouched_repos(),
                root,
                stats,
                no_confirm=self.config.prune_no_confirm,
                confirm=self.confirm
            )

        if self.has_collisions:
            self.collided_names = table.collided_names()
            logger.info(
                "Collisions in repo names were detected: one or more groups share repo names. "
                "Those repos were cloned into directories named after their full group path."
            )
            for name in self.collided_names:
                logger.info(f"  - {name}")

        if self.config.prune_removed:
            prune_removed(
                root,
                [repo.host_path for repo in repos],
                stats,
                no_confirm=self.config.prune_no_confirm,
                confirm=self.confirm
            )

        stats.set_total_duration(int(time.monotonic() - started + 0.5))
        return stats.snapshot()

    def _execute_parallel(
        self,
        processor: RepositoryProcessor,
        default_branch_sync: DefaultBranchSync,
        stats: StatsAggregator,
        repos: List[RepoDescriptor]
    ) -> None:
        """Process repositories on a thread pool, collecting outcomes as they finish."""
        with ThreadPoolExecutor(max_workers=self.config.concurrency) as executor:
            future_to_repo = {
                executor.submit(
                    self._process_repo, processor, default_branch_sync, stats, repo, index
                ): repo
                for index, repo in enumerate(repos)
            }

            for future in as_completed(future_to_repo):
                outcome = future.result()
                self.outcomes.append(outcome)
                self._log_result(outcome)

    def _execute_sequential(
        self,
        processor: RepositoryProcessor,
        default_branch_sync: DefaultBranchSync,
        stats: StatsAggregator,
        repos: List[RepoDescriptor]
    ) -> None:
        """Process repositories one after another."""
        for index, repo in enumerate(repos):
            outcome = self._process_repo(processor, default_branch_sync, stats, repo, index)
            self.outcomes.append(outcome)
            self._log_result(outcome)

    def _process_repo(
        self,
        processor: RepositoryProcessor,
        default_branch_sync: DefaultBranchSync,
        stats: StatsAggregator,
        repo: RepoDescriptor,
        index: int
    ) -> RepoOutcome:
        """Process a single repository and record its outcome.

        Never raises: an unexpected exception becomes the repo's Error.
        """
        try:
            outcome = processor.process(repo, index)
            if self._syncable(outcome):
                outcome = self._sync_default_branch(default_branch_sync, repo, outcome)
        except Exception as e:
            logger.exception(f"Unexpected error processing {repo.name}")
            outcome = RepoOutcome(
                OutcomeKind.ERROR,
                repo.name,
                f"Unexpected error processing {repo.url}: {e}"
            )

        stats.record(outcome)
        return outcome

    def _syncable(self, outcome: RepoOutcome) -> bool:
        # Only standard mode leaves a working tree on the clone branch
        return (
            outcome.success
            and self.config.mode == SyncMode.STANDARD
            and outcome.action in SYNCABLE_ACTIONS
        )

    def _sync_default_branch(
        self,
        default_branch_sync: DefaultBranchSync,
        repo: RepoDescriptor,
        outcome: RepoOutcome
    ) -> RepoOutcome:
        if not self.config.sync_default_branch:
            return outcome

        result = default_branch_sync.sync(repo)
        if result.status == SyncStatus.FAILED:
            return RepoOutcome(
                OutcomeKind.ERROR,
                repo.name,
                f"Problem syncing default branch {repo.clone_branch} on: {repo.url} Error: {result.reason}",
                outcome.action
            )
        if result.status == SyncStatus.SYNCED:
            return RepoOutcome(
                outcome.kind,
                outcome.repo_name,
                f"{outcome.message}, default branch synced",
                outcome.action
            )
        return outcome

    def _log_inventory(self, repos: List[RepoDescriptor]) -> None:
        wikis = sum(1 for r in repos if r.is_wiki)
        snippets = sum(1 for r in repos if r.is_snippet)
        plain = len(repos) - wikis - snippets
        logger.info(
            f"{len(repos)} resources to clone: {plain} repos, {snippets} snippets, {wikis} wikis"
        )

    def _print_dry_run(self, repos: List[RepoDescriptor], resolver: SlugResolver) -> None:
        root = self.config.output_dir_abs
        host_paths: List[Optional[str]] = []
        for index, repo in enumerate(repos):
            print(repo.url)
            try:
                host_paths.append(resolver.assign(repo, index))
            except ValueError as e:
                logger.warning(f"{repo.name}: {e}")
        print(f"{len(repos)} repos to be cloned into: {root}")

        if self.config.prune_removed and os.path.isdir(root):
            known = {os.path.abspath(p) for p in host_paths if p}
            eligible = [
                relative for relative in find_local_repositories(root)
                if os.path.join(root, relative) not in known
            ]
            for relative in eligible:
                print(f"{relative} not found in remote.")
            print(f"Local clones eligible for pruning: {len(eligible)}")

    def _log_result(self, outcome: RepoOutcome) -> None:
        """Log a repository outcome."""
        if outcome.success:
            logger.info(f"✓ {outcome.repo_name}: {outcome.message}")
        elif outcome.info:
            logger.info(f"⊘ {outcome.repo_name}: {outcome.message}")
        else:
            logger.error(f"✗ {outcome.repo_name}: {outcome.message}")
