"""
Tests for the per-repository processor.

Covers:
- Fresh clones (wikis, branch override, fetch all)
- Standard, no-clean and backup updates of existing clones
- Checkout retry and empty repository detection
- Prune-untouched checks
- Credentials never left on origin
"""

import os
from unittest.mock import Mock, patch

import pytest

from clonefleet.config import SyncMode
from clonefleet.core.errors import GitError
from clonefleet.core.types import OutcomeKind
from clonefleet.operations.processor import RepositoryProcessor

from tests.fakes import make_repo, make_resolver


@pytest.fixture
def run(git, stats, make_config):
    """Process repos with a fresh processor and record outcomes like the manager does."""
    def _run(repos, **config_overrides):
        config = make_config(**config_overrides)
        processor = RepositoryProcessor(git, config, make_resolver(config, repos), stats)
        outcomes = []
        for index, repo in enumerate(repos):
            outcome = processor.process(repo, index)
            stats.record(outcome)
            outcomes.append(outcome)
        return processor, outcomes
    return _run


def existing(output_dir, *names):
    for name in names:
        os.makedirs(os.path.join(output_dir, name, ".git"), exist_ok=True)


class TestFreshClone:
    """Test repositories that are not cloned yet."""

    def test_clone_success(self, run, git, stats, output_dir):
        repo = make_repo("api")

        _, [outcome] = run([repo])

        assert outcome.kind == OutcomeKind.SUCCESS
        assert outcome.action == "cloning"
        assert repo.host_path == os.path.join(output_dir, "api")
        assert stats.snapshot().clone_count == 1
        assert git.origin["api"] == repo.url

    def test_clone_failure_is_error(self, run, git, stats):
        git.fail_on("clone")

        _, [outcome] = run([make_repo("api")])

        assert outcome.failed
        assert "Problem trying to clone" in outcome.message
        snapshot = stats.snapshot()
        assert snapshot.clone_count == 0
        assert len(snapshot.errors) == 1

    def test_empty_wiki_is_info(self, run, git, stats):
        git.fail_on("clone")
        wiki = make_repo("api", is_wiki=True)

        _, [outcome] = run([wiki])

        snapshot = stats.snapshot()
        assert outcome.info
        assert len(snapshot.infos) == 1
        assert snapshot.errors == ()
        assert snapshot.clone_count == 0
        assert os.path.isdir(wiki.host_path)

    def test_branch_override_checkout_failure_is_info(self, run, git):
        git.fail_on("checkout")
        repo = make_repo("api")

        _, [outcome] = run([repo], branch="release")

        assert outcome.info
        assert repo.clone_branch == "release"
        assert git.origin["api"] == repo.url

    def test_fetch_all_restores_plain_origin(self, run, git):
        repo = make_repo("api")

        _, [outcome] = run([repo], fetch_all=True)

        assert outcome.success
        methods = git.methods_for("api")
        assert methods.index("set_origin_with_credentials") < methods.index("fetch_all")
        assert methods[-1] == "set_origin"
        assert git.origin["api"] == repo.url

    def test_unsafe_path_is_error(self, run, git):
        repo = make_repo("api")
        repo.url = "https://example.com/org/.."

        _, [outcome] = run([repo])

        assert outcome.failed
        assert "Could not resolve local path" in outcome.message
        assert git.calls == []

    def test_clone_delay_sleeps(self, run):
        with patch("clonefleet.operations.processor.time.sleep") as sleep:
            run([make_repo("api")], clone_delay_seconds=3)

        sleep.assert_called_once_with(3)


class TestStandardUpdate:
    """Test updates of existing clones in standard mode."""

    def test_pull_counts_new_commits(self, run, git, stats, output_dir):
        existing(output_dir, "api")
        git.commit_counts = [3, 5]
        repo = make_repo("api")

        _, [outcome] = run([repo])

        assert outcome.success
        assert outcome.action == "pulling"
        assert "new commits: 2" in outcome.message
        assert repo.commits.diff == 2
        snapshot = stats.snapshot()
        assert snapshot.pulled_count == 1
        assert snapshot.new_commits == 2
        assert snapshot.clone_count == 0

    def test_update_sequence(self, run, git, output_dir):
        existing(output_dir, "api")

        run([make_repo("api")])

        methods = [m for m in git.methods_for("api") if m != "repo_commit_count"]
        assert methods == [
            "set_origin_with_credentials", "checkout", "clean", "reset", "pull", "set_origin"
        ]

    def test_checkout_retry_after_fetch(self, run, git, stats, output_dir):
        existing(output_dir, "api")
        git.checkout = Mock(side_effect=[GitError("no such branch"), None])
        repo = make_repo("api", clone_branch="release")

        _, [outcome] = run([repo])

        assert outcome.success
        assert repo.clone_branch == "release"
        assert git.checkout.call_count == 2
        assert "fetch_clone_branch" in git.methods_for("api")
        snapshot = stats.snapshot()
        assert snapshot.pulled_count == 1
        assert snapshot.errors == ()

    def test_empty_remote_is_info(self, run, git, stats, output_dir):
        existing(output_dir, "api")
        git.fail_on("checkout")
        git.remote_heads = False

        _, [outcome] = run([make_repo("api")])

        snapshot = stats.snapshot()
        assert outcome.info
        assert "empty" in outcome.message
        assert len(snapshot.infos) == 1
        assert snapshot.errors == ()
        assert "pull" not in git.methods_for("api")

    def test_missing_branch_with_remote_heads_is_error(self, run, git, stats, output_dir):
        existing(output_dir, "api")
        git.fail_on("checkout")
        git.remote_heads = True

        _, [outcome] = run([make_repo("api")])

        snapshot = stats.snapshot()
        assert outcome.failed
        assert len(snapshot.errors) == 1
        assert snapshot.infos == ()

    def test_remote_heads_query_failure_is_error(self, run, git, output_dir):
        existing(output_dir, "api")
        git.fail_on("checkout")
        git.fail_on("has_remote_heads")

        _, [outcome] = run([make_repo("api")])

        assert outcome.failed

    @pytest.mark.parametrize("method", ["clean", "reset", "pull"])
    def test_step_failure_is_error_and_strips_credentials(self, run, git, stats, output_dir, method):
        existing(output_dir, "api")
        git.fail_on(method)
        repo = make_repo("api")

        _, [outcome] = run([repo])

        assert outcome.failed
        assert git.origin["api"] == repo.url
        assert stats.snapshot().pulled_count == 0

    def test_commit_count_failure_still_pulls(self, run, git, stats, output_dir):
        existing(output_dir, "api")
        git.fail_on("repo_commit_count")
        repo = make_repo("api")

        _, [outcome] = run([repo])

        assert outcome.success
        assert repo.commits.diff == 0
        assert stats.snapshot().infos == ()

    def test_credentials_failure_is_error(self, run, git, output_dir):
        existing(output_dir, "api")
        git.fail_on("set_origin_with_credentials")

        _, [outcome] = run([make_repo("api")])

        assert outcome.failed
        assert "checkout" not in git.methods_for("api")

    def test_origin_reset_failure_is_error(self, run, git, output_dir):
        existing(output_dir, "api")
        git.fail_on("set_origin")

        _, [outcome] = run([make_repo("api")])

        assert outcome.failed
        assert "Problem resetting remote" in outcome.message

    def test_second_run_pulls_same_path(self, run, git, stats):
        first = make_repo("api")
        second = make_repo("api")

        _, [cloned] = run([first])
        _, [pulled] = run([second])

        assert cloned.action == "cloning"
        assert pulled.action == "pulling"
        assert first.host_path == second.host_path
        snapshot = stats.snapshot()
        assert snapshot.clone_count == 1
        assert snapshot.pulled_count == 1


class TestOtherModes:
    """Test no-clean and backup handling of existing clones."""

    def test_no_clean_only_fetches(self, run, git, stats, output_dir):
        existing(output_dir, "api")

        _, [outcome] = run([make_repo("api")], mode=SyncMode.NO_CLEAN)

        methods = git.methods_for("api")
        assert outcome.success
        assert "fetch_all" in methods
        assert "clean" not in methods
        assert "reset" not in methods
        assert stats.snapshot().pulled_count == 1

    def test_backup_updates_remote(self, run, git, stats, output_dir):
        existing(output_dir, "api")

        _, [outcome] = run([make_repo("api")], mode=SyncMode.BACKUP)

        assert outcome.success
        assert "update_remote" in git.methods_for("api")
        snapshot = stats.snapshot()
        assert snapshot.update_remote_count == 1
        assert snapshot.pulled_count == 0

    def test_backup_wiki_failure_is_info(self, run, git, output_dir):
        existing(output_dir, "api.wiki")
        git.fail_on("update_remote")

        _, [outcome] = run([make_repo("api", is_wiki=True)], mode=SyncMode.BACKUP)

        assert outcome.info


class TestPruneUntouched:
    """Test untouched clone detection."""

    def test_untouched_repo_is_marked(self, run, git, output_dir):
        existing(output_dir, "api")
        repo = make_repo("api")

        processor, [outcome] = run([repo], mode=SyncMode.PRUNE_UNTOUCHED)

        assert outcome.success
        assert processor.untouched_repos() == [repo.host_path]
        methods = git.methods_for("api")
        for method in ("clone", "clean", "reset", "pull", "checkout"):
            assert method not in methods

    def test_no_branches_is_untouched(self, run, git, output_dir):
        existing(output_dir, "api")
        git.branches = []

        processor, _ = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert len(processor.untouched_repos()) == 1

    def test_multiple_branches_kept(self, run, git, output_dir):
        existing(output_dir, "api")
        git.branches = ["main", "feature"]

        processor, _ = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert processor.untouched_repos() == []

    def test_dirty_status_kept(self, run, git, output_dir):
        existing(output_dir, "api")
        git.status = " M README.md"

        processor, _ = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert processor.untouched_repos() == []

    def test_local_commits_kept(self, run, git, output_dir):
        existing(output_dir, "api")
        git.rev_list = ["abc123"]

        processor, _ = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert processor.untouched_repos() == []

    def test_compare_failure_is_info(self, run, git, output_dir):
        existing(output_dir, "api")
        git.fail_on("rev_list_compare")

        processor, [outcome] = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert outcome.info
        assert processor.untouched_repos() == []

    def test_branch_failure_is_error(self, run, git, output_dir):
        existing(output_dir, "api")
        git.fail_on("branch")

        _, [outcome] = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert outcome.failed

    def test_fetch_failure_ignored(self, run, git, output_dir):
        existing(output_dir, "api")
        git.fail_on("fetch_clone_branch")

        processor, [outcome] = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert outcome.success
        assert len(processor.untouched_repos()) == 1

    def test_missing_clone_is_not_cloned(self, run, git):
        processor, [outcome] = run([make_repo("api")], mode=SyncMode.PRUNE_UNTOUCHED)

        assert outcome.success
        assert processor.untouched_repos() == []
        assert git.calls == []


class TestIdempotence:
    """Test repeated runs over an unchanged clone."""

    def test_unchanged_clone_pulled_each_run(self, run, git, stats, output_dir):
        existing(output_dir, "api")
        git.commit_counts = [4, 4, 4, 4]

        _, [first] = run([make_repo("api")])
        _, [second] = run([make_repo("api")])

        assert first.success and second.success
        assert "new commits" not in second.message
        snapshot = stats.snapshot()
        assert snapshot.pulled_count == 2
        assert snapshot.new_commits == 0
