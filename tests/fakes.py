"""Git double and descriptor builders shared by the tests."""

import os
import threading
from typing import Dict, List, Optional

from clonefleet.config import SyncConfig
from clonefleet.core.errors import GitError
from clonefleet.core.slugs import SlugResolver, detect_collisions
from clonefleet.core.types import RepoDescriptor
from clonefleet.git.base import GitPort

MUTATING = {
    "clone", "checkout", "clean", "reset", "pull", "fetch_all",
    "fetch_clone_branch", "update_remote", "update_ref",
}


class FakeGit(GitPort):
    """Git double driven by per-method scripted results.

    ``fail`` maps a method name to the set of repo names it fails for
    (``"*"`` fails for every repo). Query results are plain attributes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.calls: List[tuple] = []
        self.fail: Dict[str, set] = {}
        self.branches: List[str] = ["main"]
        self.status = ""
        self.rev_list: List[str] = []
        self.remote_heads = True
        self.remote_url: Optional[str] = "https://example.com/org/repo"
        self.local_changes = False
        self.current_branch: Optional[str] = "main"
        self.unpushed = False
        self.divergent = False
        self.commit_counts: List[int] = []
        self.origin: Dict[str, str] = {}

    def _call(self, method: str, repo: RepoDescriptor) -> None:
        with self._lock:
            self.calls.append((method, repo.name))
        names = self.fail.get(method, set())
        if "*" in names or repo.name in names:
            raise GitError(f"git {method} failed", stderr="fatal: scripted failure")

    def fail_on(self, method: str, *names: str) -> None:
        self.fail.setdefault(method, set()).update(names or {"*"})

    def methods_for(self, name: str) -> List[str]:
        return [method for method, repo in self.calls if repo == name]

    def mutating_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in MUTATING]

    def clone(self, repo):
        self._call("clone", repo)
        os.makedirs(os.path.join(repo.host_path, ".git"), exist_ok=True)
        self.origin[repo.name] = repo.clone_url

    def checkout(self, repo):
        self._call("checkout", repo)

    def clean(self, repo):
        self._call("clean", repo)

    def reset(self, repo):
        self._call("reset", repo)

    def pull(self, repo):
        self._call("pull", repo)

    def set_origin(self, repo):
        self._call("set_origin", repo)
        self.origin[repo.name] = repo.url

    def set_origin_with_credentials(self, repo):
        self._call("set_origin_with_credentials", repo)
        self.origin[repo.name] = repo.clone_url

    def fetch_all(self, repo):
        self._call("fetch_all", repo)

    def fetch_clone_branch(self, repo):
        self._call("fetch_clone_branch", repo)

    def update_remote(self, repo):
        self._call("update_remote", repo)

    def branch(self, repo):
        self._call("branch", repo)
        return list(self.branches)

    def short_status(self, repo):
        self._call("short_status", repo)
        return self.status

    def repo_commit_count(self, repo):
        self._call("repo_commit_count", repo)
        with self._lock:
            if self.commit_counts:
                return self.commit_counts.pop(0)
        return 0

    def rev_list_compare(self, repo, local, remote):
        self._call("rev_list_compare", repo)
        return list(self.rev_list)

    def has_remote_heads(self, repo):
        self._call("has_remote_heads", repo)
        return self.remote_heads

    def get_remote_url(self, repo):
        self._call("get_remote_url", repo)
        return self.remote_url

    def has_local_changes(self, repo):
        self._call("has_local_changes", repo)
        return self.local_changes

    def get_current_branch(self, repo):
        self._call("get_current_branch", repo)
        return self.current_branch

    def has_unpushed_commits(self, repo):
        self._call("has_unpushed_commits", repo)
        return self.unpushed

    def has_commits_not_on_default_branch(self, repo, current_branch):
        self._call("has_commits_not_on_default_branch", repo)
        return self.divergent

    def update_ref(self, repo):
        self._call("update_ref", repo)


def make_repo(name="api", path=None, **kwargs) -> RepoDescriptor:
    """Build a descriptor for ``https://example.com/<path>.git``."""
    path = path or f"org/{name}"
    return RepoDescriptor(
        name=name,
        url=f"https://example.com/{path}",
        clone_url=kwargs.pop("clone_url", f"https://token@example.com/{path}.git"),
        path=path,
        **kwargs
    )


def make_resolver(config: SyncConfig, repos: List[RepoDescriptor]) -> SlugResolver:
    table, has_collisions = detect_collisions(repos, config.preserve_directory_structure)
    return SlugResolver(
        config.output_dir_abs, table, has_collisions, config.preserve_directory_structure
    )


