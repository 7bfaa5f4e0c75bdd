"""Git port implemented with the git command line."""

import os
import re
import logging
import subprocess
from typing import List, Optional

from .base import GitPort
from ..config import SyncConfig, SyncMode
from ..core.errors import GitError
from ..core.types import RepoDescriptor

logger = logging.getLogger('clonefleet')

_CREDENTIALS = re.compile(r'(://)[^/@\s]+@')


def redact(text: str) -> str:
    """Hide user info embedded in URLs (``https://token@host`` -> ``https://***@host``)."""
    return _CREDENTIALS.sub(r'\1***@', text)


class GitCli(GitPort):
    """Runs git as a subprocess, one blocking call per primitive."""

    def __init__(self, config: SyncConfig):
        """Initialize git client.

        Args:
            config: Run configuration (clone depth, filters, timeout, mode)
        """
        self.config = config

    def _run(
        self,
        args: List[str],
        cwd: Optional[str] = None,
        check: bool = True
    ) -> subprocess.CompletedProcess:
        """Run a git command.

        Args:
            args: Arguments after ``git``
            cwd: Working directory
            check: Raise GitError on a non-zero exit

        Returns:
            Completed process with text output

        Raises:
            GitError: If git cannot be run, times out, or fails with check=True
        """
        command = ["git", *args]
        logger.debug(f"Running: {redact(' '.join(command))} (cwd: {cwd})")
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.config.git_timeout
            )
        except subprocess.TimeoutExpired:
            raise GitError(
                f"git {args[0]} timed out after {self.config.git_timeout}s", args=args
            )
        except (FileNotFoundError, NotADirectoryError) as e:
            raise GitError(f"git {args[0]} could not run: {e}", args=args)

        if self.config.debug:
            output = (result.stdout + result.stderr).strip()
            logger.debug(f"Exit {result.returncode}: {redact(output)}")

        if check and result.returncode != 0:
            raise GitError(
                f"git {args[0]} exited with status {result.returncode}",
                args=args,
                returncode=result.returncode,
                stderr=redact(result.stderr)
            )
        return result

    def _depth_args(self) -> List[str]:
        if self.config.clone_depth:
            return [f"--depth={self.config.clone_depth}"]
        return []

    def clone(self, repo: RepoDescriptor) -> None:
        args = ["clone"]
        if self.config.git_filter:
            args.append(f"--filter={self.config.git_filter}")
        args.extend(self._depth_args())
        if self.config.include_submodules:
            args.append("--recursive")
        args.extend([repo.clone_url, repo.host_path])
        if self.config.mode == SyncMode.BACKUP:
            args.append("--mirror")

        self._run(args)

        if self.config.path_filter and self.config.mode != SyncMode.BACKUP:
            self.configure_sparse_checkout(repo, self.config.path_filter)

    def configure_sparse_checkout(self, repo: RepoDescriptor, path_filter: str) -> None:
        """Restrict the working tree to the comma separated paths in ``path_filter``."""
        patterns = [p.strip() for p in path_filter.split(',') if p.strip()]
        self._run(["config", "core.sparseCheckout", "true"], cwd=repo.host_path)
        # Older git has no sparse-checkout subcommand; core.sparseCheckout is already set
        self._run(["sparse-checkout", "init", "--cone"], cwd=repo.host_path, check=False)

        result = self._run(["sparse-checkout", "set", *patterns], cwd=repo.host_path, check=False)
        if result.returncode != 0:
            self._write_sparse_checkout_file(repo, patterns)

    def _write_sparse_checkout_file(self, repo: RepoDescriptor, patterns: List[str]) -> None:
        info_dir = os.path.join(repo.host_path, ".git", "info")
        os.makedirs(info_dir, exist_ok=True)
        with open(os.path.join(info_dir, "sparse-checkout"), "w") as f:
            for pattern in patterns:
                f.write(f"{pattern}\n{pattern}/**\n")
        self._run(["read-tree", "-mu", "HEAD"], cwd=repo.host_path)

    def checkout(self, repo: RepoDescriptor) -> None:
        self._run(["checkout", repo.clone_branch], cwd=repo.host_path)

    def clean(self, repo: RepoDescriptor) -> None:
        self._run(["clean", "-f", "-d"], cwd=repo.host_path)

    def reset(self, repo: RepoDescriptor) -> None:
        self._run(["reset", "--hard", f"origin/{repo.clone_branch}"], cwd=repo.host_path)

    def pull(self, repo: RepoDescriptor) -> None:
        args = ["pull"]
        args.extend(self._depth_args())
        if self.config.include_submodules:
            args.append("--recurse-submodules")
        args.extend(["origin", repo.clone_branch])
        self._run(args, cwd=repo.host_path)

    def set_origin(self, repo: RepoDescriptor) -> None:
        self._run(["remote", "set-url", "origin", repo.url], cwd=repo.host_path)

    def set_origin_with_credentials(self, repo: RepoDescriptor) -> None:
        self._run(["remote", "set-url", "origin", repo.clone_url], cwd=repo.host_path)

    def fetch_all(self, repo: RepoDescriptor) -> None:
        self._run(["fetch", "--all", *self._depth_args()], cwd=repo.host_path)

    def fetch_clone_branch(self, repo: RepoDescriptor) -> None:
        self._run(
            ["fetch", *self._depth_args(), "origin", repo.clone_branch], cwd=repo.host_path
        )

    def update_remote(self, repo: RepoDescriptor) -> None:
        self._run(["remote", "update"], cwd=repo.host_path)

    def branch(self, repo: RepoDescriptor) -> List[str]:
        result = self._run(["branch", "--format=%(refname:short)"], cwd=repo.host_path)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def short_status(self, repo: RepoDescriptor) -> str:
        return self._run(["status", "--short"], cwd=repo.host_path).stdout.strip()

    def repo_commit_count(self, repo: RepoDescriptor) -> int:
        result = self._run(["rev-list", "--count", repo.clone_branch, "--"], cwd=repo.host_path)
        try:
            return int(result.stdout.strip())
        except ValueError:
            raise GitError(f"Unexpected commit count output: {result.stdout.strip()!r}")

    def rev_list_compare(self, repo: RepoDescriptor, local: str, remote: str) -> List[str]:
        result = self._run(["-C", repo.host_path, "rev-list", local, f"^{remote}"])
        return [line for line in result.stdout.split() if line]

    def has_remote_heads(self, repo: RepoDescriptor) -> bool:
        result = self._run(
            ["ls-remote", "--heads", "--quiet", "--exit-code"], cwd=repo.host_path, check=False
        )
        if result.returncode == 0:
            return True
        # --exit-code reports "no matching refs" as status 2
        if result.returncode == 2:
            return False
        raise GitError(
            f"git ls-remote exited with status {result.returncode}",
            args=["ls-remote"],
            returncode=result.returncode,
            stderr=redact(result.stderr)
        )

    def get_remote_url(self, repo: RepoDescriptor) -> Optional[str]:
        result = self._run(["remote", "get-url", "origin"], cwd=repo.host_path, check=False)
        if result.returncode == 0:
            return result.stdout.strip()
        if result.returncode == 2:
            return None
        raise GitError(
            f"git remote get-url exited with status {result.returncode}",
            args=["remote", "get-url", "origin"],
            returncode=result.returncode,
            stderr=redact(result.stderr)
        )

    def has_local_changes(self, repo: RepoDescriptor) -> bool:
        result = self._run(["status", "--porcelain"], cwd=repo.host_path)
        return bool(result.stdout.strip())

    def get_current_branch(self, repo: RepoDescriptor) -> Optional[str]:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=repo.host_path)
        branch = result.stdout.strip()
        if branch == "HEAD":
            return None
        return branch

    def _count_ahead(self, repo: RepoDescriptor, base: str, head: str) -> Optional[int]:
        result = self._run(
            ["rev-list", f"{base}..{head}", "--count"], cwd=repo.host_path, check=False
        )
        if result.returncode != 0:
            return None
        try:
            return int(result.stdout.strip())
        except ValueError:
            raise GitError(f"Unexpected commit count output: {result.stdout.strip()!r}")

    def has_unpushed_commits(self, repo: RepoDescriptor) -> bool:
        current = self.get_current_branch(repo)
        if current is None:
            return True
        ahead = self._count_ahead(repo, f"origin/{current}", current)
        # No remote counterpart means nothing of this branch is pushed
        return ahead is None or ahead > 0

    def has_commits_not_on_default_branch(self, repo: RepoDescriptor, current_branch: str) -> bool:
        if current_branch == repo.clone_branch:
            return False
        ahead = self._count_ahead(repo, f"origin/{repo.clone_branch}", current_branch)
        return ahead is None or ahead > 0

    def update_ref(self, repo: RepoDescriptor) -> None:
        self._run(
            [
                "update-ref",
                f"refs/heads/{repo.clone_branch}",
                f"refs/remotes/origin/{repo.clone_branch}",
            ],
            cwd=repo.host_path
        )
