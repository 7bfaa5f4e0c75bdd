"""Deletion of untouched clones and of clones no longer present on the remote."""

import os
import shutil
import logging
from typing import Callable, Iterable, List

from ..core.stats import StatsAggregator

logger = logging.getLogger('clonefleet')

Confirm = Callable[[str], bool]


def confirm_on_tty(prompt: str) -> bool:
    """Ask a yes/no question on the controlling terminal.

    Args:
        prompt: Question to display

    Returns:
        True if the user answers yes; False otherwise or without a TTY
    """
    try:
        tty = open('/dev/tty', 'r')
    except OSError:
        # Nothing gets deleted without an answer
        logger.warning("No TTY available, treating confirmation as declined")
        return False

    try:
        print(f"{prompt.strip()} [y/N]: ", end="", flush=True)
        response = tty.readline().strip().lower()
        return response in ('y', 'yes')
    finally:
        tty.close()


def _is_within(root: str, path: str) -> bool:
    root = os.path.abspath(root)
    path = os.path.abspath(path)
    return path != root and os.path.commonpath([root, path]) == root


def prune_untouched(
    paths: List[str],
    root: str,
    stats: StatsAggregator,
    no_confirm: bool = False,
    confirm: Confirm = confirm_on_tty
) -> int:
    """Delete clones the processor judged untouched.

    Args:
        paths: Host paths marked untouched
        root: Destination root every path must live under
        stats: Run statistics, ``untouched_prunes`` is incremented per deletion
        no_confirm: Delete without asking
        confirm: Yes/no prompt used when confirmation is required

    Returns:
        Number of deleted clones
    """
    if not paths:
        return 0

    if not no_confirm:
        logger.info(f"The following {len(paths)} untouched repositories will be deleted:")
        for path in paths:
            logger.info(f"  - {path}")
        if not confirm(f"Delete {len(paths)} untouched repositories?"):
            logger.info("Pruning of untouched repositories cancelled")
            return 0

    deleted = 0
    for path in paths:
        if not _is_within(root, path):
            logger.error(f"Refusing to delete {path}: outside of {root}")
            continue
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.error(f"Failed to prune repository at {path}: {e}")
            continue
        deleted += 1
        stats.increment_untouched_prunes()
        logger.info(f"✓ Deleted {path}")

    return deleted


def find_local_repositories(root: str) -> List[str]:
    """Relative paths of every git working tree or mirror under ``root``.

    The walk does not descend into a repository once found.
    """
    found = []
    for dirpath, dirnames, _ in os.walk(root):
        if dirpath == root:
            continue
        if '.git' in dirnames or _is_bare_repository(dirpath):
            found.append(os.path.relpath(dirpath, root))
            dirnames[:] = []
    return sorted(found)


def _is_bare_repository(path: str) -> bool:
    return (
        os.path.isfile(os.path.join(path, 'HEAD'))
        and os.path.isdir(os.path.join(path, 'objects'))
        and os.path.isdir(os.path.join(path, 'refs'))
    )


def prune_removed(
    root: str,
    host_paths: Iterable[str],
    stats: StatsAggregator,
    no_confirm: bool = False,
    confirm: Confirm = confirm_on_tty
) -> int:
    """Delete local clones under ``root`` that match no repo of this run.

    A "no" answer stops all further pruning.

    Returns:
        Number of deleted clones
    """
    logger.info("Scanning for local clones that have been removed on remote...")
    known = {os.path.abspath(p) for p in host_paths if p}

    deleted = 0
    for relative in find_local_repositories(root):
        path = os.path.abspath(os.path.join(root, relative))
        if path in known:
            continue
        if not _is_within(root, path):
            logger.error(f"Refusing to delete {path}: outside of {root}")
            continue

        if not no_confirm and not confirm(
            f"{relative} was not found in remote. Do you want to prune it? {path}"
        ):
            logger.error("Pruning cancelled by user. No more prunes will be considered.")
            break

        logger.info(f"Deleting {path}")
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.error(f"Failed to prune {path}: {e}")
            continue
        deleted += 1
        stats.increment_removed_prunes()

    return deleted
