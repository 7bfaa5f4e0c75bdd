"""Slug and collision resolution for local repository paths."""

import os
import threading
from typing import Dict, List, Tuple

from .types import RepoDescriptor

ROOT_LEVEL_SNIPPETS_DIR = "_ghorg_root_level_snippets"
MAX_COLLISION_FILENAME = 248


class CollisionTable:
    """Slug -> collision flag map shared by every repo task in a run.

    A True value means the key is taken: either the name appears more
    than once in the run, or a derived slug has already been handed out.
    """

    def __init__(self, entries: Dict[str, bool] = None):
        self._lock = threading.Lock()
        self._entries: Dict[str, bool] = dict(entries or {})

    def is_collision(self, key: str) -> bool:
        with self._lock:
            return self._entries.get(key, False)

    def claim(self, slug: str) -> bool:
        """Register a slug unless it is already taken.

        Any known key counts as taken, including names that appear only
        once in the run, so a flattened path can never shadow a plain
        repo directory.

        Returns:
            True if the slug was free and is now registered
        """
        with self._lock:
            if slug in self._entries:
                return False
            self._entries[slug] = True
            return True

    def collided_names(self) -> List[str]:
        with self._lock:
            return sorted(key for key, taken in self._entries.items() if taken)


def detect_collisions(
    repos: List[RepoDescriptor],
    preserve_directory_structure: bool = False
) -> Tuple[CollisionTable, bool]:
    """Scan the run's repos for duplicate names.

    Wikis and snippets are left out: their directories always carry a
    suffix or an id.

    Returns:
        Tuple of (collision table, whether any collision exists)
    """
    entries: Dict[str, bool] = {}
    if preserve_directory_structure:
        return CollisionTable(entries), False

    has_collisions = False
    for repo in repos:
        if repo.is_snippet or repo.is_wiki:
            continue
        if repo.name in entries:
            entries[repo.name] = True
            has_collisions = True
        else:
            entries[repo.name] = False

    return CollisionTable(entries), has_collisions


def slug_from_url(url: str) -> str:
    """Last path segment of a URL without its extension (``api.git`` -> ``api``)."""
    segment = url.rstrip('/').split('/')[-1]
    if '.' in segment:
        return segment.rsplit('.', 1)[0]
    return segment


def trim_collision_filename(filename: str, max_len: int = MAX_COLLISION_FILENAME) -> str:
    """Trim a flattened path to a safe filename length at an ``_`` boundary."""
    if len(filename) <= max_len:
        return filename
    cut = filename[:max_len].rfind('_')
    if cut <= 0:
        return filename[:max_len]
    return filename[:cut]


def is_path_segment_safe(segment: str) -> bool:
    if not segment or segment in ('.', '..'):
        return False
    return '/' not in segment and os.sep not in segment


def add_suffixes(repo: RepoDescriptor, slug: str) -> str:
    """Append ``.wiki`` / ``.snippets`` once, as the descriptor requires."""
    if repo.is_wiki and not slug.endswith('.wiki'):
        slug = slug + '.wiki'
    if repo.is_snippet and not repo.is_root_level_snippet and not slug.endswith('.snippets'):
        slug = slug + '.snippets'
    return slug


class SlugResolver:
    """Assigns every descriptor a run-unique host path."""

    def __init__(
        self,
        output_dir: str,
        table: CollisionTable,
        has_collisions: bool,
        preserve_directory_structure: bool = False
    ):
        self.output_dir = output_dir
        self.table = table
        self.has_collisions = has_collisions
        self.preserve_directory_structure = preserve_directory_structure

    def base_slug(self, repo: RepoDescriptor) -> str:
        """Slug before collision handling.

        Raises:
            ValueError: If the provider data yields an unsafe path segment
        """
        if repo.is_snippet and not repo.is_root_level_snippet:
            slug = slug_from_url(repo.snippet.url_of_repo)
        elif repo.is_root_level_snippet:
            slug = repo.name
        else:
            slug = slug_from_url(repo.url)

        if not is_path_segment_safe(slug):
            raise ValueError(f"Unsafe path segment {slug!r} for {repo.url}")

        if self.preserve_directory_structure and repo.path:
            return repo.path
        return slug

    def resolve_slug(self, repo: RepoDescriptor, slug: str, index: int) -> str:
        """Apply collision handling and suffixes to a base slug."""
        if not self.has_collisions:
            return add_suffixes(repo, slug)

        if repo.is_snippet and not repo.is_root_level_snippet:
            key = repo.snippet.name_of_repo
        else:
            key = repo.name

        if self.table.is_collision(key):
            flattened = repo.path.replace('/', '_').replace('\\', '_')
            slug = add_suffixes(repo, trim_collision_filename(flattened))
            if not self.table.claim(slug):
                slug = f"_{index}_{slug}"

        return add_suffixes(repo, slug)

    def host_path(self, repo: RepoDescriptor, slug: str) -> str:
        if repo.is_root_level_snippet:
            return os.path.join(
                self.output_dir,
                ROOT_LEVEL_SNIPPETS_DIR,
                f"{repo.snippet.title}-{repo.snippet.id}"
            )
        if repo.is_snippet:
            return os.path.join(
                self.output_dir, slug, f"{repo.snippet.title}-{repo.snippet.id}"
            )
        return os.path.join(self.output_dir, slug)

    def assign(self, repo: RepoDescriptor, index: int) -> str:
        """Resolve and store the descriptor's host path.

        Args:
            repo: Descriptor to update in place
            index: Position of the repo in the run's list

        Returns:
            The assigned host path
        """
        slug = self.resolve_slug(repo, self.base_slug(repo), index)
        repo.host_path = self.host_path(repo, slug)
        return repo.host_path
