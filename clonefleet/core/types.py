"""Core types for the synchronization engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class OutcomeKind(Enum):
    """Channel a repository task reports on."""
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass
class SnippetInfo:
    """Metadata for a snippet descriptor."""
    title: str = ""
    id: str = ""
    name_of_repo: str = ""  # Owning repo name (empty for root level snippets)
    url_of_repo: str = ""


@dataclass
class CommitCounts:
    """Commit counters captured around a pull."""
    pre_pull: int = 0
    post_pull: int = 0
    diff: int = 0


@dataclass
class RepoDescriptor:
    """One remote repository, wiki or snippet to synchronize.

    Descriptors are built once per run, mutated in place while the
    repository is processed (host path, commit counters) and discarded
    at the end of the run.
    """
    name: str
    url: str              # Browse URL, stored as origin once credentials are stripped
    clone_url: str        # Authenticated URL, only set on origin while git talks to the remote
    clone_branch: str = "main"
    path: str = ""        # Provider path, e.g. group/subgroup/name
    is_wiki: bool = False
    is_snippet: bool = False
    is_root_level_snippet: bool = False
    snippet: SnippetInfo = field(default_factory=SnippetInfo)
    host_path: str = ""
    commits: CommitCounts = field(default_factory=CommitCounts)

    @classmethod
    def from_dict(cls, data: dict) -> 'RepoDescriptor':
        """Build a descriptor from a JSON object.

        Args:
            data: Mapping with at least ``name`` and ``url``

        Returns:
            RepoDescriptor instance
        """
        snippet = data.get('snippet') or {}
        return cls(
            name=data['name'],
            url=data['url'],
            clone_url=data.get('clone_url') or data['url'],
            clone_branch=data.get('clone_branch') or data.get('default_branch') or 'main',
            path=data.get('path', ''),
            is_wiki=bool(data.get('is_wiki', False)),
            is_snippet=bool(data.get('is_snippet', False)),
            is_root_level_snippet=bool(data.get('is_root_level_snippet', False)),
            snippet=SnippetInfo(
                title=snippet.get('title', ''),
                id=str(snippet.get('id', '')),
                name_of_repo=snippet.get('name_of_repo', ''),
                url_of_repo=snippet.get('url_of_repo', ''),
            ),
        )


@dataclass
class RepoOutcome:
    """The single terminal signal emitted by one repository task."""
    kind: OutcomeKind
    repo_name: str
    message: str
    action: str = ""

    @property
    def success(self) -> bool:
        """Check if the repository was processed successfully."""
        return self.kind == OutcomeKind.SUCCESS

    @property
    def info(self) -> bool:
        """Check if processing stopped on an expected condition."""
        return self.kind == OutcomeKind.INFO

    @property
    def failed(self) -> bool:
        """Check if processing failed."""
        return self.kind == OutcomeKind.ERROR


class SyncStatus(Enum):
    """Status of a default branch sync."""
    SKIPPED = "skipped"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of the default branch sync safety engine."""
    status: SyncStatus
    reason: str = ""
    error: Optional[Exception] = None

    @classmethod
    def skipped(cls, reason: str) -> 'SyncOutcome':
        return cls(SyncStatus.SKIPPED, reason=reason)

    @classmethod
    def synced(cls) -> 'SyncOutcome':
        return cls(SyncStatus.SYNCED)

    @classmethod
    def failed(cls, error: Exception) -> 'SyncOutcome':
        return cls(SyncStatus.FAILED, reason=str(error), error=error)


@dataclass(frozen=True)
class CloneStats:
    """Immutable snapshot of run statistics."""
    clone_count: int = 0
    pulled_count: int = 0
    update_remote_count: int = 0
    new_commits: int = 0
    untouched_prunes: int = 0
    removed_prunes: int = 0
    total_duration_seconds: int = 0
    infos: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
