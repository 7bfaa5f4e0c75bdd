"""Thread-safe run statistics."""

import threading
from typing import List

from .types import CloneStats, OutcomeKind, RepoOutcome


class StatsAggregator:
    """Counters and ordered Info/Error lists shared by all repo tasks.

    Every mutation happens under a single lock and only touches counters
    or lists; callers never do I/O while holding it. Readers get an
    immutable snapshot via ``snapshot()``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._clone_count = 0
        self._pulled_count = 0
        self._update_remote_count = 0
        self._new_commits = 0
        self._untouched_prunes = 0
        self._removed_prunes = 0
        self._total_duration_seconds = 0
        self._infos: List[str] = []
        self._errors: List[str] = []

    def increment_cloned(self) -> None:
        with self._lock:
            self._clone_count += 1

    def increment_pulled(self) -> None:
        with self._lock:
            self._pulled_count += 1

    def increment_remote_updated(self) -> None:
        with self._lock:
            self._update_remote_count += 1

    def add_new_commits(self, count: int) -> None:
        with self._lock:
            self._new_commits += count

    def increment_untouched_prunes(self) -> None:
        with self._lock:
            self._untouched_prunes += 1

    def increment_removed_prunes(self) -> None:
        with self._lock:
            self._removed_prunes += 1

    def set_total_duration(self, seconds: int) -> None:
        with self._lock:
            self._total_duration_seconds = seconds

    def add_info(self, message: str) -> None:
        with self._lock:
            self._infos.append(message)

    def add_error(self, message: str) -> None:
        with self._lock:
            self._errors.append(message)

    def record(self, outcome: RepoOutcome) -> None:
        """Append an outcome's message to the Info or Error list.

        Success outcomes carry no message worth keeping and are ignored.
        """
        if outcome.kind == OutcomeKind.INFO:
            self.add_info(outcome.message)
        elif outcome.kind == OutcomeKind.ERROR:
            self.add_error(outcome.message)

    def snapshot(self) -> CloneStats:
        """Return an immutable copy of the current statistics."""
        with self._lock:
            return CloneStats(
                clone_count=self._clone_count,
                pulled_count=self._pulled_count,
                update_remote_count=self._update_remote_count,
                new_commits=self._new_commits,
                untouched_prunes=self._untouched_prunes,
                removed_prunes=self._removed_prunes,
                total_duration_seconds=self._total_duration_seconds,
                infos=tuple(self._infos),
                errors=tuple(self._errors),
            )
