"""Configuration management for clonefleet."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .core.errors import ConfigError

DEFAULT_CONCURRENCY = 25


class SyncMode(Enum):
    """How existing clones are handled during a run."""
    STANDARD = "standard"                # checkout, clean, reset, pull
    NO_CLEAN = "no-clean"                # fetch only, working tree untouched
    BACKUP = "backup"                    # mirror clone, update remote refs
    PRUNE_UNTOUCHED = "prune-untouched"  # only find and prune untouched clones


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').strip().lower() == 'true'


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name, '').strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _env_str(name: str) -> Optional[str]:
    return os.getenv(name) or None


def _pick(arg, env_value):
    return arg if arg is not None else env_value


@dataclass(frozen=True)
class SyncConfig:
    """Configuration for a synchronization run.

    Built once at startup and passed by reference into the processor,
    the sync engine and the git client. Nothing below the CLI reads the
    environment.
    """

    output_dir: str
    mode: SyncMode = SyncMode.STANDARD
    branch: Optional[str] = None
    fetch_all: bool = False
    sync_default_branch: bool = False
    prune_removed: bool = False
    prune_no_confirm: bool = False
    preserve_directory_structure: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    clone_delay_seconds: int = 0
    clone_depth: Optional[int] = None
    git_filter: Optional[str] = None
    include_submodules: bool = False
    path_filter: Optional[str] = None
    git_timeout: Optional[int] = None
    dry_run: bool = False
    debug: bool = False

    def __post_init__(self):
        if self.concurrency < 1:
            raise ConfigError("Concurrency must be at least 1")
        if self.clone_depth is not None and self.clone_depth < 1:
            raise ConfigError("Clone depth must be a positive integer")
        # A delay only spaces out requests if repos run one at a time
        if self.clone_delay_seconds > 0 and self.concurrency != 1:
            object.__setattr__(self, 'concurrency', 1)

    @property
    def output_dir_abs(self) -> str:
        """Absolute path of the destination root."""
        return os.path.abspath(self.output_dir)

    @property
    def prune_untouched(self) -> bool:
        return self.mode == SyncMode.PRUNE_UNTOUCHED

    @classmethod
    def from_env_and_args(
        cls,
        output_dir: Optional[str] = None,
        backup: Optional[bool] = None,
        no_clean: Optional[bool] = None,
        prune_untouched: Optional[bool] = None,
        branch: Optional[str] = None,
        fetch_all: Optional[bool] = None,
        sync_default_branch: Optional[bool] = None,
        prune: Optional[bool] = None,
        prune_no_confirm: Optional[bool] = None,
        preserve_directory_structure: Optional[bool] = None,
        concurrency: Optional[int] = None,
        clone_delay_seconds: Optional[int] = None,
        clone_depth: Optional[int] = None,
        git_filter: Optional[str] = None,
        include_submodules: Optional[bool] = None,
        path_filter: Optional[str] = None,
        git_timeout: Optional[int] = None,
        dry_run: Optional[bool] = None,
        debug: Optional[bool] = None
    ) -> 'SyncConfig':
        """Create config from environment variables and CLI arguments.

        CLI arguments override environment variables. Arguments left as
        None fall back to the matching ``CLONEFLEET_*`` variable.

        Returns:
            SyncConfig instance

        Raises:
            ConfigError: If required config is missing or inconsistent
        """
        final_output_dir = output_dir or _env_str('CLONEFLEET_OUTPUT_DIR')
        if not final_output_dir:
            raise ConfigError(
                "Output directory is required. "
                "Set CLONEFLEET_OUTPUT_DIR in .env or use --output-dir"
            )

        mode = cls._resolve_mode(
            _pick(backup, _env_flag('CLONEFLEET_BACKUP')),
            _pick(no_clean, _env_flag('CLONEFLEET_NO_CLEAN')),
            _pick(prune_untouched, _env_flag('CLONEFLEET_PRUNE_UNTOUCHED')),
        )

        return cls(
            output_dir=final_output_dir,
            mode=mode,
            branch=_pick(branch, _env_str('CLONEFLEET_BRANCH')),
            fetch_all=_pick(fetch_all, _env_flag('CLONEFLEET_FETCH_ALL')),
            sync_default_branch=_pick(
                sync_default_branch, _env_flag('CLONEFLEET_SYNC_DEFAULT_BRANCH')
            ),
            prune_removed=_pick(prune, _env_flag('CLONEFLEET_PRUNE')),
            prune_no_confirm=_pick(prune_no_confirm, _env_flag('CLONEFLEET_PRUNE_NO_CONFIRM')),
            preserve_directory_structure=_pick(
                preserve_directory_structure,
                _env_flag('CLONEFLEET_PRESERVE_DIRECTORY_STRUCTURE')
            ),
            concurrency=_pick(
                concurrency, _env_int('CLONEFLEET_CONCURRENCY') or DEFAULT_CONCURRENCY
            ),
            clone_delay_seconds=_pick(
                clone_delay_seconds, _env_int('CLONEFLEET_CLONE_DELAY_SECONDS') or 0
            ),
            clone_depth=_pick(clone_depth, _env_int('CLONEFLEET_CLONE_DEPTH')),
            git_filter=_pick(git_filter, _env_str('CLONEFLEET_GIT_FILTER')),
            include_submodules=_pick(
                include_submodules, _env_flag('CLONEFLEET_INCLUDE_SUBMODULES')
            ),
            path_filter=_pick(path_filter, _env_str('CLONEFLEET_PATH_FILTER')),
            git_timeout=_pick(git_timeout, _env_int('CLONEFLEET_GIT_TIMEOUT')),
            dry_run=_pick(dry_run, _env_flag('CLONEFLEET_DRY_RUN')),
            debug=_pick(debug, _env_flag('CLONEFLEET_DEBUG')),
        )

    @staticmethod
    def _resolve_mode(backup: bool, no_clean: bool, prune_untouched: bool) -> SyncMode:
        selected = [
            mode for mode, enabled in (
                (SyncMode.BACKUP, backup),
                (SyncMode.NO_CLEAN, no_clean),
                (SyncMode.PRUNE_UNTOUCHED, prune_untouched),
            ) if enabled
        ]
        if len(selected) > 1:
            names = ', '.join(mode.value for mode in selected)
            raise ConfigError(f"Only one sync mode may be enabled, got: {names}")
        return selected[0] if selected else SyncMode.STANDARD
