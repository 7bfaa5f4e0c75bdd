"""Exceptions raised by clonefleet."""

from typing import Optional, Sequence


class ClonefleetError(Exception):
    """Base class for clonefleet errors."""


class ConfigError(ClonefleetError):
    """Invalid or incomplete configuration."""


class GitError(ClonefleetError):
    """A git command failed.

    Attributes:
        args_: The git arguments that were run
        returncode: Exit status, or None if git never ran
        stderr: Captured standard error
    """

    def __init__(
        self,
        message: str,
        args: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = ""
    ):
        super().__init__(message)
        self.args_ = list(args or [])
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        message = super().__str__()
        if self.stderr:
            return f"{message}: {self.stderr.strip()}"
        return message
