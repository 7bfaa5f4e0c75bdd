"""Git primitives used by the synchronization engine."""

from .base import GitPort
from .cli import GitCli, redact

__all__ = ['GitPort', 'GitCli', 'redact']
