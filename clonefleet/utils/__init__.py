"""Utilities package for clonefleet."""

from .progress import format_duration_text, print_summary, stats_message

__all__ = [
    'format_duration_text',
    'print_summary',
    'stats_message',
]
