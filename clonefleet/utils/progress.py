"""Run summary output."""

from ..core.types import CloneStats


def format_duration_text(duration_seconds: int) -> str:
    """Format a duration as `` (completed in 1m5s)``."""
    if duration_seconds >= 60:
        minutes, seconds = divmod(duration_seconds, 60)
        if seconds > 0:
            return f" (completed in {minutes}m{seconds}s)"
        return f" (completed in {minutes}m)"
    return f" (completed in {duration_seconds}s)"


def stats_message(stats: CloneStats) -> str:
    """One-line summary of clone/pull counters."""
    text = (
        f"New clones: {stats.clone_count}, "
        f"existing resources pulled: {stats.pulled_count}"
    )
    if stats.new_commits > 0 or stats.update_remote_count > 0:
        text += f", total new commits: {stats.new_commits}"
    if stats.update_remote_count > 0:
        text += f", remotes updated: {stats.update_remote_count}"
    prunes = stats.untouched_prunes + stats.removed_prunes
    if prunes > 0:
        text += f", total prunes: {prunes}"
    return text + format_duration_text(stats.total_duration_seconds)


def print_summary(stats: CloneStats, operation_name: str, output_dir: str) -> None:
    """Print the run summary.

    Args:
        stats: Final run statistics
        operation_name: Name of the operation
        output_dir: Destination root
    """
    print("\n" + "=" * 60)
    print(f"SUMMARY: {operation_name.upper()}")
    print("=" * 60)

    if stats.infos:
        print("\nInfo:")
        for message in stats.infos:
            print(f"  ⊘ {message}")

    if stats.errors:
        print("\nIssues:")
        for message in stats.errors:
            print(f"  ✗ {message}")

    print(f"\n✓ {stats_message(stats)}")
    print(f"Finished! {output_dir}")
    print("=" * 60)
