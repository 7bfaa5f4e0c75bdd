"""Main entry point for the clonefleet CLI."""

from dotenv import load_dotenv
load_dotenv()

import sys
import json
import argparse
from typing import List

from .config import SyncConfig
from .core.errors import ConfigError
from .core.logger import setup_logging
from .core.repo_manager import RepoManager
from .core.types import RepoDescriptor
from .git.cli import GitCli
from .utils.progress import print_summary


def load_descriptors(path: str) -> List[RepoDescriptor]:
    """Read repository descriptors from a JSON file.

    The file holds either a list of descriptor objects or an object with
    a ``repos`` list.

    Args:
        path: Path to the JSON file, ``-`` for stdin

    Returns:
        Descriptors in file order

    Raises:
        ConfigError: If the file cannot be read or has the wrong shape
    """
    try:
        if path == '-':
            data = json.load(sys.stdin)
        else:
            with open(path) as f:
                data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read repository list {path}: {e}")

    if isinstance(data, dict):
        data = data.get('repos')
    if not isinstance(data, list):
        raise ConfigError(f"Repository list {path} must be a JSON list of repositories")

    try:
        return [RepoDescriptor.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigError(f"Invalid repository entry in {path}: {e}")


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='clonefleet',
        description='Clone and keep up to date a fleet of remote repositories',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Clone new repositories and pull existing ones
  clonefleet sync repos.json --output-dir ~/src/myorg

  # Preview what would be cloned
  clonefleet sync repos.json --output-dir ~/src/myorg --dry-run

  # Mirror everything for a backup
  clonefleet sync repos.json --output-dir /backups/myorg --backup

  # Delete clones nobody has touched
  clonefleet sync repos.json --output-dir ~/src/myorg --prune-untouched
        """
    )

    subparsers = parser.add_subparsers(dest='operation', help='Operation to perform')
    sync_parser = subparsers.add_parser('sync', help='Clone new repos and update existing ones')
    sync_parser.add_argument(
        'repos_file',
        help='JSON file with the repositories to sync ("-" for stdin)'
    )
    _add_sync_args(sync_parser)

    return parser


def _flag(group, name: str, help: str) -> None:
    # Unset flags stay None so the environment can supply them
    group.add_argument(name, action='store_true', default=None, help=help)


def _add_sync_args(parser: argparse.ArgumentParser) -> None:
    """Add sync arguments to a parser.

    Args:
        parser: Parser to add arguments to
    """
    config_group = parser.add_argument_group('configuration')
    config_group.add_argument(
        '--output-dir',
        help='Directory to clone into (overrides CLONEFLEET_OUTPUT_DIR)'
    )
    config_group.add_argument(
        '--branch',
        help='Branch to checkout instead of each repo default (overrides CLONEFLEET_BRANCH)'
    )

    mode_group = parser.add_argument_group('sync mode')
    modes = mode_group.add_mutually_exclusive_group()
    _flag(modes, '--backup', 'Mirror clone and only update remote refs on existing clones')
    _flag(modes, '--no-clean', 'Only fetch existing clones, never clean or reset them')
    _flag(modes, '--prune-untouched', 'Only delete clones without local branches, changes or commits')

    git_group = parser.add_argument_group('git')
    _flag(git_group, '--fetch-all', 'Fetch all remotes')
    _flag(git_group, '--sync-default-branch', 'Fast-forward the default branch when it is safe')
    _flag(git_group, '--include-submodules', 'Clone and pull submodules')
    git_group.add_argument('--clone-depth', type=int, metavar='N', help='Shallow clone depth')
    git_group.add_argument('--git-filter', metavar='SPEC', help='Partial clone filter, e.g. blob:none')
    git_group.add_argument(
        '--path-filter',
        metavar='PATHS',
        help='Comma separated paths for a sparse checkout'
    )
    git_group.add_argument('--git-timeout', type=int, metavar='SECONDS', help='Timeout per git command')

    layout_group = parser.add_argument_group('layout and pruning')
    _flag(layout_group, '--preserve-dir', 'Clone into the provider group/subgroup structure')
    _flag(layout_group, '--prune', 'Delete local clones no longer found on the remote')
    _flag(layout_group, '--prune-no-confirm', 'Do not ask before pruning')

    exec_group = parser.add_argument_group('execution control')
    exec_group.add_argument(
        '--concurrency',
        type=int,
        metavar='N',
        help='Number of repositories processed at once (default: 25)'
    )
    exec_group.add_argument(
        '--clone-delay',
        type=int,
        metavar='SECONDS',
        help='Delay before each repository, forces concurrency 1'
    )
    _flag(exec_group, '--dry-run', 'Preview without cloning')
    _flag(exec_group, '--debug', 'Log every git command and its output')
    exec_group.add_argument(
        '--exit-code-on-infos',
        type=int,
        default=0,
        metavar='N',
        help='Exit with N when info messages were recorded (default: 0)'
    )


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.operation:
        parser.print_help()
        return 1

    logger = setup_logging(operation=args.operation, debug=bool(args.debug))

    try:
        config = SyncConfig.from_env_and_args(
            output_dir=args.output_dir,
            backup=args.backup,
            no_clean=args.no_clean,
            prune_untouched=args.prune_untouched,
            branch=args.branch,
            fetch_all=args.fetch_all,
            sync_default_branch=args.sync_default_branch,
            prune=args.prune,
            prune_no_confirm=args.prune_no_confirm,
            preserve_directory_structure=args.preserve_dir,
            concurrency=args.concurrency,
            clone_delay_seconds=args.clone_delay,
            clone_depth=args.clone_depth,
            git_filter=args.git_filter,
            include_submodules=args.include_submodules,
            path_filter=args.path_filter,
            git_timeout=args.git_timeout,
            dry_run=args.dry_run,
            debug=args.debug
        )

        logger.info("Configuration loaded")
        logger.info(f"  Output directory: {config.output_dir_abs}")
        logger.info(f"  Mode: {config.mode.value}")
        logger.info(f"  Concurrency: {config.concurrency}")

        repos = load_descriptors(args.repos_file)
        if not repos:
            logger.warning("No repositories to sync")
            return 0

        manager = RepoManager(git=GitCli(config), config=config)
        stats = manager.run(repos)

        if config.dry_run:
            return 0

        print_summary(stats, operation_name=args.operation, output_dir=config.output_dir_abs)

        if stats.errors:
            return 1
        if stats.infos and args.exit_code_on_infos:
            return args.exit_code_on_infos
        return 0

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
