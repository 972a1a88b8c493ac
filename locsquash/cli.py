"""Command line interface for locsquash."""

from typing import Optional
import argparse
import logging
import os
import sys

from . import __version__
from .core.config import SquashConfig
from .core.types import (
    SquashPlan, SquashRequest, SquashResult,
    LocsquashError, ExecutionError, InvalidRequestError
)
from .git.operations import GitOperations
from .report import PlanReporter
from .tool import SquashTool

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        # Progress lines only
        logging.basicConfig(level=logging.INFO, format='%(message)s')


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the command line argument parser."""
    parser = argparse.ArgumentParser(
        prog='locsquash',
        description='Squash the last N commits into one, keeping the date of the most recent commit',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  %(prog)s -n 3                         # Squash last 3 commits, keep oldest message
  %(prog)s -n 3 -m "Add parser"         # Squash with a new message
  %(prog)s -n 3 -dry-run                # Show the git commands without running them
  %(prog)s -n 3 -print-recovery         # Show how to undo the squash
  %(prog)s -n 3 -stash -y               # Stash local changes, no prompt
  %(prog)s -list-backups                # Show backup branches from earlier runs

Environment Variables:
  LOCSQUASH_VERBOSE   Set to enable debug logging
        """
    )

    parser.add_argument(
        '-n',
        dest='count',
        type=int,
        default=0,
        help='Number of last commits to squash (must be at least 2)',
        metavar='N'
    )

    parser.add_argument(
        '-m',
        dest='message',
        help='New commit message for the squashed commit (default: oldest squashed message)',
        metavar='MESSAGE'
    )

    parser.add_argument(
        '-stash', '--stash',
        action='store_true',
        help='Auto-stash uncommitted changes (default requires clean state)'
    )

    parser.add_argument(
        '-allow-empty', '--allow-empty',
        action='store_true',
        help='Allow creating an empty commit if squashed changes cancel out'
    )

    # Preview modes
    preview_group = parser.add_argument_group('preview')
    preview_group.add_argument(
        '-dry-run', '--dry-run',
        action='store_true',
        help='Print the git commands that would run, without making changes'
    )

    preview_group.add_argument(
        '-print-recovery', '--print-recovery',
        action='store_true',
        help='Print recovery commands and exit'
    )

    # Backup branches
    backup_group = parser.add_argument_group('backup branches')
    backup_group.add_argument(
        '-no-backup', '--no-backup',
        action='store_true',
        help='Skip creating backup branch'
    )

    backup_group.add_argument(
        '-list-backups', '--list-backups',
        action='store_true',
        help='List backup branches created by earlier runs and exit'
    )

    backup_group.add_argument(
        '--backup-prefix',
        help='Namespace for backup branch names (default: %s)' % SquashConfig.backup_branch_prefix,
        metavar='PREFIX'
    )

    parser.add_argument(
        '-yes', '--yes', '-y',
        dest='yes',
        action='store_true',
        help='Skip confirmation prompt'
    )

    parser.add_argument(
        '-version', '--version', '-v',
        dest='version',
        action='store_true',
        help='Print version and exit'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser


def confirm_execution() -> bool:
    """Ask user to confirm execution; anything but yes declines."""
    try:
        response = input("Proceed? [y/N] ")
    except EOFError:
        return False
    return response.lower().strip() in ('y', 'yes')


def display_result(result: SquashResult) -> None:
    """Display the outcome of a successful squash."""
    print(f"Successfully squashed the last {result.count} commits.")
    if result.backup_branch:
        print(f"Backup branch: {result.backup_branch}")


def list_backups(tool: SquashTool, reporter: PlanReporter, config: SquashConfig) -> None:
    """Print backup branches left by earlier runs."""
    tool.check_environment()
    branches = tool.git_ops.list_branches(f"{config.backup_branch_prefix}*")
    print(reporter.format_backup_list(branches))


def print_previews(plan: SquashPlan, reporter: PlanReporter) -> None:
    """Print the requested read-only views of a plan."""
    if plan.request.dry_run:
        print(reporter.format_dry_run(plan))
    if plan.request.print_recovery:
        if plan.request.dry_run:
            print()
        print(reporter.format_recovery(plan))


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    # Setup logging
    env_verbose = bool(os.environ.get('LOCSQUASH_VERBOSE', ""))
    verbose = parsed_args.verbose or env_verbose
    setup_logging(verbose)

    if parsed_args.version:
        print("locsquash", __version__)
        return 0

    try:
        config = SquashConfig.from_cli_args(parsed_args)
        logger.debug("Configuration: %s", config)

        git_ops = GitOperations(config=config)
        tool = SquashTool(git_ops, config)
        reporter = PlanReporter(config)

        if parsed_args.list_backups:
            list_backups(tool, reporter, config)
            return 0

        request = SquashRequest.from_cli_args(parsed_args)
        dirty = tool.validate(request)
        if dirty and not request.stash and request.is_preview:
            print("Warning: uncommitted changes detected. Preview may not reflect a clean "
                  "working tree; use -stash to simulate a clean state.", file=sys.stderr)

        plan = tool.build_plan(request, dirty)

        if request.is_preview:
            print_previews(plan, reporter)
            return 0

        if not request.yes:
            print(reporter.format_commit_list(plan))
            if not sys.stdin.isatty():
                raise InvalidRequestError(
                    "stdin is not a terminal. Use -y to skip confirmation in non-interactive mode.")
            if not confirm_execution():
                print("Aborted.")
                return 0

        result = tool.execute_squash_plan(plan)
        display_result(result)
        return 0

    except ExecutionError as e:
        logger.debug("Squash failed during %s step", e.step.value)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except LocsquashError as e:
        logger.debug("locsquash error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        return 1

    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
