"""Command-line entry point: ``taskmaster-sync``.

Runs one sync of ``tasks.json`` into GitHub and prints the summary to
stdout. Logs go to stderr so the summary can be piped.

Exit status is 0 on success, 1 if any task failed, configuration is
missing, the state lock times out or the tasks file cannot be read.
"""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, yaml_fallbacks
from .core.client import GitHubClient
from .errors import LockTimeoutError, TaskFileError
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.models import SyncOptions
from .sync.reporter import (
    format_integrity_report,
    format_sync_summary,
    summary_to_json,
)
from .sync.state import verify_state_integrity

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskmaster-sync",
        description="Create GitHub issues for Taskmaster tasks and add them to a project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Sync using GITHUB_* env vars / .env
  %(prog)s --dry-run                # Show what would be created
  %(prog)s --cleanup-stale          # Drop mappings for deleted tasks
  %(prog)s --verify                 # Check state without syncing
  %(prog)s --tasks path/tasks.json --state path/sync-state.json
        """,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--tasks", help="Path to tasks.json")
    parser.add_argument("--state", help="Path to the sync state file")
    parser.add_argument("--owner", help="Override GITHUB_OWNER")
    parser.add_argument("--repo", help="Override GITHUB_REPO")
    parser.add_argument("--project-id", help="Override GITHUB_PROJECT_ID")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Map tasks to issues without creating anything",
    )
    parser.add_argument(
        "--lock",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Hold the state file lock during the run (default: on)",
    )
    parser.add_argument(
        "--cleanup-stale",
        action="store_true",
        default=None,
        help="Remove mappings for tasks no longer in tasks.json",
    )
    parser.add_argument(
        "--save-each",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Save state after each created issue (default: on)",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Report idempotency and state integrity, then exit",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON instead of text",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format on stderr and in the log file",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config file if none exists, then exit",
    )
    return parser


def _load_settings() -> UnifiedConfig:
    if not discover_config_files():
        return UnifiedConfig()
    return build_config(load_hierarchical_config())


def _pick(cli_value, default):
    return default if cli_value is None else cli_value


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)

    if args.init_config:
        print(f"Config file: {ensure_config()}")
        return 0

    load_dotenv()
    try:
        settings = _load_settings()
        config = load_config(
            owner=args.owner,
            repo=args.repo,
            project_id=args.project_id,
            dry_run=args.dry_run,
            debug=args.debug,
            tasks_path=args.tasks,
            state_path=args.state,
            yaml_fallbacks=yaml_fallbacks(settings),
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        mode="cli",
        debug=config.debug,
        log_file=settings.logging.file,
        debug_format=args.log_format,
        level=settings.logging.level,
    )

    sync_settings = settings.sync
    options = SyncOptions(
        owner=config.owner,
        repo=config.repo,
        project_id=config.project_id,
        tasks_path=config.tasks_path,
        state_path=config.state_path,
        dry_run=config.dry_run,
        use_locking=_pick(args.lock, sync_settings.use_locking),
        cleanup_stale=_pick(args.cleanup_stale, sync_settings.cleanup_stale),
        save_after_each_task=_pick(
            args.save_each, sync_settings.save_after_each_task
        ),
        auto_detect_status=sync_settings.auto_detect_status,
        initial_status=sync_settings.initial_status,
        status_mapping=settings.status_field_mapping,
        priority_prefix=settings.labels.priority_prefix,
    )

    client = None if config.dry_run or args.verify else GitHubClient(config)
    engine = SyncEngine(client=client, options=options)

    try:
        if args.verify:
            return _verify(engine)
        summary = engine.run()
    except LockTimeoutError as e:
        logger.error("%s", e)
        print(
            f"Error: {e}. Another sync may be running; remove "
            f"{e.lock_path} if not.",
            file=sys.stderr,
        )
        return 1
    except TaskFileError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(summary_to_json(summary), indent=2))
    else:
        print(format_sync_summary(summary))
    return 1 if summary.failed > 0 else 0


def _verify(engine: SyncEngine) -> int:
    report = engine.verify_idempotency()
    integrity = verify_state_integrity(engine.store.load())

    print(f"Total tasks:    {report.total_tasks}")
    print(f"Synced tasks:   {report.synced_tasks}")
    print(f"Unsynced tasks: {report.unsynced_tasks}")
    if report.unsynced_task_ids:
        print(f"  Unsynced IDs: {', '.join(report.unsynced_task_ids)}")
    print(format_integrity_report(integrity))
    return 0 if integrity.valid else 1


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
