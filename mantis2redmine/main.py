"""Main entry point for the Mantis to Redmine migration tool."""

import argparse
import atexit
import os
import sys
from pathlib import Path

from mantis2redmine import config
from mantis2redmine.clients.exceptions import ClientError
from mantis2redmine.display import configure_logging, console
from mantis2redmine.models import MigrationError

CONFIRMATION = "YES"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="m2r",
        description="Migrate a Mantis database into a Redmine database",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="YAML configuration file (default: config/config.yaml)",
    )
    parser.add_argument(
        "--dry-run",
        "-n",
        action="store_true",
        help="Resolve and report without writing to Redmine",
    )
    parser.add_argument(
        "--load-maps",
        action="store_true",
        help="Reuse stored mappings and skip records an earlier run already wrote",
    )
    parser.add_argument(
        "--no-confirm",
        action="store_true",
        help="Do not ask for confirmation before writing to Redmine",
    )
    parser.add_argument(
        "--accept-proposals",
        action="store_true",
        help="Accept every proposed mapping without asking",
    )
    parser.add_argument(
        "--category-source",
        choices=["categories", "trackers"],
        help="Import Mantis categories as Redmine categories or as trackers",
    )
    parser.add_argument(
        "--attachment-dir",
        metavar="PATH",
        help="Directory attachment files are written to",
    )
    parser.add_argument("--mantis-url", metavar="URL", help="SQLAlchemy URL of the Mantis database")
    parser.add_argument("--redmine-url", metavar="URL", help="SQLAlchemy URL of the Redmine database")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "NOTICE", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging level",
    )
    return parser.parse_args(argv)


def _pid_is_running(pid: int) -> bool:
    """Return True if a process with PID is running (and accessible)."""
    if pid <= 0:
        return False
    try:
        # On POSIX, signal 0 checks existence without sending a signal
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _read_pid(lock_file: Path) -> int:
    try:
        return int(lock_file.read_text(encoding="utf-8").strip() or "0")
    except (OSError, ValueError):
        return 0


def _ensure_singleton_lock(lock_file: Path) -> bool:
    """Make sure only one run writes to Redmine at a time.

    A stale lock left by a dead process is replaced. The lock is removed
    on exit when it still holds our PID.
    """
    if os.environ.get("M2R_DISABLE_LOCK") in {"1", "true", "True"}:
        config.logger.warning("Singleton lock disabled via M2R_DISABLE_LOCK=1")
        return True

    lock_file.parent.mkdir(parents=True, exist_ok=True)
    current_pid = os.getpid()

    if lock_file.exists():
        existing = _read_pid(lock_file)
        if existing and _pid_is_running(existing):
            config.logger.error(
                "Another migration instance is running (pid=%s). Lock: %s",
                existing,
                lock_file,
            )
            return False
        lock_file.unlink(missing_ok=True)

    try:
        with lock_file.open("x", encoding="utf-8") as f:
            f.write(str(current_pid))
    except FileExistsError:
        config.logger.error("Concurrent migration detected (pid=%s). Lock: %s", _read_pid(lock_file), lock_file)
        return False

    def _cleanup_lock() -> None:
        if _read_pid(lock_file) == current_pid:
            lock_file.unlink(missing_ok=True)

    atexit.register(_cleanup_lock)
    return True


def confirm_live_run() -> bool:
    console.print(
        "[bold red]This run writes into the Redmine database and cannot be undone.[/]\n"
        f"Type {CONFIRMATION} to continue:",
    )
    return console.input("> ").strip() == CONFIRMATION


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the migration and return the exit status."""
    args = parse_args(argv)

    if args.config:
        config.reload(args.config)
    if args.log_level:
        config.logger = configure_logging(args.log_level, config.log_file)

    config.update_from_cli_args(args)
    config.logger.debug("Args: %s", args)

    if not config.validate_config():
        return 1

    dry_run = bool(config.migration_config.get("dry_run"))
    no_confirm = bool(config.migration_config.get("no_confirm"))
    if not dry_run and not no_confirm and not confirm_live_run():
        config.logger.warning("Migration cancelled")
        return 1

    if not dry_run and not _ensure_singleton_lock(config.get_path("root") / "run" / "m2r.pid"):
        return 1

    # Imported late so the configuration above is in place first
    from mantis2redmine.migration import run_migration  # noqa: PLC0415

    try:
        run_migration(
            dry_run=dry_run,
            resume=bool(config.migration_config.get("load_maps")),
            accept_proposals=bool(config.migration_config.get("accept_proposals")),
        )
    except (MigrationError, ClientError) as e:
        config.logger.error("Migration failed: %s", e)
        return 1
    except KeyboardInterrupt:
        config.logger.warning("Migration interrupted by user")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
