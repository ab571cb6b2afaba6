"""
CLI commands for the inactivity lifecycle.

Usage:
    python -m account_lifecycle.cli preview --days 90 --warn-days 7
    python -m account_lifecycle.cli run --days 90 --warn-days 7 --max-warnings 200
    python -m account_lifecycle.cli status
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

# Settings read the environment at import time.
load_dotenv()

from psycopg_pool import ConnectionPool  # noqa: E402

from .config import get_settings  # noqa: E402
from .domain.contracts import PreviewResult  # noqa: E402
from .domain.service import LifecycleService  # noqa: E402
from .locking.run_lock import RunInProgressError  # noqa: E402
from .repository import AccountRepository  # noqa: E402


def print_preview(result: PreviewResult) -> None:
    print("\n=== Inactivity Preview ===\n")
    print(f"Retention: {result.config.retention_days} days, warn lead: {result.config.warn_lead_days} days")
    print(f"Include professors: {result.include_content_owners}")
    print(f"Checked: {result.checked}")

    print(f"\nWould warn ({len(result.warn_candidates)}):")
    for candidate in result.warn_candidates:
        suffix = " [overdue]" if candidate.overdue else ""
        print(f"  {candidate.account_id} {candidate.email} -> delete {candidate.delete_at:%Y-%m-%d}{suffix}")

    print(f"\nWould delete ({len(result.delete_candidates)}):")
    for candidate in result.delete_candidates:
        print(f"  {candidate.account_id} {candidate.email} (scheduled {candidate.delete_at:%Y-%m-%d})")
    print()


def cmd_preview(service: LifecycleService, args: argparse.Namespace) -> int:
    print_preview(service.preview(args.days, args.warn_days))
    return 0


def cmd_run(service: LifecycleService, args: argparse.Namespace) -> int:
    try:
        result = service.run_cleanup(args.days, args.warn_days, args.max_warnings)
    except RunInProgressError as exc:
        print(f"Error: {exc}")
        return 1
    print(f"\nChecked: {result.checked}")
    print(f"Warned: {result.warned} (cap {result.max_warnings_per_run})")
    print(f"Deleted: {result.deleted} (auto delete {'on' if result.auto_delete_enabled else 'off'})\n")
    return 0


def cmd_status(service: LifecycleService, args: argparse.Namespace) -> int:
    report = service.diagnostics()
    print("\n=== Lifecycle Status ===\n")
    for key, value in report["counts"].items():
        print(f"  {key}: {value}")
    print(f"\nInclude professors: {report['include_content_owners']}")
    print(f"Auto delete: {report['auto_delete_enabled']}\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Account inactivity lifecycle")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, handler, help_text in (
        ("preview", cmd_preview, "Show what the next run would do (no changes)"),
        ("run", cmd_run, "Warn and delete inactive accounts"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--days", help="Retention window in days (default: CLEANUP_RETENTION_DAYS)")
        sub.add_argument("--warn-days", help="Warning lead time in days (default: CLEANUP_WARN_DAYS)")
        sub.set_defaults(handler=handler)
    subparsers.choices["run"].add_argument(
        "--max-warnings", help="Warning cap for this run (default: CLEANUP_MAX_WARNINGS)"
    )

    status_parser = subparsers.add_parser("status", help="Show lifecycle counters")
    status_parser.set_defaults(handler=cmd_status)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    with ConnectionPool(settings.database_url) as pool:
        service = LifecycleService.from_settings(AccountRepository(pool), settings)
        return args.handler(service, args)


if __name__ == "__main__":
    sys.exit(main())
