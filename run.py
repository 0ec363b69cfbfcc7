#!/usr/bin/env python3
"""
run.py – CLI entry-point for Feature-Sync.

Usage:
    python run.py sync features/ --org-url https://dev.azure.com/acme \\
        --project Shop --pat *** --plan-id 42
    python run.py sync features/login.feature --dry-run
    python run.py update results.csv --plan-id 42 --suite-regex "Sprint 12"

Connection values missing from the command line are read from .env.
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ado_client import ADOClient
from config import Settings
from errors import ConfigurationError, GatewayError
from models import BatchResult, SyncResult
from status_ingestor import replay_status_report
from synchronizer import Synchronizer

console = Console()

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_CONFIG = 2
EXIT_ABORTED = 130

# ── Logging ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


# ── Pretty output helpers ──────────────────────────────────────────────

def _show_sync_results(results: list[SyncResult]) -> None:
    table = Table(title="Feature Sync Summary", show_lines=True)
    table.add_column("Feature", style="bold")
    table.add_column("Created", width=8, justify="right")
    table.add_column("Updated", width=8, justify="right")
    table.add_column("Skipped", width=8, justify="right")
    table.add_column("Failed", width=8, justify="right")

    for r in results:
        table.add_row(
            escape(r.path),
            str(len(r.created)),
            str(len(r.updated)),
            str(len(r.skipped)),
            f"[red]{len(r.failures)}[/]" if r.failures else "0",
        )
    console.print(table)

    for r in results:
        for name, message in r.failures:
            console.print(f"  [red]✗[/] {escape(r.path)} · {escape(name)}: {escape(message)}")


def _show_batch_result(result: BatchResult) -> None:
    console.print()
    console.print(
        Panel(
            f"[green bold]Applied:[/]  {len(result.applied)}\n"
            f"[red bold]Failed:[/]   {len(result.failures)}",
            title=f"Status Update · {escape(result.path)}",
            border_style="red" if result.errors_encountered else "green",
        )
    )
    for line_no, message in result.failures:
        console.print(f"  [red]✗[/] line {line_no}: {escape(message)}")


# ── Core orchestration ─────────────────────────────────────────────────

def run_sync(path: str, dry_run: bool = False, workers: int | None = None) -> bool:
    """Sync every feature file under *path*; return True if errors occurred."""
    console.rule("[bold blue]Sync feature files")
    ado = ADOClient()
    if not dry_run:
        ado.check_connection()
    results = Synchronizer(ado, workers=workers, dry_run=dry_run).sync_path(path)
    _show_sync_results(results)
    if dry_run:
        console.print("\n[yellow bold]DRY RUN[/] – no changes written to ADO or files.")
    return any(r.errors_encountered for r in results)


def run_update(csv_path: str) -> bool:
    """Replay a status report; return True if errors occurred."""
    console.rule("[bold blue]Replay status report")
    ado = ADOClient()
    ado.check_connection()
    result = replay_status_report(csv_path, ado)
    _show_batch_result(result)
    return result.errors_encountered


# ── CLI ─────────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--org-url", help="Azure DevOps organisation URL.")
    common.add_argument("--project", help="Azure DevOps project name.")
    common.add_argument("--pat", help="Personal access token.")
    common.add_argument("--plan-id", type=int, help="Test Plan holding the results.")
    common.add_argument(
        "--suite-regex",
        help="Only suites whose name matches this pattern receive results.",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    parser = argparse.ArgumentParser(
        prog="feature-sync",
        description="Sync Gherkin scenarios and test results with Azure DevOps.",
    )
    modes = parser.add_subparsers(dest="mode", required=True)

    sync = modes.add_parser(
        "sync",
        parents=[common],
        help="Create / update Test Cases from feature files.",
    )
    sync.add_argument("path", help="A feature file or a directory to search.")
    sync.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Show what would change without touching ADO or the files.",
    )
    sync.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel Test Case creations per file (default: SYNC_WORKERS).",
    )

    update = modes.add_parser(
        "update",
        parents=[common],
        help="Replay a CSV status report as test results.",
    )
    update.add_argument("path", help="CSV status report.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    _configure_logging(args.verbose)

    console.print(
        Panel(
            "[bold white]Feature-Sync[/]  –  Gherkin ⇄ Azure DevOps Test Plans",
            border_style="bright_magenta",
        )
    )

    try:
        Settings.apply_overrides(
            ADO_ORG_URL=args.org_url,
            ADO_PROJECT=args.project,
            ADO_PAT=args.pat,
            ADO_TEST_PLAN_ID=args.plan_id,
            ADO_SUITE_REGEX=args.suite_regex,
            SYNC_WORKERS=getattr(args, "workers", None),
        )
        Settings.validate()
    except ConfigurationError as exc:
        console.print(f"\n[red bold]Configuration error:[/] {escape(str(exc))}")
        return EXIT_CONFIG

    try:
        if args.mode == "sync":
            errors = run_sync(args.path, dry_run=args.dry_run, workers=args.workers)
        else:
            errors = run_update(args.path)
    except KeyboardInterrupt:
        console.print("\n[red]Aborted by user.[/]")
        return EXIT_ABORTED
    except GatewayError as exc:
        console.print(f"\n[red bold]Cannot use Azure DevOps:[/] {escape(str(exc))}")
        return EXIT_CONFIG
    except Exception as exc:
        console.print(f"\n[red bold]Error:[/] {escape(str(exc))}")
        logging.getLogger("feature-sync").debug("Traceback:", exc_info=True)
        return EXIT_ERRORS

    if errors:
        console.print("\n[yellow bold]Finished with errors.[/]")
        return EXIT_ERRORS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
