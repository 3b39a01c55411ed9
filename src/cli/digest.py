# =============================================================================
# src/cli/digest.py - Operator CLI for the event digest service
# =============================================================================
#
# Runs the same wiring as the web server (src.main.build_components) from
# the command line.  Useful for cron-driven weekly runs and for debugging a
# single user's discovery without going through the API.
#
# Supported subcommands:
#
#   init-db   - Create all SQLite tables
#   discover  - Run the discovery pipeline for one user and print the events
#   weekly    - Run the weekly generate+send job for every eligible user
#
# Usage examples:
#   python -m src.cli init-db
#   python -m src.cli discover --user-id 3 --show-dump
#   python -m src.cli weekly --batch-size 5 --batch-delay 30
# =============================================================================

"""Command-line entry points: ``init-db``, ``discover`` and ``weekly``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from src.config.settings import Settings
from src.utils.errors import EventDigestError


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_init_db(args: argparse.Namespace, components: dict[str, Any]) -> int:
    # Tables are created by _run before dispatch.
    print("Database initialized.")
    return 0


async def _handle_discover(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Run discovery for one user and print the persisted selection."""
    pipeline = components["pipeline"]
    try:
        result = await pipeline.discover_for_user(args.user_id)
    except EventDigestError as exc:
        print(f"Error ({type(exc).__name__}): {exc.message}", file=sys.stderr)
        return 1

    if args.json_output:
        payload = {
            "user_id": result.user_id,
            "candidate_count": result.candidate_count,
            "events": [e.model_dump(mode="json") for e in result.events],
        }
        print(json.dumps(payload, indent=2))
    else:
        print(
            f"{len(result.events)} events "
            f"({result.candidate_count} candidates, {result.validation.dropped} dropped)"
        )
        for index, event in enumerate(result.events, start=1):
            score = "-" if event.score is None else event.score
            print(f"{index:>2}. [{score}] {event.event_date} {event.title} @ {event.location}")

    if args.show_dump:
        print("\n--- raw discovery response ---")
        print(result.raw_dump)
    return 0


async def _handle_weekly(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Run the weekly job; exit code 1 if any user failed."""
    from src.pipeline.weekly_job import run_weekly

    summary = await run_weekly(
        user_store=components["user_store"],
        newsletter_service=components["newsletter_service"],
        batch_size=args.batch_size or components["weekly_batch_size"],
        batch_delay_seconds=(
            args.batch_delay
            if args.batch_delay is not None
            else components["weekly_batch_delay_seconds"]
        ),
    )
    print(
        f"Weekly run complete: {summary.sent} sent, {summary.failed} failed "
        f"in {summary.batches} batches."
    )
    for outcome in summary.outcomes:
        if outcome.error:
            print(f"  user {outcome.user_id}: {outcome.error}", file=sys.stderr)
    return 1 if summary.failed else 0


_HANDLERS = {
    "init-db": _handle_init_db,
    "discover": _handle_discover,
    "weekly": _handle_weekly,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred import: src.main bootstraps logging and the FastAPI app.
    from src.main import build_components, initialize_stores

    components = build_components(app_settings)
    try:
        await initialize_stores(components)
        return await _HANDLERS[args.command](args, components)
    finally:
        await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Local event discovery and weekly newsletter tools.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init-db", help="Create database tables")

    discover_parser = subparsers.add_parser(
        "discover", help="Run event discovery for one user"
    )
    discover_parser.add_argument("--user-id", type=int, required=True, dest="user_id")
    discover_parser.add_argument(
        "--json", action="store_true", dest="json_output", help="Print JSON output"
    )
    discover_parser.add_argument(
        "--show-dump",
        action="store_true",
        dest="show_dump",
        help="Also print the raw discovery response",
    )

    weekly_parser = subparsers.add_parser(
        "weekly", help="Generate and send newsletters to all eligible users"
    )
    weekly_parser.add_argument(
        "--batch-size", type=int, default=None, dest="batch_size",
        help="Users per batch (default from config)",
    )
    weekly_parser.add_argument(
        "--batch-delay", type=float, default=None, dest="batch_delay",
        help="Seconds to wait between batches (default from config)",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, dispatch to the handler, and exit with its code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args, Settings())))


if __name__ == "__main__":
    main()
