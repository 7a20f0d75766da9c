import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .pipeline import (
    build_played_matches,
    build_player_aggregates,
    refresh_league_tables,
    refresh_schedules,
    update_results,
)
from .results import DEFAULT_DELAY_MS, DEFAULT_RESULT_TIMEOUT_MS
from .schedule import DEFAULT_BACKOFF_MS, DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT_MS
from .storage import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_DATA_DIR,
    DataDirectory,
    load_config,
)
from .tables import DEFAULT_TABLE_DELAY_MS, DEFAULT_TABLE_TIMEOUT_MS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Maintain the handball fixture list, results and player statistics"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Directory holding the JSON artefacts (default: data).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every fetch attempt and progress step.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh = subparsers.add_parser(
        "refresh", help="Download all team schedules and rebuild terminliste.json."
    )
    refresh.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Team configuration file (default: config.json).",
    )
    refresh.add_argument(
        "--max-attempts",
        type=int,
        default=DEFAULT_MAX_ATTEMPTS,
        help=f"Download attempts per team (default: {DEFAULT_MAX_ATTEMPTS}).",
    )
    refresh.add_argument(
        "--backoff-ms",
        type=int,
        default=DEFAULT_BACKOFF_MS,
        help=(
            "Base wait between attempts in milliseconds, multiplied by the attempt "
            f"number (default: {DEFAULT_BACKOFF_MS})."
        ),
    )
    refresh.add_argument(
        "--timeout-ms",
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        help=f"Timeout per attempt in milliseconds (default: {DEFAULT_TIMEOUT_MS}).",
    )

    results = subparsers.add_parser(
        "update-results", help="Scrape scores for played matches that have none yet."
    )
    results.add_argument(
        "--delay-ms",
        type=int,
        default=DEFAULT_DELAY_MS,
        help=f"Pause between match page requests (default: {DEFAULT_DELAY_MS}).",
    )
    results.add_argument(
        "--timeout-ms",
        type=int,
        default=DEFAULT_RESULT_TIMEOUT_MS,
        help=f"Timeout per match page in milliseconds (default: {DEFAULT_RESULT_TIMEOUT_MS}).",
    )
    _add_table_options(results)

    subparsers.add_parser(
        "combine", help="Write played-matches.json from tournament and fixture data."
    )
    subparsers.add_parser(
        "aggregate-players",
        help="Rebuild players.json and player-aggregates.json from player-stats.json.",
    )

    tables = subparsers.add_parser(
        "fetch-tables", help="Download the table of every league in terminliste.json."
    )
    _add_table_options(tables)
    return parser


def _add_table_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--table-delay-ms",
        type=int,
        default=DEFAULT_TABLE_DELAY_MS,
        help=f"Pause between table requests (default: {DEFAULT_TABLE_DELAY_MS}).",
    )
    parser.add_argument(
        "--table-timeout-ms",
        type=int,
        default=DEFAULT_TABLE_TIMEOUT_MS,
        help=f"Timeout per table page in milliseconds (default: {DEFAULT_TABLE_TIMEOUT_MS}).",
    )


def _print_table_summary(summary) -> None:
    line = f"Tables: updated {summary['fetched']}/{summary['total']} tables"
    if summary["failed"]:
        print(f"{line} ({summary['failed']} failed).")
        for name in summary["failed_tournaments"]:
            print(f"  Failed: {name}", file=sys.stderr)
    else:
        print(f"{line}.")


def _run(args: argparse.Namespace, data_dir: DataDirectory) -> int:
    if args.command == "refresh":
        teams = load_config(args.config)
        summary = refresh_schedules(
            teams,
            data_dir,
            max_attempts=args.max_attempts,
            backoff_ms=args.backoff_ms,
            timeout_ms=args.timeout_ms,
        )
        print(
            "Fixture list updated:",
            f"{summary['matches_count']} matches from {summary['teams_count']} teams",
            f"-> {data_dir.matches_path}",
        )
        if summary["failed_teams"]:
            print("Failed teams:", ", ".join(summary["failed_teams"]), file=sys.stderr)
            return 1
        return 0

    if args.command == "update-results":
        summary = update_results(
            data_dir, delay_ms=args.delay_ms, timeout_ms=args.timeout_ms
        )
        print(f"Results: updated {summary['updated']}/{summary['checked']} matches.")
        affected = summary["affected_tournaments"]
        if not affected:
            print("No tables need refreshing.")
            return 0
        _print_table_summary(
            refresh_league_tables(
                data_dir,
                affected,
                delay_ms=args.table_delay_ms,
                timeout_ms=args.table_timeout_ms,
            )
        )
        return 0

    if args.command == "combine":
        played = build_played_matches(data_dir)
        print(f"Played matches: {len(played)} -> {data_dir.played_matches_path}")
        return 0

    if args.command == "aggregate-players":
        payload = build_player_aggregates(data_dir)
        print(
            f"Player aggregates: {len(payload['aggregates'])} players",
            f"-> {data_dir.player_aggregates_path}",
        )
        return 0

    if args.command == "fetch-tables":
        summary = refresh_league_tables(
            data_dir,
            delay_ms=args.table_delay_ms,
            timeout_ms=args.table_timeout_ms,
        )
        _print_table_summary(summary)
        return 1 if summary["failed"] else 0

    raise ValueError(f"Unknown command {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return _run(args, DataDirectory(args.data_dir))
    except (ValueError, FileNotFoundError) as exc:
        # Bad config, invalid fetch options or a missing data file.
        print(exc, file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
