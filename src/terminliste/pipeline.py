"""Refresh jobs that turn remote data into the JSON artefacts under ``data/``."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .merge import PlayedMatch, combine_played_matches, parse_match_index, populate_match_urls
from .ordering import sort_matches_by_date
from .players import (
    build_aggregates_payload,
    generate_player_aggregates,
    load_match_stats,
    rebuild_player_catalog,
)
from .results import (
    DEFAULT_DELAY_MS,
    DEFAULT_RESULT_TIMEOUT_MS,
    UpdateSummary,
    affected_tournaments,
    apply_match_results,
    fetch_match_results,
    select_fixtures_needing_update,
)
from .schedule import (
    DEFAULT_BACKOFF_MS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_MS,
    FixtureRecord,
    ScheduleFetchError,
    Team,
    build_fixture_records,
    fetch_team_schedule,
    validate_fetch_options,
)
from .storage import DataDirectory, read_json, write_json_atomic
from .tables import (
    DEFAULT_TABLE_DELAY_MS,
    DEFAULT_TABLE_TIMEOUT_MS,
    LeagueTable,
    fetch_league_tables,
    league_tournaments,
    merge_tables,
)

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def load_fixtures(data_dir: DataDirectory) -> List[FixtureRecord]:
    return [FixtureRecord.from_dict(row) for row in read_json(data_dir.matches_path)]


def save_fixtures(
    data_dir: DataDirectory,
    fixtures: Sequence[FixtureRecord],
    *,
    now: datetime,
) -> Dict[str, object]:
    write_json_atomic(data_dir.matches_path, [fixture.to_dict() for fixture in fixtures])
    metadata = {
        "lastUpdated": now.isoformat(),
        "teamsCount": len({fixture.team for fixture in fixtures}),
        "matchesCount": len(fixtures),
    }
    write_json_atomic(data_dir.metadata_path, metadata)
    return metadata


def refresh_schedules(
    teams: Sequence[Team],
    data_dir: DataDirectory,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_ms: int = DEFAULT_BACKOFF_MS,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    now: Callable[[], datetime] = _utcnow,
) -> Dict[str, object]:
    """Fetch every team's fixture list, then store the sorted union.

    A team whose fetch fails is logged and contributes no rows; the failure
    is reported back in ``failed_teams``.
    """
    validate_fetch_options(max_attempts, backoff_ms, timeout_ms)
    match_index: Dict[str, str] = {}
    if data_dir.match_index_path.exists():
        match_index = parse_match_index(
            data_dir.match_index_path.read_text(encoding="utf-8")
        )

    fixtures: List[FixtureRecord] = []
    failed_teams: List[str] = []
    for team in teams:
        try:
            rows = fetch_team_schedule(
                team,
                max_attempts=max_attempts,
                backoff_ms=backoff_ms,
                timeout_ms=timeout_ms,
            )
        except ScheduleFetchError as exc:
            LOGGER.error("%s", exc)
            failed_teams.append(team.name)
            continue
        write_json_atomic(data_dir.raw_schedule_path(team.team_id), rows)
        team_fixtures = build_fixture_records(rows, team, match_links=match_index)
        LOGGER.info("%s: %d matches", team.name, len(team_fixtures))
        fixtures.extend(team_fixtures)

    fixtures, populated = populate_match_urls(fixtures, match_index)
    if populated:
        LOGGER.info("Filled %d match URLs from %s", populated, data_dir.match_index_path)

    sorted_fixtures = sort_matches_by_date(fixtures)
    metadata = save_fixtures(data_dir, sorted_fixtures, now=now())
    return {
        "matches_count": len(sorted_fixtures),
        "teams_count": len(teams),
        "failed_teams": failed_teams,
        "metadata": metadata,
    }


def update_results(
    data_dir: DataDirectory,
    *,
    delay_ms: int = DEFAULT_DELAY_MS,
    timeout_ms: int = DEFAULT_RESULT_TIMEOUT_MS,
    now: Callable[[], datetime] = _utcnow,
) -> Dict[str, object]:
    """Scrape scores for past fixtures that still lack one."""
    fixtures = load_fixtures(data_dir)
    current = now()
    # Fixture dates carry no timezone.
    pending = select_fixtures_needing_update(fixtures, current.replace(tzinfo=None))
    summary = UpdateSummary(timestamp=current.isoformat())

    if not pending:
        LOGGER.info("No matches need result updates.")
        write_json_atomic(data_dir.update_summary_path, summary.to_dict())
        return {
            "updated": 0,
            "checked": 0,
            "total": len(fixtures),
            "affected_tournaments": {},
        }

    for fixture in pending:
        LOGGER.info(
            "Pending: %s %s %s vs %s",
            fixture.date,
            fixture.time,
            fixture.home_team,
            fixture.away_team,
        )

    results = fetch_match_results(
        [fixture.match_url for fixture in pending],
        on_progress=lambda current_index, total: LOGGER.info(
            "Progress: %d/%d", current_index, total
        ),
        delay_ms=delay_ms,
        timeout_ms=timeout_ms,
    )
    updated_fixtures, summary = apply_match_results(fixtures, results, summary=summary)
    if summary.results_updated:
        save_fixtures(data_dir, updated_fixtures, now=current)
    write_json_atomic(data_dir.update_summary_path, summary.to_dict())

    return {
        "updated": len(summary.results_updated),
        "checked": len(pending),
        "total": len(fixtures),
        "affected_tournaments": affected_tournaments(updated_fixtures, summary),
    }


def build_played_matches(
    data_dir: DataDirectory,
    *,
    tournament_matches: Optional[Sequence[PlayedMatch]] = None,
) -> List[PlayedMatch]:
    """Merge tournament-sourced matches with played fixtures and store them."""
    if tournament_matches is None:
        tournament_matches = []
        if data_dir.tournament_matches_path.exists():
            tournament_matches = [
                PlayedMatch.from_dict(entry)
                for entry in read_json(data_dir.tournament_matches_path)
            ]
    played = combine_played_matches(tournament_matches, load_fixtures(data_dir))
    write_json_atomic(data_dir.played_matches_path, [match.to_dict() for match in played])
    return played


def build_player_aggregates(data_dir: DataDirectory) -> Dict[str, object]:
    """Rebuild ``players.json`` and ``player-aggregates.json`` from box scores."""
    match_stats = load_match_stats(read_json(data_dir.player_stats_path))
    players = rebuild_player_catalog(match_stats)
    write_json_atomic(data_dir.players_path, [player.to_dict() for player in players])
    payload = build_aggregates_payload(generate_player_aggregates(match_stats))
    write_json_atomic(data_dir.player_aggregates_path, payload)
    return payload


def refresh_league_tables(
    data_dir: DataDirectory,
    tournaments: Optional[Mapping[str, str]] = None,
    *,
    delay_ms: int = DEFAULT_TABLE_DELAY_MS,
    timeout_ms: int = DEFAULT_TABLE_TIMEOUT_MS,
) -> Dict[str, object]:
    """Fetch league tables and store them in ``tables.json``.

    Without ``tournaments`` every league in the fixture list is fetched and
    the file is rewritten. With a selection only those tables are replaced;
    the others already on disk are kept.
    """
    partial = bool(tournaments)
    if not partial:
        tournaments = league_tournaments(load_fixtures(data_dir))

    fetched = fetch_league_tables(tournaments, delay_ms=delay_ms, timeout_ms=timeout_ms)
    tables = [table for table in fetched.values() if table is not None]
    failed = [tournaments[url] for url, table in fetched.items() if table is None]

    if partial and data_dir.tables_path.exists():
        existing = [LeagueTable.from_dict(entry) for entry in read_json(data_dir.tables_path)]
        tables = merge_tables(existing, tables)
    write_json_atomic(data_dir.tables_path, [table.to_dict() for table in tables])
    for name in failed:
        LOGGER.warning("Table not updated: %s", name)

    return {
        "fetched": len(fetched) - len(failed),
        "failed": len(failed),
        "total": len(tournaments),
        "failed_tournaments": failed,
        "tables_count": len(tables),
    }
