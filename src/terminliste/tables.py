"""League standings scraped from handball.no tournament pages."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import requests
from bs4 import BeautifulSoup

from .client import http_get
from .schedule import FixtureRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_TABLE_TIMEOUT_MS = 15000
DEFAULT_TABLE_DELAY_MS = 500
UNKNOWN_TOURNAMENT_NAME = "Ukjent turnering"
TOURNAMENT_TITLE_PREFIX = "Turnering,"

HTML_ACCEPT_HEADER = {"Accept": "text/html,application/xhtml+xml"}

LEADING_NUMBER_PATTERN = re.compile(r"\s*(\d+)")
GOALS_PATTERN = re.compile(r"\s*(\d+)\s*-\s*(\d+)")


@dataclass(frozen=True)
class TableRow:
    position: int
    team: str
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    points: int

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TableRow":
        return cls(
            position=int(payload["position"]),
            team=str(payload["team"]),
            played=int(payload.get("played") or 0),
            won=int(payload.get("won") or 0),
            drawn=int(payload.get("drawn") or 0),
            lost=int(payload.get("lost") or 0),
            goals_for=int(payload.get("goalsFor") or 0),
            goals_against=int(payload.get("goalsAgainst") or 0),
            points=int(payload.get("points") or 0),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "position": self.position,
            "team": self.team,
            "played": self.played,
            "won": self.won,
            "drawn": self.drawn,
            "lost": self.lost,
            "goalsFor": self.goals_for,
            "goalsAgainst": self.goals_against,
            "points": self.points,
        }


@dataclass(frozen=True)
class LeagueTable:
    tournament_name: str
    tournament_url: str
    rows: Tuple[TableRow, ...]
    updated_at: str

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LeagueTable":
        return cls(
            tournament_name=str(payload.get("tournamentName") or ""),
            tournament_url=str(payload["tournamentUrl"]),
            rows=tuple(TableRow.from_dict(row) for row in payload.get("rows") or []),
            updated_at=str(payload.get("updatedAt") or ""),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "tournamentName": self.tournament_name,
            "tournamentUrl": self.tournament_url,
            "rows": [row.to_dict() for row in self.rows],
            "updatedAt": self.updated_at,
        }


def is_cup(tournament: str) -> bool:
    return "cup" in tournament.lower()


def league_tournaments(fixtures: Iterable[FixtureRecord]) -> Dict[str, str]:
    """Tournament URL -> name for every league the fixtures belong to; cups have no table."""
    tournaments: Dict[str, str] = {}
    for fixture in fixtures:
        if not fixture.tournament_url or not fixture.tournament:
            continue
        if not is_cup(fixture.tournament):
            tournaments[fixture.tournament_url] = fixture.tournament
    return tournaments


def _tournament_name(soup: BeautifulSoup) -> str:
    title = soup.title.get_text(strip=True) if soup.title else ""
    if not title:
        return UNKNOWN_TOURNAMENT_NAME
    name = title.split("|")[0].strip()
    if name.startswith(TOURNAMENT_TITLE_PREFIX):
        name = name[len(TOURNAMENT_TITLE_PREFIX):].strip()
    return name or UNKNOWN_TOURNAMENT_NAME


def _leading_int(text: str) -> Optional[int]:
    match = LEADING_NUMBER_PATTERN.match(text)
    return int(match.group(1)) if match else None


def _parse_row(cells: Sequence[Any]) -> Optional[TableRow]:
    if len(cells) < 8 or "small-1" not in (cells[0].get("class") or []):
        return None
    link = cells[1].find("a")
    if link is None:
        return None
    team = link.get_text(strip=True)
    numbers = [_leading_int(cells[index].get_text()) for index in (0, 2, 3, 4, 5, 7)]
    goals = GOALS_PATTERN.match(cells[6].get_text())
    if not team or goals is None or any(value is None for value in numbers):
        return None
    position, played, won, drawn, lost, points = numbers
    return TableRow(
        position=position,
        team=team,
        played=played,
        won=won,
        drawn=drawn,
        lost=lost,
        goals_for=int(goals.group(1)),
        goals_against=int(goals.group(2)),
        points=points,
    )


def parse_league_table(
    html: str,
    tournament_url: str,
    *,
    now: Optional[datetime] = None,
) -> Optional[LeagueTable]:
    """Read the standings of a tournament page.

    Rows are ``position | team | played | won | drawn | lost | goals | points``;
    a team listed twice (the page repeats the table for small screens) is
    kept once. Returns ``None`` when the page holds no standings.
    """
    soup = BeautifulSoup(html, "html.parser")
    rows: List[TableRow] = []
    seen_teams = set()
    for tr in soup.find_all("tr"):
        row = _parse_row(tr.find_all("td", recursive=False))
        if row is None or row.team in seen_teams:
            continue
        seen_teams.add(row.team)
        rows.append(row)
    if not rows:
        return None
    stamp = now if now is not None else datetime.now(tz=timezone.utc)
    return LeagueTable(
        tournament_name=_tournament_name(soup),
        tournament_url=tournament_url,
        rows=tuple(rows),
        updated_at=stamp.isoformat(),
    )


def fetch_league_table(
    tournament_url: str,
    *,
    timeout_ms: int = DEFAULT_TABLE_TIMEOUT_MS,
    now: Optional[datetime] = None,
) -> Optional[LeagueTable]:
    try:
        response = http_get(tournament_url, timeout_ms=timeout_ms, headers=HTML_ACCEPT_HEADER)
    except requests.RequestException as exc:
        LOGGER.warning("Failed to fetch %s: %s", tournament_url, exc)
        return None
    return parse_league_table(response.text, tournament_url, now=now)


def fetch_league_tables(
    tournaments: Mapping[str, str],
    *,
    delay_ms: int = DEFAULT_TABLE_DELAY_MS,
    timeout_ms: int = DEFAULT_TABLE_TIMEOUT_MS,
) -> Dict[str, Optional[LeagueTable]]:
    """Fetch each tournament's table in turn; a failed one maps to ``None``."""
    tables: Dict[str, Optional[LeagueTable]] = {}
    total = len(tournaments)
    for position, (url, name) in enumerate(tournaments.items(), start=1):
        LOGGER.info("Fetching table for %s", name)
        table = fetch_league_table(url, timeout_ms=timeout_ms)
        if table is None:
            LOGGER.warning("No table found for %s", name)
        else:
            LOGGER.info("%s: %d teams", name, len(table.rows))
        tables[url] = table
        if position < total:
            time.sleep(delay_ms / 1000)
    return tables


def merge_tables(
    existing: Sequence[LeagueTable], fetched: Sequence[LeagueTable]
) -> List[LeagueTable]:
    """Keep stored tables that were not refetched, then append the fresh ones."""
    refreshed = {table.tournament_url for table in fetched}
    kept = [table for table in existing if table.tournament_url not in refreshed]
    return kept + list(fetched)
