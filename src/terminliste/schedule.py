from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import date, datetime
from datetime import time as dt_time
from io import BytesIO
from typing import Any, Dict, List, Mapping, Optional, Sequence
from zipfile import BadZipFile

import pandas as pd
import requests

from .client import BASE_URL, http_get

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_MS = 500
DEFAULT_TIMEOUT_MS = 15000
MIN_TIMEOUT_MS = 100

SPREADSHEET_ACCEPT_HEADER = {
    "Accept": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet,"
        "application/vnd.ms-excel,*/*"
    )
}

RESULT_PLACEHOLDERS = {"", "-"}


class ScheduleFetchError(RuntimeError):
    """Raised once every attempt to download a team schedule has failed."""


@dataclass(frozen=True)
class Team:
    name: str
    team_id: str
    season_id: str
    color: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Team":
        return cls(
            name=str(payload["name"]).strip(),
            team_id=str(payload["lagid"]).strip(),
            season_id=str(payload["seasonId"]).strip(),
            color=payload.get("color"),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "name": self.name,
            "lagid": self.team_id,
            "seasonId": self.season_id,
            "color": self.color,
        }


@dataclass(frozen=True)
class FixtureRecord:
    """One row of a team's fixture list, scheduled or played."""

    match_id: str
    date: str
    time: str
    home_team: str
    away_team: str
    result: str = ""
    tournament: str = ""
    venue: str = ""
    team: str = ""
    attendance: str = ""
    organizer: str = ""
    match_url: str = ""
    home_team_url: str = ""
    away_team_url: str = ""
    tournament_url: str = ""

    @property
    def is_played(self) -> bool:
        return self.result.strip() not in RESULT_PLACEHOLDERS

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        *,
        team: str = "",
    ) -> "FixtureRecord":
        """Build a record from a feed row or a persisted ``terminliste.json`` entry."""
        return cls(
            match_id=_cell_text(row.get("Kampnr")),
            date=_cell_text(row.get("Dato")),
            time=_cell_text(row.get("Tid")),
            home_team=_cell_text(row.get("Hjemmelag")),
            away_team=_cell_text(row.get("Bortelag")),
            result=_cell_text(row.get("H-B")),
            tournament=_cell_text(row.get("Turnering")),
            venue=_cell_text(row.get("Bane")),
            team=_cell_text(row.get("Lag")) or team,
            attendance=_cell_text(row.get("Tilskuere")),
            organizer=_cell_text(row.get("Arrangør")),
            match_url=_cell_text(row.get("Kamp URL")),
            home_team_url=_cell_text(row.get("Hjemmelag URL")),
            away_team_url=_cell_text(row.get("Bortelag URL")),
            tournament_url=_cell_text(row.get("Turnering URL")),
        )

    from_dict = from_row

    def to_dict(self) -> Dict[str, object]:
        return {
            "Lag": self.team,
            "Dato": self.date,
            "Tid": self.time,
            "Kampnr": self.match_id,
            "Hjemmelag": self.home_team,
            "Bortelag": self.away_team,
            "H-B": self.result,
            "Bane": self.venue,
            "Tilskuere": _attendance_value(self.attendance),
            "Arrangør": self.organizer,
            "Turnering": self.tournament,
            "Kamp URL": self.match_url,
            "Hjemmelag URL": self.home_team_url,
            "Bortelag URL": self.away_team_url,
            "Turnering URL": self.tournament_url,
        }


def _cell_text(value: Any) -> str:
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if isinstance(value, datetime):
        # Excel stores some times as full timestamps; a midnight value is a date.
        if value.hour or value.minute:
            return value.strftime("%H:%M")
        return value.strftime("%d.%m.%Y")
    if isinstance(value, date):
        return value.strftime("%d.%m.%Y")
    if isinstance(value, dt_time):
        return value.strftime("%H:%M")
    return str(value).strip()


def _attendance_value(raw: str) -> object:
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return raw


def build_schedule_url(team_id: str, season_id: str) -> str:
    return f"{BASE_URL}/AjaxData/TerminlisteLag?id={team_id}&seasonId={season_id}"


def parse_schedule_workbook(content: bytes) -> List[Dict[str, str]]:
    """Read the first sheet of an Excel payload into row dictionaries."""
    frame = pd.read_excel(BytesIO(content), sheet_name=0, engine="openpyxl")
    frame = frame.rename(columns={col: str(col).strip() for col in frame.columns})
    rows: List[Dict[str, str]] = []
    for record in frame.to_dict(orient="records"):
        rows.append({str(key): _cell_text(value) for key, value in record.items()})
    return rows


def validate_fetch_options(max_attempts: int, backoff_ms: int, timeout_ms: int) -> None:
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    if backoff_ms < 0:
        raise ValueError(f"backoff_ms must not be negative, got {backoff_ms}")
    if timeout_ms < MIN_TIMEOUT_MS:
        raise ValueError(
            f"timeout_ms must be at least {MIN_TIMEOUT_MS}, got {timeout_ms}"
        )


def fetch_team_schedule(
    team: Team,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_ms: int = DEFAULT_BACKOFF_MS,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    url: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Download and parse the fixture list of ``team``.

    Attempts are strictly sequential with a linear backoff of
    ``backoff_ms * attempt`` between them. Either the complete sheet is
    returned or :class:`ScheduleFetchError` is raised.
    """
    validate_fetch_options(max_attempts, backoff_ms, timeout_ms)
    schedule_url = url or build_schedule_url(team.team_id, team.season_id)

    for attempt in range(1, max_attempts + 1):
        try:
            response = http_get(
                schedule_url,
                timeout_ms=timeout_ms,
                headers=SPREADSHEET_ACCEPT_HEADER,
            )
        except requests.RequestException as exc:
            if attempt == max_attempts:
                raise ScheduleFetchError(
                    f"Failed to fetch schedule for team {team.name} ({team.team_id}) "
                    f"after {attempt} attempt(s): {exc}"
                ) from exc
            wait_ms = backoff_ms * attempt
            LOGGER.warning(
                "Schedule fetch for %s failed on attempt %d/%d (%s); retrying in %d ms",
                team.name,
                attempt,
                max_attempts,
                exc,
                wait_ms,
            )
            time.sleep(wait_ms / 1000)
            continue

        try:
            rows = parse_schedule_workbook(response.content)
        except (ValueError, BadZipFile) as exc:
            raise ScheduleFetchError(
                f"Failed to fetch schedule for team {team.name} ({team.team_id}): "
                f"unreadable spreadsheet ({exc})"
            ) from exc
        LOGGER.debug("Fetched %d schedule rows for %s", len(rows), team.name)
        return rows

    raise ScheduleFetchError(  # pragma: no cover - loop always returns or raises
        f"Failed to fetch schedule for team {team.name} ({team.team_id})"
    )


def build_fixture_records(
    rows: Sequence[Mapping[str, Any]],
    team: Team,
    *,
    match_links: Optional[Mapping[str, str]] = None,
    tournament_links: Optional[Mapping[str, str]] = None,
) -> List[FixtureRecord]:
    """Normalise raw feed rows for ``team``, filling in known links."""
    links = match_links or {}
    tournaments = tournament_links or {}
    records: List[FixtureRecord] = []
    for row in rows:
        record = FixtureRecord.from_row(row, team=team.name)
        if not record.match_id:
            continue
        updates: Dict[str, str] = {}
        if not record.match_url and record.match_id in links:
            updates["match_url"] = links[record.match_id]
        if not record.tournament_url and record.tournament in tournaments:
            updates["tournament_url"] = tournaments[record.tournament]
        if updates:
            record = replace(record, **updates)
        records.append(record)
    return records
