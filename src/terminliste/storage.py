from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

from .schedule import Team

DEFAULT_DATA_DIR = Path("data")
DEFAULT_CONFIG_PATH = Path("config.json")


class ConfigError(ValueError):
    """The team configuration file is missing or malformed."""


@dataclass(frozen=True)
class DataDirectory:
    """Locations of every artefact the pipeline reads or writes."""

    root: Path = DEFAULT_DATA_DIR

    @property
    def matches_path(self) -> Path:
        return self.root / "terminliste.json"

    @property
    def metadata_path(self) -> Path:
        return self.root / "metadata.json"

    @property
    def match_index_path(self) -> Path:
        return self.root / "matchIndex.json"

    @property
    def tournament_matches_path(self) -> Path:
        return self.root / "tournament-matches.json"

    @property
    def played_matches_path(self) -> Path:
        return self.root / "played-matches.json"

    @property
    def player_stats_path(self) -> Path:
        return self.root / "player-stats.json"

    @property
    def player_aggregates_path(self) -> Path:
        return self.root / "player-aggregates.json"

    @property
    def players_path(self) -> Path:
        return self.root / "players.json"

    @property
    def update_summary_path(self) -> Path:
        return self.root / "update-summary.json"

    @property
    def tables_path(self) -> Path:
        return self.root / "tables.json"

    def raw_schedule_path(self, team_id: str) -> Path:
        return self.root / "raw" / f"{team_id}.json"


def write_json_atomic(path: Path, payload: Any) -> Path:
    """Replace ``path`` in one step so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)
    return path


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> List[Team]:
    try:
        payload = read_json(path)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to load config file {path}: {exc}") from exc
    teams_payload = payload.get("teams") if isinstance(payload, dict) else None
    if not isinstance(teams_payload, list):
        raise ConfigError(f"Config file {path} has no 'teams' list")
    teams: List[Team] = []
    for index, entry in enumerate(teams_payload):
        try:
            teams.append(Team.from_dict(entry))
        except (KeyError, TypeError, AttributeError) as exc:
            raise ConfigError(f"Invalid team entry #{index} in {path}: {exc}") from exc
    return teams
