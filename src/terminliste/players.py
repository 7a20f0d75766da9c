"""Fold per-match box scores into one record per player."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

UNKNOWN_TOURNAMENT = "Ukjent"


def _jersey_number(value: Any) -> Optional[int]:
    """Shirt numbers like ``"7A"`` are treated as unknown."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class PlayerMatchStats:
    player_id: str
    player_name: str
    jersey_number: Optional[int] = None
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayerMatchStats":
        return cls(
            player_id=str(payload["playerId"]),
            player_name=str(payload.get("playerName") or ""),
            jersey_number=_jersey_number(payload.get("jerseyNumber")),
            goals=int(payload.get("goals") or 0),
            penalty_goals=int(payload.get("penaltyGoals") or 0),
            two_minutes=int(payload.get("twoMinutes") or 0),
            yellow_cards=int(payload.get("yellowCards") or 0),
            red_cards=int(payload.get("redCards") or 0),
        )


@dataclass(frozen=True)
class MatchPlayerData:
    match_id: str
    match_date: str
    home_team_id: str
    home_team_name: str
    away_team_id: str
    away_team_name: str
    home_team_stats: Tuple[PlayerMatchStats, ...] = ()
    away_team_stats: Tuple[PlayerMatchStats, ...] = ()
    tournament: Optional[str] = None
    match_url: Optional[str] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MatchPlayerData":
        return cls(
            match_id=str(payload["matchId"]),
            match_date=str(payload.get("matchDate") or ""),
            home_team_id=str(payload["homeTeamId"]),
            home_team_name=str(payload.get("homeTeamName") or ""),
            away_team_id=str(payload["awayTeamId"]),
            away_team_name=str(payload.get("awayTeamName") or ""),
            home_team_stats=tuple(
                PlayerMatchStats.from_dict(entry)
                for entry in payload.get("homeTeamStats") or ()
            ),
            away_team_stats=tuple(
                PlayerMatchStats.from_dict(entry)
                for entry in payload.get("awayTeamStats") or ()
            ),
            tournament=payload.get("tournament"),
            match_url=payload.get("matchUrl"),
            home_score=payload.get("homeScore"),
            away_score=payload.get("awayScore"),
        )


@dataclass(frozen=True)
class Player:
    player_id: str
    name: str
    team_ids: Tuple[str, ...]
    team_names: Tuple[str, ...]
    primary_team_id: str
    primary_team_name: str
    jersey_number: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": self.player_id,
            "name": self.name,
            "teamIds": list(self.team_ids),
            "teamNames": list(self.team_names),
            "primaryTeamId": self.primary_team_id,
            "primaryTeamName": self.primary_team_name,
        }
        if self.jersey_number is not None:
            payload["jerseyNumber"] = self.jersey_number
        return payload


@dataclass(frozen=True)
class TournamentTotals:
    tournament: str
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    matches: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "tournament": self.tournament,
            "goals": self.goals,
            "penaltyGoals": self.penalty_goals,
            "twoMinutes": self.two_minutes,
            "yellowCards": self.yellow_cards,
            "redCards": self.red_cards,
            "matches": self.matches,
        }


@dataclass(frozen=True)
class PlayerAggregateStats:
    player: Player
    total_goals: int
    total_penalty_goals: int
    total_two_minutes: int
    total_yellow_cards: int
    total_red_cards: int
    matches_played: int
    by_tournament: Tuple[TournamentTotals, ...] = ()

    @property
    def goals_per_match(self) -> float:
        if self.matches_played == 0:
            return 0
        return round(self.total_goals / self.matches_played, 2)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "playerId": self.player.player_id,
            "playerName": self.player.name,
            "teamId": self.player.primary_team_id,
            "teamName": self.player.primary_team_name,
            "teamIds": list(self.player.team_ids),
            "teamNames": list(self.player.team_names),
            "totalGoals": self.total_goals,
            "totalPenaltyGoals": self.total_penalty_goals,
            "totalTwoMinutes": self.total_two_minutes,
            "totalYellowCards": self.total_yellow_cards,
            "totalRedCards": self.total_red_cards,
            "matchesPlayed": self.matches_played,
            "goalsPerMatch": self.goals_per_match,
            "byTournament": [entry.to_dict() for entry in self.by_tournament],
        }
        if self.player.jersey_number is not None:
            payload["jerseyNumber"] = self.player.jersey_number
        return payload


@dataclass
class _Counter:
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    matches: int = 0

    def add(self, stats: PlayerMatchStats) -> None:
        self.goals += stats.goals
        self.penalty_goals += stats.penalty_goals
        self.two_minutes += stats.two_minutes
        self.yellow_cards += stats.yellow_cards
        self.red_cards += stats.red_cards
        self.matches += 1


@dataclass
class _TeamAppearances:
    team_name: str
    matches: int = 0


@dataclass
class _PlayerState:
    name: str
    jersey_number: Optional[int]
    teams: Dict[str, _TeamAppearances] = field(default_factory=dict)
    totals: _Counter = field(default_factory=_Counter)
    by_tournament: Dict[str, _Counter] = field(default_factory=dict)


def _fold_side(
    players: Dict[str, _PlayerState],
    entries: Iterable[PlayerMatchStats],
    team_id: str,
    team_name: str,
    tournament: Optional[str],
) -> None:
    # Home and away entries both go through here; only the team binding differs.
    for entry in entries:
        state = players.get(entry.player_id)
        if state is None:
            state = _PlayerState(name=entry.player_name, jersey_number=entry.jersey_number)
            players[entry.player_id] = state
        if entry.jersey_number is not None:
            state.jersey_number = entry.jersey_number

        appearances = state.teams.get(team_id)
        if appearances is None:
            state.teams[team_id] = _TeamAppearances(team_name=team_name, matches=1)
        else:
            appearances.matches += 1

        state.totals.add(entry)
        tournament_name = UNKNOWN_TOURNAMENT if tournament is None else tournament
        state.by_tournament.setdefault(tournament_name, _Counter()).add(entry)


def _fold_match_stats(match_stats: Iterable[MatchPlayerData]) -> Dict[str, _PlayerState]:
    players: Dict[str, _PlayerState] = {}
    for match in match_stats:
        _fold_side(
            players,
            match.home_team_stats,
            match.home_team_id,
            match.home_team_name,
            match.tournament,
        )
        _fold_side(
            players,
            match.away_team_stats,
            match.away_team_id,
            match.away_team_name,
            match.tournament,
        )
    return players


def _build_player(player_id: str, state: _PlayerState) -> Player:
    team_ids: List[str] = []
    team_names: List[str] = []
    primary_id = ""
    primary_name = ""
    max_matches = 0
    for team_id, appearances in state.teams.items():
        team_ids.append(team_id)
        team_names.append(appearances.team_name)
        # Strictly greater: on a tie the team seen first stays primary.
        if appearances.matches > max_matches:
            max_matches = appearances.matches
            primary_id = team_id
            primary_name = appearances.team_name
    return Player(
        player_id=player_id,
        name=state.name,
        jersey_number=state.jersey_number,
        team_ids=tuple(team_ids),
        team_names=tuple(team_names),
        primary_team_id=primary_id,
        primary_team_name=primary_name,
    )


def rebuild_player_catalog(match_stats: Iterable[MatchPlayerData]) -> List[Player]:
    """One :class:`Player` per id, in order of first appearance."""
    players = _fold_match_stats(match_stats)
    return [_build_player(player_id, state) for player_id, state in players.items()]


def generate_player_aggregates(
    match_stats: Iterable[MatchPlayerData],
) -> List[PlayerAggregateStats]:
    """Season totals per player, highest scorer first."""
    players = _fold_match_stats(match_stats)
    aggregates: List[PlayerAggregateStats] = []
    for player_id, state in players.items():
        totals = state.totals
        aggregates.append(
            PlayerAggregateStats(
                player=_build_player(player_id, state),
                total_goals=totals.goals,
                total_penalty_goals=totals.penalty_goals,
                total_two_minutes=totals.two_minutes,
                total_yellow_cards=totals.yellow_cards,
                total_red_cards=totals.red_cards,
                matches_played=totals.matches,
                by_tournament=tuple(
                    TournamentTotals(
                        tournament=name,
                        goals=counter.goals,
                        penalty_goals=counter.penalty_goals,
                        two_minutes=counter.two_minutes,
                        yellow_cards=counter.yellow_cards,
                        red_cards=counter.red_cards,
                        matches=counter.matches,
                    )
                    for name, counter in state.by_tournament.items()
                ),
            )
        )
    aggregates.sort(key=lambda item: item.total_goals, reverse=True)
    return aggregates


def build_aggregates_payload(aggregates: Sequence[PlayerAggregateStats]) -> Dict[str, object]:
    return {
        "aggregates": [entry.to_dict() for entry in aggregates],
        "generatedAt": datetime.now(tz=timezone.utc).isoformat(),
    }


def filter_by_teams(
    aggregates: Sequence[PlayerAggregateStats], team_ids: Iterable[str]
) -> List[PlayerAggregateStats]:
    wanted = set(team_ids)
    return [
        entry
        for entry in aggregates
        if any(team_id in wanted for team_id in entry.player.team_ids)
    ]


def filter_by_tournament(
    aggregates: Sequence[PlayerAggregateStats], tournament: str
) -> List[PlayerAggregateStats]:
    """Restrict each player's totals to a single tournament."""
    filtered: List[PlayerAggregateStats] = []
    for entry in aggregates:
        stats = next(
            (item for item in entry.by_tournament if item.tournament == tournament),
            None,
        )
        if stats is None:
            continue
        filtered.append(
            replace(
                entry,
                total_goals=stats.goals,
                total_penalty_goals=stats.penalty_goals,
                total_two_minutes=stats.two_minutes,
                total_yellow_cards=stats.yellow_cards,
                total_red_cards=stats.red_cards,
                matches_played=stats.matches,
            )
        )
    return filtered


def load_match_stats(payload: Mapping[str, Any]) -> List[MatchPlayerData]:
    """Parse the ``matchStats`` list of a ``player-stats.json`` document."""
    return [MatchPlayerData.from_dict(entry) for entry in payload.get("matchStats") or ()]
