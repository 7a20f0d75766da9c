from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .schedule import FixtureRecord


@dataclass(frozen=True)
class PlayedMatch:
    match_id: str
    match_url: str

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayedMatch":
        return cls(
            match_id=str(payload["matchId"]).strip(),
            match_url=str(payload["matchUrl"]),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"matchId": self.match_id, "matchUrl": self.match_url}


def has_valid_result(fixture: FixtureRecord) -> bool:
    result = (fixture.result or "").strip()
    return bool(result) and result != "-"


def combine_played_matches(
    tournament_matches: Iterable[PlayedMatch],
    fixtures: Iterable[FixtureRecord],
) -> List[PlayedMatch]:
    """Union of played matches keyed by match id.

    Tournament-sourced entries are inserted first and are never replaced;
    fixture rows only contribute ids not seen before, in feed order.
    """
    played: Dict[str, PlayedMatch] = {}
    for match in tournament_matches:
        played[match.match_id] = match

    for fixture in fixtures:
        if not has_valid_result(fixture):
            continue
        url = fixture.match_url
        if not url or not url.strip():
            continue
        match_id = fixture.match_id.strip()
        if match_id not in played:
            played[match_id] = PlayedMatch(match_id=match_id, match_url=url)

    return list(played.values())


def parse_match_index(text: str) -> Dict[str, str]:
    """Parse a ``matchIndex.json`` document into ``{kampnr: url}``.

    Both the flat layout and the older ``{kampnr: {"url": ..., "played": ...}}``
    layout are accepted; anything unreadable yields an empty index.
    """
    try:
        parsed = json.loads(text)
    except ValueError:
        return {}
    if not isinstance(parsed, dict) or not parsed:
        return {}

    first_value = next(iter(parsed.values()))
    index: Dict[str, str] = {}
    if _is_legacy_entry(first_value):
        for key, value in parsed.items():
            if _is_legacy_entry(value):
                index[key] = value["url"]
        return index

    for key, value in parsed.items():
        if isinstance(value, str):
            index[key] = value
    return index


def _is_legacy_entry(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("url"), str)


def populate_match_urls(
    fixtures: Sequence[FixtureRecord], index: Mapping[str, str]
) -> Tuple[List[FixtureRecord], int]:
    populated = 0
    records: List[FixtureRecord] = []
    for fixture in fixtures:
        url = index.get(fixture.match_id.strip())
        if not fixture.match_url and url:
            fixture = replace(fixture, match_url=url)
            populated += 1
        records.append(fixture)
    return records, populated
