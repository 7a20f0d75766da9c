"""Scrape final scores from handball.no match pages and apply them to fixtures."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import requests
from bs4 import BeautifulSoup

from .client import http_get
from .ordering import parse_match_date
from .schedule import FixtureRecord
from .tables import league_tournaments

LOGGER = logging.getLogger(__name__)

DEFAULT_RESULT_TIMEOUT_MS = 10000
DEFAULT_DELAY_MS = 300

HTML_ACCEPT_HEADER = {"Accept": "text/html,application/xhtml+xml"}

MATCH_ID_PATTERN = re.compile(r"matchid=(\d+)")
SCORE_CELL_SELECTOR = 'th[class="small-4 text-center"] > b'
SCORE_VALUE_PATTERN = re.compile(r"\d+")

ScoreExtractor = Callable[[str], Optional[Tuple[int, int]]]
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class MatchResult:
    """Score read directly from a match page."""

    match_id: str
    home_score: Optional[int]
    away_score: Optional[int]

    @property
    def result(self) -> str:
        if self.home_score is None or self.away_score is None:
            return ""
        return f"{self.home_score}-{self.away_score}"

    def to_dict(self) -> Dict[str, object]:
        return {
            "matchId": self.match_id,
            "homeScore": self.home_score,
            "awayScore": self.away_score,
            "result": self.result,
        }


def extract_match_id(url: Optional[str]) -> Optional[str]:
    if not isinstance(url, str) or not url:
        return None
    match = MATCH_ID_PATTERN.search(url)
    return match.group(1) if match else None


def extract_scores(html: str) -> Optional[Tuple[int, int]]:
    """Read home and away score from the bold header cells of a match page.

    The page layout is not versioned; this is the only place that knows it.
    """
    soup = BeautifulSoup(html, "html.parser")
    scores: List[int] = []
    for cell in soup.select(SCORE_CELL_SELECTOR):
        text = cell.get_text(strip=True)
        if SCORE_VALUE_PATTERN.fullmatch(text):
            scores.append(int(text))
        if len(scores) == 2:
            return scores[0], scores[1]
    return None


def fetch_match_result(
    url: str,
    *,
    timeout_ms: int = DEFAULT_RESULT_TIMEOUT_MS,
    extractor: ScoreExtractor = extract_scores,
) -> Optional[MatchResult]:
    match_id = extract_match_id(url)
    if not match_id:
        return None
    try:
        response = http_get(url, timeout_ms=timeout_ms, headers=HTML_ACCEPT_HEADER)
    except requests.RequestException as exc:
        LOGGER.warning("Failed to fetch %s: %s", url, exc)
        return None
    scores = extractor(response.text)
    if scores is None:
        LOGGER.info("No score found on %s", url)
        return None
    home_score, away_score = scores
    return MatchResult(match_id=match_id, home_score=home_score, away_score=away_score)


def fetch_match_results(
    urls: Sequence[str],
    *,
    on_progress: Optional[ProgressCallback] = None,
    delay_ms: int = DEFAULT_DELAY_MS,
    timeout_ms: int = DEFAULT_RESULT_TIMEOUT_MS,
    extractor: ScoreExtractor = extract_scores,
) -> Dict[str, MatchResult]:
    """Visit ``urls`` one after another and collect every score that resolves.

    A pause of ``delay_ms`` separates consecutive requests.
    """
    results: Dict[str, MatchResult] = {}
    total = len(urls)
    for position, url in enumerate(urls, start=1):
        if on_progress is not None:
            on_progress(position, total)
        result = fetch_match_result(url, timeout_ms=timeout_ms, extractor=extractor)
        if result is not None:
            results[result.match_id] = result
        if position < total:
            time.sleep(delay_ms / 1000)
    return results


def needs_result_update(fixture: FixtureRecord, now: datetime) -> bool:
    """True for a past fixture with a match page but no recorded score."""
    if fixture.result and fixture.result != "-":
        return False
    if not fixture.match_url:
        return False
    match_day = parse_match_date(fixture.date)
    if match_day is None:
        return False
    return match_day < now


def select_fixtures_needing_update(
    fixtures: Sequence[FixtureRecord], now: datetime
) -> List[FixtureRecord]:
    return [fixture for fixture in fixtures if needs_result_update(fixture, now)]


@dataclass(frozen=True)
class MatchUpdateInfo:
    match_id: str
    home_team: str
    away_team: str
    result: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "kampnr": self.match_id,
            "hjemmelag": self.home_team,
            "bortelag": self.away_team,
            "resultat": self.result,
        }


@dataclass
class UpdateSummary:
    timestamp: str = field(
        default_factory=lambda: datetime.now(tz=timezone.utc).isoformat()
    )
    results_updated: List[MatchUpdateInfo] = field(default_factory=list)
    # Box scores are collected by another job; the key stays in
    # update-summary.json because readers of that file expect it.
    stats_updated: List[MatchUpdateInfo] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.results_updated or self.stats_updated)

    def to_dict(self) -> Dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "resultsUpdated": [item.to_dict() for item in self.results_updated],
            "statsUpdated": [item.to_dict() for item in self.stats_updated],
            "noChanges": not self.has_changes,
        }


def apply_match_results(
    fixtures: Sequence[FixtureRecord],
    results: Dict[str, MatchResult],
    *,
    summary: Optional[UpdateSummary] = None,
) -> Tuple[List[FixtureRecord], UpdateSummary]:
    """Write scraped scores into the fixtures whose page URL they came from."""
    summary = summary if summary is not None else UpdateSummary()
    updated: List[FixtureRecord] = []
    for fixture in fixtures:
        match_id = extract_match_id(fixture.match_url)
        result = results.get(match_id) if match_id else None
        if result is None or not result.result:
            updated.append(fixture)
            continue
        updated.append(replace(fixture, result=result.result))
        summary.results_updated.append(
            MatchUpdateInfo(
                match_id=fixture.match_id,
                home_team=fixture.home_team,
                away_team=fixture.away_team,
                result=result.result,
            )
        )
        LOGGER.info(
            "Updated %s vs %s = %s", fixture.home_team, fixture.away_team, result.result
        )
    return updated, summary


def affected_tournaments(
    fixtures: Sequence[FixtureRecord], summary: UpdateSummary
) -> Dict[str, str]:
    """League tables (URL -> name) touched by the updated results."""
    changed = {info.match_id for info in summary.results_updated}
    return league_tournaments(fixture for fixture in fixtures if fixture.match_id in changed)
