from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest
import requests

from terminliste import results
from terminliste.results import (
    MatchResult,
    affected_tournaments,
    apply_match_results,
    extract_match_id,
    extract_scores,
    fetch_match_result,
    fetch_match_results,
    needs_result_update,
)
from terminliste.schedule import FixtureRecord

MATCH_HTML = """
<div class="nameresult">
  <table><tr>
    <th class="small-4 text-center" style="background: #001E5F"><b>27</b></th>
    <th class="small-2 text-center">-</th>
    <th class="small-4 text-center" style="background: #001E5F"><b>22</b></th>
  </tr></table>
</div>
"""


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(results.time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


def _serve(pages):
    calls = []

    def fake_http_get(url, **kwargs):
        calls.append((url, kwargs))
        page = pages.get(url)
        if isinstance(page, Exception):
            raise page
        return SimpleNamespace(text=page)

    return fake_http_get, calls


def test_extract_match_id() -> None:
    assert extract_match_id("https://www.handball.no/kamp/?matchid=12345") == "12345"
    assert extract_match_id("https://www.handball.no/kamp/") is None
    assert extract_match_id("") is None
    assert extract_match_id(None) is None


def test_extract_scores_reads_first_two_bold_header_cells() -> None:
    assert extract_scores(MATCH_HTML) == (27, 22)
    assert extract_scores("<div>No scores here</div>") is None
    assert extract_scores('<th class="small-4 text-center"><b>30</b></th>') is None


def test_fetch_match_result_parses_score(monkeypatch) -> None:
    url = "https://www.handball.no/kamp/?matchid=12345"
    fake, calls = _serve({url: MATCH_HTML})
    monkeypatch.setattr(results, "http_get", fake)

    result = fetch_match_result(url)

    assert result == MatchResult(match_id="12345", home_score=27, away_score=22)
    assert result.result == "27-22"
    assert calls[0][1]["timeout_ms"] == 10000


def test_fetch_match_result_skips_network_without_match_id(monkeypatch) -> None:
    fake, calls = _serve({})
    monkeypatch.setattr(results, "http_get", fake)

    assert fetch_match_result("https://www.handball.no/kamp/") is None
    assert calls == []


def test_fetch_match_result_degrades_on_http_error(monkeypatch) -> None:
    url = "https://www.handball.no/kamp/?matchid=404"
    fake, _ = _serve({url: requests.HTTPError("404 Client Error")})
    monkeypatch.setattr(results, "http_get", fake)

    assert fetch_match_result(url) is None


def test_fetch_match_result_uses_custom_extractor(monkeypatch) -> None:
    url = "https://www.handball.no/kamp/?matchid=7"
    fake, _ = _serve({url: "<p>31:30</p>"})
    monkeypatch.setattr(results, "http_get", fake)

    result = fetch_match_result(url, extractor=lambda html: (31, 30))

    assert result is not None
    assert result.result == "31-30"


def test_fetch_match_results_keeps_partial_results(monkeypatch, sleeps) -> None:
    good = "https://www.handball.no/kamp/?matchid=1"
    broken = "https://www.handball.no/kamp/?matchid=2"
    empty = "https://www.handball.no/kamp/?matchid=3"
    fake, calls = _serve(
        {good: MATCH_HTML, broken: requests.ConnectionError("reset"), empty: "<p></p>"}
    )
    monkeypatch.setattr(results, "http_get", fake)
    progress = []

    collected = fetch_match_results(
        [good, broken, empty],
        on_progress=lambda current, total: progress.append((current, total)),
    )

    assert list(collected) == ["1"]
    assert collected["1"].home_score == 27
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert [url for url, _ in calls] == [good, broken, empty]
    assert sleeps == [0.3, 0.3]


def test_fetch_match_results_does_not_wait_after_single_url(monkeypatch, sleeps) -> None:
    url = "https://www.handball.no/kamp/?matchid=1"
    fake, _ = _serve({url: MATCH_HTML})
    monkeypatch.setattr(results, "http_get", fake)

    assert set(fetch_match_results([url], delay_ms=50)) == {"1"}
    assert sleeps == []


def test_fetch_match_results_reports_progress_before_each_fetch(monkeypatch, sleeps) -> None:
    urls = [
        "https://www.handball.no/kamp/?matchid=1",
        "https://www.handball.no/kamp/?matchid=2",
    ]
    events = []

    def fake_http_get(url, **kwargs):
        events.append(("fetch", url))
        return SimpleNamespace(text=MATCH_HTML)

    monkeypatch.setattr(results, "http_get", fake_http_get)

    fetch_match_results(
        urls, on_progress=lambda current, total: events.append(("progress", current, total))
    )

    assert events == [
        ("progress", 1, 2),
        ("fetch", urls[0]),
        ("progress", 2, 2),
        ("fetch", urls[1]),
    ]


def _fixture(**overrides) -> FixtureRecord:
    values = dict(
        match_id="410101001",
        date="14.09.2025",
        time="18:00",
        home_team="Fjellhammer",
        away_team="Oppsal",
        result="",
        tournament="Regionserien J14",
        match_url="https://www.handball.no/kamp/?matchid=1",
        tournament_url="https://www.handball.no/turnering/?turnid=9",
    )
    values.update(overrides)
    return FixtureRecord(**values)


def test_needs_result_update() -> None:
    now = datetime(2025, 9, 20, 12, 0)

    assert needs_result_update(_fixture(), now)
    assert needs_result_update(_fixture(result="-"), now)
    assert not needs_result_update(_fixture(result="27-22"), now)
    assert not needs_result_update(_fixture(match_url=""), now)
    assert not needs_result_update(_fixture(date="21.09.2025"), now)
    assert not needs_result_update(_fixture(date="sept"), now)


def test_apply_match_results_updates_matching_fixtures() -> None:
    fixtures = [
        _fixture(),
        _fixture(match_id="2", match_url="https://www.handball.no/kamp/?matchid=2"),
        _fixture(
            match_id="3",
            tournament="NM Cup",
            match_url="https://www.handball.no/kamp/?matchid=3",
            tournament_url="https://www.handball.no/turnering/?turnid=10",
        ),
    ]
    scraped = {
        "1": MatchResult(match_id="1", home_score=27, away_score=22),
        "3": MatchResult(match_id="3", home_score=20, away_score=20),
    }

    updated, summary = apply_match_results(fixtures, scraped)

    assert [fixture.result for fixture in updated] == ["27-22", "", "20-20"]
    assert fixtures[0].result == ""
    assert summary.has_changes
    payload = summary.to_dict()
    assert payload["noChanges"] is False
    assert payload["statsUpdated"] == []
    assert payload["resultsUpdated"][0] == {
        "kampnr": "410101001",
        "hjemmelag": "Fjellhammer",
        "bortelag": "Oppsal",
        "resultat": "27-22",
    }
    assert affected_tournaments(updated, summary) == {
        "https://www.handball.no/turnering/?turnid=9": "Regionserien J14"
    }
