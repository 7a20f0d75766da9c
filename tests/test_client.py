from __future__ import annotations

import pytest
import requests

from terminliste import client


class _FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


def test_http_get_sends_user_agent_and_timeout(monkeypatch) -> None:
    captured = {}

    def fake_get(url, **kwargs):
        captured.update(kwargs, url=url)
        return _FakeResponse(200)

    monkeypatch.setattr(client.requests, "get", fake_get)

    response = client.http_get(
        "https://www.handball.no/kamp/?matchid=1",
        timeout_ms=2500,
        headers={"Accept": "text/html"},
    )

    assert response.status_code == 200
    assert captured["timeout"] == 2.5
    assert captured["headers"]["User-Agent"].startswith("Mozilla/5.0 (compatible; TerminlisteBot")
    assert captured["headers"]["Accept"] == "text/html"


def test_http_get_raises_for_error_status(monkeypatch) -> None:
    calls = []

    def fake_get(url, **kwargs):
        calls.append(url)
        return _FakeResponse(503)

    monkeypatch.setattr(client.requests, "get", fake_get)

    with pytest.raises(requests.HTTPError):
        client.http_get("https://www.handball.no/", timeout_ms=1000)
    assert len(calls) == 1
