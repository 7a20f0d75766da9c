"""Single bounded-timeout HTTP GET used by every fetcher in the package."""

from __future__ import annotations

from typing import Dict, Optional

import requests

BASE_URL = "https://www.handball.no"

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; TerminlisteBot/1.0)"
}


def http_get(
    url: str,
    *,
    timeout_ms: int,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
) -> requests.Response:
    """Issue exactly one GET request.

    Non-2xx responses raise ``requests.HTTPError``; retrying is left to the
    caller.
    """
    merged_headers = dict(REQUEST_HEADERS)
    if headers:
        merged_headers.update(headers)
    response = requests.get(
        url,
        timeout=timeout_ms / 1000,
        headers=merged_headers,
        params=params,
    )
    response.raise_for_status()
    return response
