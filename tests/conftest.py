from __future__ import annotations

import sys
from io import BytesIO
from pathlib import Path
from typing import Dict, List

import pandas as pd
import pytest


def pytest_configure() -> None:
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


FEED_ROWS: List[Dict[str, str]] = [
    {
        "Kampnr": "410101001",
        "Dato": "14.09.2025",
        "Tid": "18:00",
        "Turnering": "Regionserien J14",
        "Hjemmelag": "Fjellhammer",
        "Bortelag": "Oppsal",
        "H-B": "27-22",
        "Bane": "Fjellhammerhallen",
        "Kamp URL": "https://www.handball.no/system/kamper/kamp/?matchid=8512345",
    },
    {
        "Kampnr": "410101002",
        "Dato": "01.01.2025",
        "Tid": "09:00",
        "Turnering": "Regionserien J14",
        "Hjemmelag": "Oppsal",
        "Bortelag": "Fjellhammer",
        "H-B": "-",
        "Bane": "Oppsal Arena",
        "Kamp URL": "",
    },
]


@pytest.fixture
def feed_rows() -> List[Dict[str, str]]:
    return [dict(row) for row in FEED_ROWS]


@pytest.fixture
def workbook_bytes(feed_rows) -> bytes:
    buffer = BytesIO()
    pd.DataFrame(feed_rows).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()
