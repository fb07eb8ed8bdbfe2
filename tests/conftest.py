from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import pytest


SAMPLE_CSV = """statecode,countycode,year,state,county,uninsured,income
6,1,2015,California,Alameda,5,
6,1,2016,California,Alameda,,70000
6,1,2017,California,Alameda,8,
1,3,2016,Alabama,Baldwin,,50000
1,3,2017,Alabama,Baldwin,,
"""


@pytest.fixture
def sample_csv(tmp_path: Path) -> Path:
    path = tmp_path / "counties.csv"
    path.write_text(SAMPLE_CSV)
    return path


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Stands in for requests.Session against the Datawrapper endpoints."""

    def __init__(self, overrides: Optional[Dict[str, object]] = None, chart_id: str = "Ab1Cd") -> None:
        self.headers = {"Authorization": "Bearer secret-token"}
        self.calls = []
        self.chart_id = chart_id
        self.overrides = overrides or {}

    def _step(self, method: str, url: str) -> str:
        if method == "POST" and url.endswith("/publish"):
            return "publish"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "upload"
        return "configure"

    def request(self, method: str, url: str, timeout=None, **kwargs):
        step = self._step(method, url)
        self.calls.append((step, method, url, kwargs))
        if step in self.overrides:
            result = self.overrides[step]
            if isinstance(result, Exception):
                raise result
            return result
        if step == "create":
            return FakeResponse(201, {"id": self.chart_id})
        if step == "publish":
            return FakeResponse(200, {"data": {"publicUrl": f"https://datawrapper.dwcdn.net/{self.chart_id}/1/"}})
        return FakeResponse(200, {}, text="")

    def close(self) -> None:
        pass

    @property
    def steps(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse
