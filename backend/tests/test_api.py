import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.quota.config import Settings
from backend.quota.errors import UpstreamError
from backend.quota.main import create_app
from backend.tests.fakes import FakeFetcher, FakeRefresher, FakeClock

CREDENTIAL = {"access_token": "", "refresh_token": "refresh-1"}


def _client(tmp_path: Path, fetcher: FakeFetcher) -> TestClient:
    settings = Settings(data_file_path=tmp_path / "quotas.json")
    app = create_app(settings, fetcher=fetcher, refresher=FakeRefresher(FakeClock()))
    return TestClient(app)


def test_health(tmp_path: Path):
    with _client(tmp_path, FakeFetcher()) as c:
        r = c.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_get_quotas_returns_camel_case(tmp_path: Path):
    fetcher = FakeFetcher({"modelA": {"remaining": 10, "resetTimeRaw": "2024-06-01T12:00:00Z"}})
    with _client(tmp_path, fetcher) as c:
        r = c.post("/api/quotas/cred1", json=CREDENTIAL)

    assert r.status_code == 200
    body = r.json()
    assert body["models"] == {
        "modelA": {"remaining": 10, "resetTime": "06-01 20:00", "resetTimeRaw": "2024-06-01T12:00:00Z"}
    }
    assert isinstance(body["lastUpdated"], int)


def test_get_quotas_without_data_is_bad_gateway(tmp_path: Path):
    fetcher = FakeFetcher(error=UpstreamError("upstream down"))
    with _client(tmp_path, fetcher) as c:
        r = c.post("/api/quotas/cred1", json=CREDENTIAL)

    assert r.status_code == 502
    assert "upstream down" in r.json()["detail"]


def test_get_quotas_validation_error(tmp_path: Path):
    with _client(tmp_path, FakeFetcher()) as c:
        r = c.post("/api/quotas/cred1", json={"access_token": "x"})
    assert r.status_code == 422


def test_store_flushed_on_shutdown(tmp_path: Path):
    with _client(tmp_path, FakeFetcher()):
        pass

    saved = json.loads((tmp_path / "quotas.json").read_text(encoding="utf-8"))
    assert saved["quotas"] == {}
    assert "lastCleanup" in saved["meta"]
