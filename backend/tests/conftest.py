from pathlib import Path

import pytest

from backend.quota.config import Settings
from backend.quota.models import Credential
from backend.tests.fakes import FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(data_file_path=tmp_path / "data" / "quotas.json")


@pytest.fixture()
def valid_credential(clock: FakeClock) -> Credential:
    return Credential(
        access_token="access-1",
        refresh_token="refresh-1",
        timestamp=clock.now,
        expires_in=3600,
    )
