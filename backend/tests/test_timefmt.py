import pytest

from backend.quota.services.timefmt import UNKNOWN_RESET_TIME, localize


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-01-01T00:00:00Z", "01-01 08:00"),
        ("2024-06-01T12:00:00Z", "06-01 20:00"),
        ("2024-12-31T20:30:00Z", "01-01 04:30"),
        ("2024-03-10T10:15:00+02:00", "03-10 16:15"),
        ("2024-03-10T10:15:00", "03-10 18:15"),
        (0, "01-01 08:00"),
        ("2024-01-01T00:00:00.5Z", "01-01 08:00"),
        ("2024-01-01T00:59:59.123456789Z", "01-01 08:59"),
        ("2024-01-01T00:00:00.12+00:00", "01-01 08:00"),
    ],
)
def test_localize_applies_display_offset(raw, expected):
    assert localize(raw) == expected


def test_localize_custom_offset():
    assert localize("2024-01-01T00:00:00Z", offset_hours=0) == "01-01 00:00"
    assert localize("2024-01-01T03:00:00Z", offset_hours=-5) == "12-31 22:00"


@pytest.mark.parametrize("raw", [None, "", "not a date", "2024-13-45T99:00:00Z", True, {"t": 1}])
def test_localize_malformed_returns_sentinel(raw):
    assert localize(raw) == UNKNOWN_RESET_TIME
