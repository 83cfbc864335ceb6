from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pogonode.core.refresh_policy import should_refresh_map
from pogonode.models.settings_model import MapSettings

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

TUNABLES = MapSettings(
    get_map_objects_min_refresh_seconds=10,
    get_map_objects_max_refresh_seconds=30,
    get_map_objects_min_distance_meters=10,
)


def _at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def test_never_refreshed_always_refreshes() -> None:
    assert should_refresh_map(None, T0, 0.0, TUNABLES) is True


@pytest.mark.parametrize(
    "elapsed, distance, expected",
    [
        (5, 100.0, False),   # under min interval, however far we moved
        (10, 100.0, False),  # exactly min: strict comparison
        (15, 5.0, False),    # between min and max, not far enough
        (15, 10.0, False),   # exactly min distance: strict comparison
        (15, 10.5, True),    # between min and max, moved enough
        (30, 0.0, False),    # exactly max: strict comparison
        (31, 0.0, True),     # over max, even standing still
    ],
)
def test_hysteresis(elapsed, distance, expected) -> None:
    assert should_refresh_map(T0, _at(elapsed), distance, TUNABLES) is expected


def test_defaults_apply_without_server_settings() -> None:
    assert should_refresh_map(T0, _at(31), 0.0) is True
    assert should_refresh_map(T0, _at(20), 0.0) is False


def test_server_tunables_are_honoured() -> None:
    slow = MapSettings(
        get_map_objects_min_refresh_seconds=60,
        get_map_objects_max_refresh_seconds=120,
        get_map_objects_min_distance_meters=50,
    )
    assert should_refresh_map(T0, _at(90), 40.0, slow) is False
    assert should_refresh_map(T0, _at(90), 60.0, slow) is True
    assert should_refresh_map(T0, _at(121), 0.0, slow) is True
