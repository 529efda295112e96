"""Tests for route distance, walking time and climax detection."""

from types import SimpleNamespace

import pytest

from services.creator.app import geometry


def _scene(lat: float, lng: float, role: str = "") -> SimpleNamespace:
    return SimpleNamespace(lat=lat, lng=lng, scene_role=role)


def test_distance_tokyo_to_osaka_is_about_400_km() -> None:
    km = geometry.distance((35.6812, 139.7671), (34.7025, 135.4959))
    assert 395 < km < 410


def test_distance_of_identical_points_is_zero() -> None:
    assert geometry.distance((10.0, 20.0), (10.0, 20.0)) == 0.0


def test_distance_is_symmetric() -> None:
    pairs = [
        ((35.6812, 139.7671), (34.7025, 135.4959)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
        ((0.0, 179.9), (0.0, -179.9)),
    ]
    for a, b in pairs:
        assert geometry.distance(a, b) == pytest.approx(geometry.distance(b, a))


def test_antipodal_distance_is_half_circumference() -> None:
    km = geometry.distance((0.0, 0.0), (0.0, 180.0))
    assert km == pytest.approx(geometry.EARTH_RADIUS_KM * 3.141592653589793, rel=1e-6)


def test_walking_minutes_never_below_one() -> None:
    assert geometry.walking_minutes(0.0) == 1
    assert geometry.walking_minutes(0.01) == 1
    assert geometry.walking_minutes(4.5) == 60


def test_route_metrics_with_fewer_than_two_scenes() -> None:
    assert geometry.route_metrics([]) == geometry.RouteMetrics()
    assert geometry.route_metrics([_scene(1, 1)]).total_minutes == 0


def test_route_metrics_sums_per_leg_minutes() -> None:
    scenes = [_scene(35.0, 139.0), _scene(35.0, 139.0), _scene(35.01, 139.0)]
    metrics = geometry.route_metrics(scenes)
    assert len(metrics.segment_minutes) == 2
    assert metrics.segment_minutes[0] == 1
    assert metrics.total_minutes == sum(metrics.segment_minutes)
    assert metrics.total_km == pytest.approx(geometry.distance(scenes[1], scenes[2]))


@pytest.mark.parametrize(
    "role, expected",
    [
        ("turning_point", True),
        ("Turning Point", True),
        ("turning-point", True),
        ("CLIMAX", True),
        ("物語の転換", True),
        ("山場", True),
        ("development", False),
        ("", False),
        (None, False),
    ],
)
def test_is_turning_point(role, expected) -> None:
    assert geometry.is_turning_point(role) is expected


def test_climax_indices_are_one_based_and_capped_at_three() -> None:
    roles = ["introduction", "climax", "development", "turning_point", "climax", "turning point", "resolution"]
    scenes = [_scene(0, 0, role) for role in roles]
    assert geometry.climax_indices(scenes) == [2, 4, 5]
