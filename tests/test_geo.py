from __future__ import annotations

import pytest

from loraplan.core.errors import InvalidInputError
from loraplan.geo import destination_point, distance_km, interpolate_path
from loraplan.models import GeoPoint


DENVER = GeoPoint(39.7392, -104.9903)
BOULDER = GeoPoint(40.0150, -105.2705)


def test_distance_zero_and_symmetric():
    assert distance_km(DENVER, DENVER) == 0
    assert distance_km(DENVER, BOULDER) == pytest.approx(distance_km(BOULDER, DENVER))
    assert 35 < distance_km(DENVER, BOULDER) < 40


def test_destination_point_round_trip_distance():
    dest = destination_point(DENVER, 90.0, 10.0)
    assert distance_km(DENVER, dest) == pytest.approx(10.0, rel=1e-6)
    # due east keeps roughly the same latitude
    assert dest.lat == pytest.approx(DENVER.lat, abs=0.01)
    assert dest.lng > DENVER.lng


def test_destination_point_wraps_longitude():
    dest = destination_point(GeoPoint(0.0, 179.95), 90.0, 20.0)
    assert -180.0 <= dest.lng <= 180.0
    assert dest.lng < 0


def test_interpolate_path_endpoints_exact():
    for n in (2, 3, 15, 50):
        path = interpolate_path(DENVER, BOULDER, n)
        assert len(path) == n
        assert path[0] == DENVER
        assert path[-1] == BOULDER


def test_interpolate_path_evenly_spaced():
    path = interpolate_path(DENVER, BOULDER, 11)
    total = distance_km(DENVER, BOULDER)
    for i, point in enumerate(path):
        assert distance_km(DENVER, point) == pytest.approx(total * i / 10, abs=1e-6)


def test_interpolate_path_coincident_points():
    path = interpolate_path(DENVER, DENVER, 5)
    assert path == [DENVER] * 5


def test_interpolate_path_rejects_single_sample():
    with pytest.raises(ValueError):
        interpolate_path(DENVER, BOULDER, 1)


def test_geopoint_validates_range():
    with pytest.raises(InvalidInputError):
        GeoPoint(91.0, 0.0)
    with pytest.raises(InvalidInputError):
        GeoPoint(0.0, float("nan"))


def test_interpolate_path_antipodal_endpoints():
    start = GeoPoint(0.0, 0.0)
    end = GeoPoint(0.0, 180.0)
    path = interpolate_path(start, end, 5)

    assert path[0] == start
    assert path[-1] == end
    half = distance_km(start, end) / 2
    assert distance_km(start, path[2]) == pytest.approx(half, rel=1e-6)
