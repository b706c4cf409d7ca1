import math

import pytest

from app.utils.geo import EARTH_RADIUS_M, haversine_km, haversine_m


def test_same_point_is_zero():
    assert haversine_m(45.0, 7.0, 45.0, 7.0) == 0.0


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_M * math.pi / 180
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected, rel=1e-9)
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected / 1000, rel=1e-9)


def test_distance_is_symmetric():
    there = haversine_m(45.0, 7.0, 46.0, 8.0)
    back = haversine_m(46.0, 8.0, 45.0, 7.0)
    assert there == pytest.approx(back)
    assert there > 100_000

