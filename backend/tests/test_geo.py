import pytest

from localmart.modules.shop.geo import haversine_km


def test_same_point_is_zero():
    assert haversine_km(12.97, 77.59, 12.97, 77.59) == 0.0


def test_distance_is_symmetric():
    there = haversine_km(52.52, 13.405, 48.8566, 2.3522)
    back = haversine_km(48.8566, 2.3522, 52.52, 13.405)
    assert there == pytest.approx(back)


def test_known_city_distance():
    # Berlin to Paris is roughly 878 km on a spherical earth
    assert haversine_km(52.52, 13.405, 48.8566, 2.3522) == pytest.approx(878, abs=5)


def test_one_degree_of_latitude():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.1)
