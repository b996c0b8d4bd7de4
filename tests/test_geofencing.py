"""
Tests for the haversine helpers.
"""

import math

import pytest

from app.core.geofencing import (
    EARTH_RADIUS_KM,
    calculate_distance,
    distance_km,
    format_coordinates,
    is_within_radius,
    maps_link,
    validate_coordinates,
)

MUMBAI = (19.0760, 72.8777)
PUNE = (18.5204, 73.8567)

class TestDistance:
    """Test great-circle distances."""

    @pytest.mark.parametrize("a, b", [
        (MUMBAI, PUNE),
        ((0.0, 0.0), (45.0, 90.0)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
    ])
    def test_symmetric(self, a, b):
        assert distance_km(a, b) == pytest.approx(distance_km(b, a))

    def test_same_point_is_zero(self):
        assert distance_km(MUMBAI, MUMBAI) == 0

    def test_one_degree_of_latitude(self):
        expected = EARTH_RADIUS_KM * math.pi / 180  # ~111.19 km
        assert distance_km((10.0, 20.0), (11.0, 20.0)) == pytest.approx(expected, rel=0.01)

    def test_known_city_pair(self):
        # Mumbai to Pune is roughly 120 km as the crow flies
        assert distance_km(MUMBAI, PUNE) == pytest.approx(120, rel=0.05)

    def test_antipodes(self):
        assert calculate_distance(0, 0, 0, 180) == pytest.approx(EARTH_RADIUS_KM * math.pi)

    def test_within_radius(self):
        assert is_within_radius(MUMBAI, PUNE, 150)
        assert not is_within_radius(MUMBAI, PUNE, 100)

class TestCoordinateHelpers:
    """Test coordinate validation and formatting."""

    def test_valid_coordinates(self):
        assert validate_coordinates(19.076, 72.8777) == []

    def test_invalid_coordinates(self):
        errors = validate_coordinates(91, -181)
        assert len(errors) == 2

    def test_format_six_decimals(self):
        assert format_coordinates(19.076, 72.8777) == "19.076000, 72.877700"

    def test_maps_link(self):
        assert maps_link(19.076, 72.8777) == "https://maps.google.com/maps?q=19.076,72.8777"
