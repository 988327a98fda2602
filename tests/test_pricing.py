"""Unit tests for distance and per-km pricing."""

import pytest

from src.domain.distance import haversine_km, route_km
from src.domain.entities import Location
from src.domain.errors import ValidationError
from src.domain.pricing import PerKmPricing, PricingEngine


class TestPerKmPricing:
    def test_price_is_distance_times_rate(self):
        assert PerKmPricing(10.0).calculate(12.5) == 125.0

    def test_fractional_price_is_kept(self):
        assert PerKmPricing(10.0).calculate(0.05) == 0.5
        assert PerKmPricing(10.0).calculate(3.37) == 33.7

    def test_non_integer_rate(self):
        assert PerKmPricing(12.5).calculate(3.3) == 41.25

    def test_rounds_half_up_to_cents(self):
        assert PerKmPricing(0.5).calculate(0.25) == 0.13
        assert PerKmPricing(1.0).calculate(2.345) == 2.35

    def test_zero_distance_is_free(self):
        assert PerKmPricing(10.0).calculate(0.0) == 0.0


class TestPricingEngine:
    def setup_method(self):
        self.engine = PricingEngine(rate_per_km=10.0)

    def test_quote(self):
        assert self.engine.quote(111.2) == 1112.0

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            self.engine.quote(-1.0)


class TestDistance:
    def test_same_point_is_zero(self):
        assert haversine_km(19.0896, 72.8656, 19.0896, 72.8656) == 0.0

    def test_one_degree_of_longitude_at_equator(self):
        d = route_km(Location(0, 0), Location(0, 1))
        assert d == pytest.approx(111.2, abs=0.05)

    def test_route_km_rounds_to_tenth(self):
        d = route_km(Location(19.1197, 72.8468), Location(19.1176, 72.9060))
        assert d == round(d, 1)

    def test_mumbai_airport_to_andheri(self):
        d = haversine_km(19.0896, 72.8656, 19.1197, 72.8468)
        assert 3.0 < d < 5.0
