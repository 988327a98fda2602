"""
Delivery pricing  (Strategy Pattern)
====================================

Formula
-------
Price = Distance_km x Rate_Per_KM

The product is rounded half-up to two decimals (paise), computed on
the decimal values so 0.25 km at 0.5/km prices at 0.13, not 0.12.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

from .errors import ValidationError

CENTS = Decimal("0.01")


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(self, distance_km: float) -> float: ...


class PerKmPricing(PricingStrategy):
    def __init__(self, rate_per_km: float):
        self.rate_per_km = rate_per_km

    def calculate(self, distance_km: float) -> float:
        exact = Decimal(str(distance_km)) * Decimal(str(self.rate_per_km))
        return float(exact.quantize(CENTS, rounding=ROUND_HALF_UP))


class PricingEngine:
    """Facade used by the dispatch service."""

    def __init__(self, rate_per_km: float = 10.0):
        self.strategy: PricingStrategy = PerKmPricing(rate_per_km)

    def quote(self, distance_km: float) -> float:
        if distance_km < 0:
            raise ValidationError("distance must be non-negative")
        return self.strategy.calculate(distance_km)
