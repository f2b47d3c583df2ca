"""Shared fixtures for tax engine tests."""

from decimal import Decimal

import pytest

from exchange_rates import ExchangeRate, FALLBACK, IDENTITY, LIVE
from tax_calculator import TaxCalculator
from tax_regimes import build_default_registry


class StubRateClient:
    """Rate client returning fixed USD-based rates without network access."""

    def __init__(self, rates=None, source=LIVE, as_of="2024-06-03", error=None):
        self.rates = rates or {"EUR": Decimal("0.9"), "GBP": Decimal("0.8"), "AUD": Decimal("1.5")}
        self.source = source
        self.as_of = as_of
        self.error = error
        self.calls = []

    def get_rate(self, base, target):
        self.calls.append((base, target))
        if self.error is not None:
            raise self.error
        if base == target:
            return ExchangeRate(base=base, target=target, rate=Decimal("1"), source=IDENTITY)
        return ExchangeRate(base=base, target=target, rate=self.rates[target], source=self.source, as_of=self.as_of)


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def rate_client():
    return StubRateClient()


@pytest.fixture
def fallback_rate_client():
    return StubRateClient(rates={"EUR": Decimal("0.93")}, source=FALLBACK, as_of="2024-06-01")


@pytest.fixture
def calculator(registry, rate_client):
    return TaxCalculator(registry=registry, rate_client=rate_client)
