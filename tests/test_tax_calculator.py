"""Tests for the tax calculation engine.

Covers:
- EU VAT: standard rate, reverse charge, distance selling threshold
- US sales tax: state rules, missing sub-regions, surcharges not applied
- AU/NZ GST
- Unsupported and misconfigured jurisdictions
- Exchange rate attachment, fallback tagging and degraded display conversion
- Line item parsing
"""

from decimal import Decimal

import pytest

import tax_calculator
from conftest import StubRateClient
from exceptions import InvalidLineItem, MisconfiguredRegime, UnsupportedJurisdiction, UnsupportedSubregion
from jurisdiction_resolver import EU_MEMBER_STATES
from tax_calculator import GstBreakdown, LineItem, SalesTaxBreakdown, TaxCalculator, VatBreakdown
from tax_regimes import TaxRegistry


def one_item(amount, quantity=1):
    return [{"description": "Service", "amount": amount, "quantity": quantity}]


# ---------------------------------------------------------------------------
# EU VAT
# ---------------------------------------------------------------------------


class TestVat:

    @pytest.mark.parametrize("buyer", sorted(EU_MEMBER_STATES))
    def test_reverse_charge_with_eu_vat_id(self, calculator, buyer):
        result = calculator.calculate_taxes(one_item(500), "US", buyer, buyer_vat_id="EUDE123456789")
        assert isinstance(result.breakdown, VatBreakdown)
        assert result.breakdown.vat_rate == 0
        assert result.breakdown.reverse_charge is True
        assert result.breakdown.vat_amount == 0
        assert result.breakdown.notes == "Reverse charge applies. Buyer VAT: EUDE123456789"
        assert result.total == Decimal("500")

    def test_non_eu_prefixed_vat_id_pays_standard_rate(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "DE", buyer_vat_id="DE123456789")
        assert result.breakdown.reverse_charge is False
        assert result.breakdown.vat_amount == Decimal("21")

    @pytest.mark.parametrize("buyer", sorted(EU_MEMBER_STATES))
    def test_standard_rate_below_distance_selling_threshold(self, calculator, buyer):
        result = calculator.calculate_taxes(one_item(1000), "US", buyer)
        assert result.regime_key == "EU"
        assert result.breakdown.vat_rate == Decimal("0.21")
        assert result.breakdown.vat_amount == Decimal("1000") * Decimal("0.21")

    @pytest.mark.parametrize("buyer", sorted(EU_MEMBER_STATES))
    def test_standard_rate_above_distance_selling_threshold(self, calculator, buyer):
        result = calculator.calculate_taxes(one_item(50000), "US", buyer)
        assert result.breakdown.vat_rate == Decimal("0.21")
        assert result.breakdown.vat_amount == Decimal("10500")
        assert result.total == Decimal("60500")

    def test_uk_uses_uk_rate(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "GB")
        assert result.regime_key == "UK"
        assert result.breakdown.vat_amount == Decimal("20")
        assert result.total == Decimal("120")

    def test_wire_shape(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "DE").to_dict()
        taxes = result["taxes"]
        assert taxes["vatRate"] == Decimal("0.21")
        assert taxes["taxableAmount"] == Decimal("100")
        assert taxes["vatAmount"] == Decimal("21")
        assert "reverseCharge" not in taxes
        assert taxes["currency"] == "USD"
        assert result["total"] == Decimal("121")

    def test_reverse_charge_wire_shape(self, calculator):
        taxes = calculator.calculate_taxes(one_item(100), "US", "DE", buyer_vat_id="EUDE123456789").to_dict()["taxes"]
        assert taxes["reverseCharge"] is True
        assert taxes["vatRate"] == 0
        assert "EUDE123456789" in taxes["notes"]


# ---------------------------------------------------------------------------
# US sales tax
# ---------------------------------------------------------------------------


class TestSalesTax:

    def test_california(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "US-CA")
        assert isinstance(result.breakdown, SalesTaxBreakdown)
        assert result.breakdown.tax_rate == Decimal("0.0825")
        assert result.tax_amount == Decimal("8.25")
        assert result.total == Decimal("108.25")

    def test_city_surcharge_not_added(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "US-NY")
        assert result.tax_amount == Decimal("4")

    def test_unknown_state(self, calculator):
        with pytest.raises(UnsupportedSubregion) as exc:
            calculator.calculate_taxes(one_item(100), "US", "US-ZZ")
        assert exc.value.subregion == "ZZ"
        assert exc.value.code == "US-ZZ"

    def test_missing_state(self, calculator):
        with pytest.raises(UnsupportedSubregion):
            calculator.calculate_taxes(one_item(100), "US", "US")

    def test_wire_shape(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "US-CA").to_dict()
        assert set(result["taxes"]) >= {"taxRate", "taxableAmount", "taxAmount", "currency", "exchangeRate"}
        assert result["total"] == Decimal("108.25")


# ---------------------------------------------------------------------------
# GST
# ---------------------------------------------------------------------------


class TestGst:

    def test_australia(self, calculator):
        result = calculator.calculate_taxes(one_item(200, quantity=2), "US", "AU")
        assert isinstance(result.breakdown, GstBreakdown)
        assert result.taxable_amount == Decimal("400")
        assert result.breakdown.gst_amount == Decimal("40")
        assert result.total == Decimal("440")

    def test_new_zealand_uses_grouped_regime(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "NZ")
        assert result.regime_key == "AU"
        assert result.breakdown.gst_rate == Decimal("0.1")

    def test_lines(self, calculator):
        lines = calculator.calculate_taxes(one_item(100), "US", "AU").breakdown.to_lines()
        assert lines == [{"name": "GST", "rate": Decimal("10"), "amount": Decimal("10")}]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:

    def test_unconfigured_jurisdiction(self, calculator):
        with pytest.raises(UnsupportedJurisdiction) as exc:
            calculator.calculate_taxes(one_item(100), "US", "ZZ")
        assert exc.value.code == "ZZ"

    def test_jurisdiction_without_regime(self, calculator):
        with pytest.raises(UnsupportedJurisdiction):
            calculator.calculate_taxes(one_item(100), "US", "JP")

    def test_unknown_regime_type(self, rate_client):
        calculator = TaxCalculator(registry=TaxRegistry({"XX": object()}), rate_client=rate_client)
        with pytest.raises(MisconfiguredRegime):
            calculator.calculate_taxes(one_item(100), "US", "XX")

    def test_failure_happens_before_rate_lookup(self, calculator, rate_client):
        with pytest.raises(UnsupportedJurisdiction):
            calculator.calculate_taxes(one_item(100), "US", "ZZ")
        assert rate_client.calls == []


# ---------------------------------------------------------------------------
# Taxable amount and line items
# ---------------------------------------------------------------------------


class TestLineItems:

    def test_sum_over_items(self, calculator):
        items = [
            {"description": "A", "amount": 10, "quantity": 3},
            {"description": "B", "amount": "2.50", "quantity": 2},
            {"description": "C", "amount": 7},
        ]
        result = calculator.calculate_taxes(items, "US", "AU")
        assert result.taxable_amount == Decimal("42")

    def test_zero_quantity_counts_as_one(self, calculator):
        result = calculator.calculate_taxes(one_item(50, quantity=0), "US", "AU")
        assert result.taxable_amount == Decimal("50")

    def test_line_item_objects_accepted(self, calculator):
        items = [LineItem(description="Design", amount=Decimal("80"), quantity=2, tax_code="SVC")]
        result = calculator.calculate_taxes(items, "US", "AU")
        assert result.taxable_amount == Decimal("160")

    def test_no_items(self, calculator):
        result = calculator.calculate_taxes([], "US", "AU")
        assert result.total == 0

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidLineItem):
            LineItem.from_dict({"description": "Refund", "amount": -5})

    def test_missing_amount_rejected(self):
        with pytest.raises(InvalidLineItem):
            LineItem.from_dict({"description": "Nothing"})

    def test_non_numeric_amount_rejected(self):
        with pytest.raises(InvalidLineItem):
            LineItem.from_dict({"description": "Bad", "amount": "ten"})

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_amount_rejected(self, amount):
        with pytest.raises(InvalidLineItem):
            LineItem.from_dict({"description": "Bad", "amount": amount})

    @pytest.mark.parametrize("amount", [Decimal("NaN"), Decimal("Infinity")])
    def test_non_finite_line_item_object_rejected(self, amount):
        with pytest.raises(InvalidLineItem):
            LineItem(description="Bad", amount=amount)

    def test_non_finite_amount_rejected_by_calculator(self, calculator, rate_client):
        with pytest.raises(InvalidLineItem):
            calculator.calculate_taxes(one_item("NaN"), "US", "DE")
        assert rate_client.calls == []

    def test_fractional_quantity_rejected(self):
        with pytest.raises(InvalidLineItem):
            LineItem.from_dict({"description": "Bad", "amount": 1, "quantity": 1.5})

    def test_default_quantity(self):
        item = LineItem.from_dict({"description": "One", "amount": 12})
        assert item.quantity == 1
        assert item.line_total == Decimal("12")


# ---------------------------------------------------------------------------
# Exchange rates and display amounts
# ---------------------------------------------------------------------------


class TestExchangeRates:

    def test_live_rate_attached(self, calculator, rate_client):
        result = calculator.calculate_taxes(one_item(100), "US", "DE")
        taxes = result.to_dict()["taxes"]
        assert rate_client.calls == [("USD", "EUR")]
        assert taxes["exchangeRate"] == {"EUR": Decimal("0.9")}
        assert taxes["exchangeRateSource"] == "live"
        assert taxes["display"] == {
            "currency": "EUR",
            "taxableAmount": Decimal("90.00"),
            "taxAmount": Decimal("18.90"),
            "total": Decimal("108.90"),
        }

    def test_tax_stays_in_reporting_currency(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "DE")
        assert result.currency == "USD"
        assert result.tax_amount == Decimal("21")

    def test_fallback_rates_are_tagged(self, registry, fallback_rate_client):
        calculator = TaxCalculator(registry=registry, rate_client=fallback_rate_client)
        result = calculator.calculate_taxes(one_item(100), "US", "FR")
        taxes = result.to_dict()["taxes"]
        assert result.uses_fallback_rates is True
        assert taxes["exchangeRateSource"] == "fallback"
        assert taxes["ratesAsOf"] == "2024-06-01"

    def test_rate_failure_does_not_fail_calculation(self, registry):
        client = StubRateClient(error=RuntimeError("timeout"))
        calculator = TaxCalculator(registry=registry, rate_client=client)
        result = calculator.calculate_taxes(one_item(100), "US", "US-CA")
        taxes = result.to_dict()["taxes"]
        assert result.tax_amount == Decimal("8.25")
        assert result.exchange_rate is None
        assert result.display is None
        assert taxes["exchangeRate"] is None
        assert taxes["exchangeRateSource"] == "unavailable"

    def test_display_currency_override(self, calculator, rate_client):
        result = calculator.calculate_taxes(one_item(100), "US", "AU", display_currency="gbp")
        assert rate_client.calls == [("USD", "GBP")]
        assert result.display.currency == "GBP"
        assert result.display.total == Decimal("88.00")

    def test_us_buyer_gets_identity_rate(self, calculator):
        result = calculator.calculate_taxes(one_item(100), "US", "US-CA")
        assert result.exchange_rate.source == "identity"
        assert result.display.total == Decimal("108.25")

    def test_unrepresentable_display_amount_keeps_tax(self, calculator):
        result = calculator.calculate_taxes(one_item("1e27"), "US", "DE")
        taxes = result.to_dict()["taxes"]
        assert result.tax_amount == Decimal("1e27") * Decimal("0.21")
        assert result.exchange_rate.target == "EUR"
        assert result.display is None
        assert "display" not in taxes
        assert taxes["exchangeRateSource"] == "live"


def test_module_level_calculate_taxes(monkeypatch, calculator):
    monkeypatch.setattr(tax_calculator, "_default_calculator", calculator)
    result = tax_calculator.calculate_taxes(one_item(100), "US", "US-CA")
    assert result.total == Decimal("108.25")
