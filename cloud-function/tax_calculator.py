"""
Tax (VAT/GST/sales tax) calculation for invoices.

The buyer's jurisdiction selects a regime from the registry; the regime kind
decides how the taxable amount is taxed. The tax amount is always computed in
the reporting currency before any exchange rate is looked up, so a failing
rate source can only affect the display amounts.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Union

import config
import jurisdictions
from exceptions import InvalidLineItem, MisconfiguredRegime, UnsupportedJurisdiction, UnsupportedSubregion
from exchange_rates import ExchangeRate, ExchangeRateClient
from jurisdiction_resolver import resolve, split_jurisdiction_code
from tax_regimes import (
    GST_KIND,
    SALES_TAX_KIND,
    VAT_KIND,
    GstRegime,
    SalesTaxRegime,
    TaxRegistry,
    VatRegime,
    build_default_registry,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


@dataclass(frozen=True)
class LineItem:
    """One invoice line. `amount` is the unit price."""
    description: str
    amount: Decimal
    quantity: int = 1
    tax_code: Optional[str] = None  # advisory, not used for rate selection

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', _to_decimal(self.amount, self.description))
        if not self.amount.is_finite():
            raise InvalidLineItem(f"Line item '{self.description}' amount is not a finite number: {self.amount}")
        if self.amount < 0:
            raise InvalidLineItem(f"Line item '{self.description}' has a negative amount: {self.amount}")
        if self.quantity is not None and self.quantity < 0:
            raise InvalidLineItem(f"Line item '{self.description}' has a negative quantity: {self.quantity}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineItem':
        """
        Build a line item from its wire shape.

        Args:
            data: Dictionary with description, amount, optional quantity and taxCode

        Returns:
            LineItem

        Raises:
            InvalidLineItem: If amount is missing, not numeric or negative
        """
        if not isinstance(data, dict):
            raise InvalidLineItem(f"Line item must be an object, got {type(data).__name__}")
        if data.get('amount') is None:
            raise InvalidLineItem(f"Line item '{data.get('description', '')}' has no amount")

        quantity = data.get('quantity')
        if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, int)):
            raise InvalidLineItem(f"Line item quantity must be an integer, got {quantity!r}")

        return cls(
            description=str(data.get('description', '')),
            amount=_to_decimal(data['amount'], data.get('description', '')),
            quantity=quantity if quantity is not None else 1,
            tax_code=data.get('taxCode'),
        )

    @property
    def line_total(self) -> Decimal:
        # Absent or zero quantity counts as one unit
        return self.amount * (self.quantity or 1)


def _to_decimal(value: Any, description: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidLineItem(f"Line item '{description}' amount is not a number: {value!r}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidLineItem(f"Line item '{description}' amount is not a number: {value!r}")
    if not amount.is_finite():
        raise InvalidLineItem(f"Line item '{description}' amount is not a finite number: {value!r}")
    return amount


def _percent(rate: Decimal) -> Decimal:
    return (rate * 100).normalize()


@dataclass(frozen=True)
class VatBreakdown:
    vat_rate: Decimal
    taxable_amount: Decimal
    vat_amount: Decimal
    reverse_charge: bool = False
    notes: Optional[str] = None

    kind = VAT_KIND

    @property
    def rate(self) -> Decimal:
        return self.vat_rate

    @property
    def tax_amount(self) -> Decimal:
        return self.vat_amount

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'vatRate': self.vat_rate,
            'taxableAmount': self.taxable_amount,
            'vatAmount': self.vat_amount,
        }
        if self.reverse_charge:
            result['reverseCharge'] = True
        if self.notes:
            result['notes'] = self.notes
        return result

    def to_lines(self) -> List[Dict[str, Any]]:
        name = 'VAT (reverse charge)' if self.reverse_charge else 'VAT'
        return [{'name': name, 'rate': _percent(self.vat_rate), 'amount': self.vat_amount}]


@dataclass(frozen=True)
class SalesTaxBreakdown:
    tax_rate: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    subregion: Optional[str] = None

    kind = SALES_TAX_KIND

    @property
    def rate(self) -> Decimal:
        return self.tax_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            'taxRate': self.tax_rate,
            'taxableAmount': self.taxable_amount,
            'taxAmount': self.tax_amount,
        }

    def to_lines(self) -> List[Dict[str, Any]]:
        name = f"Sales Tax ({self.subregion})" if self.subregion else 'Sales Tax'
        return [{'name': name, 'rate': _percent(self.tax_rate), 'amount': self.tax_amount}]


@dataclass(frozen=True)
class GstBreakdown:
    gst_rate: Decimal
    taxable_amount: Decimal
    gst_amount: Decimal

    kind = GST_KIND

    @property
    def rate(self) -> Decimal:
        return self.gst_rate

    @property
    def tax_amount(self) -> Decimal:
        return self.gst_amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gstRate': self.gst_rate,
            'taxableAmount': self.taxable_amount,
            'gstAmount': self.gst_amount,
        }

    def to_lines(self) -> List[Dict[str, Any]]:
        return [{'name': 'GST', 'rate': _percent(self.gst_rate), 'amount': self.gst_amount}]


TaxBreakdown = Union[VatBreakdown, SalesTaxBreakdown, GstBreakdown]


@dataclass(frozen=True)
class DisplayAmounts:
    """Totals converted into the display currency, rounded for presentation"""
    currency: str
    taxable_amount: Decimal
    tax_amount: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'currency': self.currency,
            'taxableAmount': self.taxable_amount,
            'taxAmount': self.tax_amount,
            'total': self.total,
        }


@dataclass(frozen=True)
class TaxCalculation:
    """Result of a tax calculation, amounts in `currency`"""
    breakdown: TaxBreakdown
    regime_key: str
    buyer_jurisdiction: str
    currency: str
    exchange_rate: Optional[ExchangeRate] = None
    display: Optional[DisplayAmounts] = None

    @property
    def taxable_amount(self) -> Decimal:
        return self.breakdown.taxable_amount

    @property
    def tax_amount(self) -> Decimal:
        return self.breakdown.tax_amount

    @property
    def total(self) -> Decimal:
        return self.taxable_amount + self.tax_amount

    @property
    def uses_fallback_rates(self) -> bool:
        return self.exchange_rate is not None and self.exchange_rate.is_fallback

    def to_dict(self) -> Dict[str, Any]:
        """
        Wire representation: {'taxes': {...}, 'total': ...}

        Monetary values stay Decimal; serialize them at the HTTP boundary.
        """
        taxes = self.breakdown.to_dict()
        taxes['currency'] = self.currency

        if self.exchange_rate is not None:
            taxes['exchangeRate'] = {self.exchange_rate.target: self.exchange_rate.rate}
            taxes['exchangeRateSource'] = self.exchange_rate.source
            if self.exchange_rate.as_of:
                taxes['ratesAsOf'] = self.exchange_rate.as_of
        else:
            taxes['exchangeRate'] = None
            taxes['exchangeRateSource'] = 'unavailable'

        if self.display is not None:
            taxes['display'] = self.display.to_dict()

        return {'taxes': taxes, 'total': self.total}


class TaxCalculator:
    """Computes invoice taxes for a buyer jurisdiction"""

    def __init__(self, registry: Optional[TaxRegistry] = None, rate_client: Optional[ExchangeRateClient] = None):
        """
        Initialize the calculator.

        Args:
            registry: Tax regime registry (defaults to the embedded table)
            rate_client: Exchange rate source for display conversion
        """
        self.registry = registry if registry is not None else build_default_registry()
        self.rate_client = rate_client if rate_client is not None else ExchangeRateClient()

    def calculate_taxes(
        self,
        items: Iterable[Union[LineItem, Dict[str, Any]]],
        seller_jurisdiction_code: str,
        buyer_jurisdiction_code: str,
        seller_vat_id: Optional[str] = None,
        buyer_vat_id: Optional[str] = None,
        display_currency: Optional[str] = None,
    ) -> TaxCalculation:
        """
        Calculate taxes for invoice line items.

        Args:
            items: Line items (LineItem or wire dictionaries)
            seller_jurisdiction_code: Seller's country code
            buyer_jurisdiction_code: Buyer's country code, optionally with sub-region ('US-CA')
            seller_vat_id: Seller's VAT number (informational)
            buyer_vat_id: Buyer's VAT number; an EU-prefixed number triggers reverse charge.
                Callers must validate it before passing it in.
            display_currency: Currency for display amounts (defaults to the buyer's currency)

        Returns:
            TaxCalculation

        Raises:
            UnsupportedJurisdiction: No regime for the buyer's jurisdiction
            UnsupportedSubregion: Sales tax regime has no rule for the sub-region
            MisconfiguredRegime: Registry holds an unknown regime type
            InvalidLineItem: A line item is malformed
        """
        line_items = [item if isinstance(item, LineItem) else LineItem.from_dict(item) for item in items]

        country, subregion = split_jurisdiction_code(buyer_jurisdiction_code)
        regime_key = resolve(country)
        regime = self.registry.get(regime_key)
        if regime is None:
            raise UnsupportedJurisdiction(buyer_jurisdiction_code)

        taxable_amount = sum((item.line_total for item in line_items), ZERO)

        logger.info(
            f"Calculating taxes: seller={seller_jurisdiction_code} buyer={buyer_jurisdiction_code} "
            f"regime={regime_key} items={len(line_items)} taxable={taxable_amount}"
        )
        if seller_vat_id:
            logger.debug(f"Seller VAT ID {seller_vat_id} recorded, not used for rate selection")

        if isinstance(regime, VatRegime):
            breakdown = self._calculate_vat(regime, taxable_amount, buyer_vat_id)
        elif isinstance(regime, SalesTaxRegime):
            breakdown = self._calculate_sales_tax(regime, taxable_amount, buyer_jurisdiction_code, subregion)
        elif isinstance(regime, GstRegime):
            breakdown = GstBreakdown(
                gst_rate=regime.rate,
                taxable_amount=taxable_amount,
                gst_amount=taxable_amount * regime.rate,
            )
        else:
            error = MisconfiguredRegime(regime_key, f"unknown regime type {type(regime).__name__}")
            logger.error(str(error))
            raise error

        # Tax is final here; the rate lookup only feeds display amounts
        target_currency = (
            display_currency
            or jurisdictions.get_currency(buyer_jurisdiction_code)
            or config.REPORTING_CURRENCY
        ).upper()
        exchange_rate = self._lookup_rate(target_currency)

        display = None
        if exchange_rate is not None:
            try:
                display = _display_amounts(taxable_amount, breakdown.tax_amount, exchange_rate)
            except InvalidOperation as e:
                logger.warning(
                    f"Cannot convert {taxable_amount} into {exchange_rate.target}, "
                    f"returning tax without display amounts: {e!r}"
                )
            if display is not None and exchange_rate.is_fallback:
                logger.warning(
                    f"Display amounts for {buyer_jurisdiction_code} use fallback rates "
                    f"as of {exchange_rate.as_of}"
                )

        return TaxCalculation(
            breakdown=breakdown,
            regime_key=regime_key,
            buyer_jurisdiction=buyer_jurisdiction_code,
            currency=config.REPORTING_CURRENCY,
            exchange_rate=exchange_rate,
            display=display,
        )

    def _calculate_vat(self, regime: VatRegime, taxable_amount: Decimal, buyer_vat_id: Optional[str]) -> VatBreakdown:
        if buyer_vat_id and buyer_vat_id.startswith(config.EU_VAT_PREFIX):
            # Intra-community supply: the buyer accounts for the VAT
            return VatBreakdown(
                vat_rate=ZERO,
                taxable_amount=taxable_amount,
                vat_amount=ZERO,
                reverse_charge=True,
                notes=f"Reverse charge applies. Buyer VAT: {buyer_vat_id}",
            )

        rate = regime.rates.standard
        distance_selling = regime.thresholds.distance_selling if regime.thresholds else None

        # Both branches apply the standard rate; the threshold does not change the amount
        if distance_selling is not None and taxable_amount < distance_selling:
            logger.debug(f"{regime.key}: {taxable_amount} below distance selling threshold {distance_selling}")
        else:
            logger.debug(f"{regime.key}: applying local supply rules")

        return VatBreakdown(
            vat_rate=rate,
            taxable_amount=taxable_amount,
            vat_amount=taxable_amount * rate,
        )

    def _calculate_sales_tax(
        self,
        regime: SalesTaxRegime,
        taxable_amount: Decimal,
        buyer_jurisdiction_code: str,
        subregion: Optional[str],
    ) -> SalesTaxBreakdown:
        state_rule = regime.state_rules.get(subregion) if subregion else None
        if state_rule is None:
            raise UnsupportedSubregion(buyer_jurisdiction_code, subregion)

        # County and city surcharges are not added
        return SalesTaxBreakdown(
            tax_rate=state_rule.rate,
            taxable_amount=taxable_amount,
            tax_amount=taxable_amount * state_rule.rate,
            subregion=subregion,
        )

    def _lookup_rate(self, target_currency: str) -> Optional[ExchangeRate]:
        try:
            return self.rate_client.get_rate(config.REPORTING_CURRENCY, target_currency)
        except Exception as e:
            logger.warning(
                f"Exchange rate {config.REPORTING_CURRENCY}->{target_currency} unavailable, "
                f"returning tax without display conversion: {e}"
            )
            return None


def _display_amounts(taxable_amount: Decimal, tax_amount: Decimal, exchange_rate: ExchangeRate) -> DisplayAmounts:
    quantum = Decimal(1).scaleb(-config.DISPLAY_DECIMAL_PLACES)

    def convert(amount: Decimal) -> Decimal:
        return (amount * exchange_rate.rate).quantize(quantum, rounding=ROUND_HALF_UP)

    display_taxable = convert(taxable_amount)
    display_tax = convert(tax_amount)
    return DisplayAmounts(
        currency=exchange_rate.target,
        taxable_amount=display_taxable,
        tax_amount=display_tax,
        total=display_taxable + display_tax,
    )


_default_calculator: Optional[TaxCalculator] = None


def get_default_calculator() -> TaxCalculator:
    """Calculator over the embedded registry and the live rate client, built once"""
    global _default_calculator
    if _default_calculator is None:
        _default_calculator = TaxCalculator()
    return _default_calculator


def calculate_taxes(
    items: Iterable[Union[LineItem, Dict[str, Any]]],
    seller_jurisdiction_code: str,
    buyer_jurisdiction_code: str,
    seller_vat_id: Optional[str] = None,
    buyer_vat_id: Optional[str] = None,
    display_currency: Optional[str] = None,
) -> TaxCalculation:
    """Calculate taxes with the default calculator. See TaxCalculator.calculate_taxes."""
    return get_default_calculator().calculate_taxes(
        items,
        seller_jurisdiction_code,
        buyer_jurisdiction_code,
        seller_vat_id=seller_vat_id,
        buyer_vat_id=buyer_vat_id,
        display_currency=display_currency,
    )
