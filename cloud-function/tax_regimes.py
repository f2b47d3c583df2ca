"""
Tax regime registry.

Regimes are declared in TAX_MATRIX (one entry per canonical regime key) and
parsed once into typed, immutable regime objects. Adding a jurisdiction means
adding a table entry, not code.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from exceptions import MisconfiguredRegime

logger = logging.getLogger(__name__)


# Rates are fractions (0.21 for 21%), thresholds are in the regime's base currency
TAX_MATRIX: Dict[str, Dict[str, Any]] = {
    'EU': {
        'vat': True,
        'rates': {'standard': 0.21, 'reduced': 0.09, 'superReduced': 0.05},
        'reverseCharge': True,
        'thresholds': {
            'intraCommunity': 10000,
            'distanceSelling': 35000,
        },
    },
    'US': {
        'salesTax': True,
        'stateRules': {
            'CA': {'rate': 0.0825, 'countyTax': True},
            'NY': {'rate': 0.04, 'cityTax': {'NYC': 0.045}},
            'TX': {'rate': 0.0625, 'countyTax': True, 'cityTax': {'HOU': 0.02}},
            'FL': {'rate': 0.06, 'countyTax': True},
            'WA': {'rate': 0.065, 'cityTax': {'SEA': 0.0385}},
            'IL': {'rate': 0.0625, 'cityTax': {'CHI': 0.0125}},
            'MA': {'rate': 0.0625},
            'CO': {'rate': 0.029, 'countyTax': True, 'cityTax': {'DEN': 0.0481}},
        },
    },
    'UK': {'vat': True, 'rates': {'standard': 0.20, 'reduced': 0.05}},
    'AU': {'gst': True, 'rate': 0.10},
}

VAT_KIND = 'vat'
SALES_TAX_KIND = 'salesTax'
GST_KIND = 'gst'

_KIND_FLAGS = (VAT_KIND, GST_KIND, SALES_TAX_KIND)


@dataclass(frozen=True)
class Rates:
    standard: Decimal
    reduced: Optional[Decimal] = None
    super_reduced: Optional[Decimal] = None


@dataclass(frozen=True)
class Thresholds:
    intra_community: Optional[Decimal] = None
    distance_selling: Optional[Decimal] = None


@dataclass(frozen=True)
class StateRule:
    """
    Sales tax rule for one state/province.

    County and city surcharges are recorded but not applied by the calculator.
    """
    rate: Decimal
    county_tax: bool = False
    city_tax: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class VatRegime:
    key: str
    rates: Rates
    reverse_charge: bool = False
    thresholds: Optional[Thresholds] = None
    kind: str = field(default=VAT_KIND, init=False)


@dataclass(frozen=True)
class SalesTaxRegime:
    key: str
    state_rules: Mapping[str, StateRule]
    kind: str = field(default=SALES_TAX_KIND, init=False)


@dataclass(frozen=True)
class GstRegime:
    key: str
    rate: Decimal
    kind: str = field(default=GST_KIND, init=False)


TaxRegime = Union[VatRegime, SalesTaxRegime, GstRegime]


def _to_rate(key: str, name: str, value: Any) -> Decimal:
    """Parse a fractional rate and check it lies in [0, 1]"""
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise MisconfiguredRegime(key, f"{name} is not a number: {value!r}")
    if not Decimal('0') <= rate <= Decimal('1'):
        raise MisconfiguredRegime(key, f"{name} must be between 0 and 1, got {rate}")
    return rate


def _to_optional_rate(key: str, name: str, value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return _to_rate(key, name, value)


def _to_amount(key: str, name: str, value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise MisconfiguredRegime(key, f"{name} is not a number: {value!r}")


def _parse_vat(key: str, config: Dict[str, Any]) -> VatRegime:
    rates = config.get('rates') or {}
    if 'standard' not in rates:
        raise MisconfiguredRegime(key, "VAT regime has no standard rate")

    thresholds = None
    if config.get('thresholds'):
        thresholds = Thresholds(
            intra_community=_to_amount(key, 'thresholds.intraCommunity', config['thresholds'].get('intraCommunity')),
            distance_selling=_to_amount(key, 'thresholds.distanceSelling', config['thresholds'].get('distanceSelling')),
        )

    return VatRegime(
        key=key,
        rates=Rates(
            standard=_to_rate(key, 'rates.standard', rates['standard']),
            reduced=_to_optional_rate(key, 'rates.reduced', rates.get('reduced')),
            super_reduced=_to_optional_rate(key, 'rates.superReduced', rates.get('superReduced')),
        ),
        reverse_charge=bool(config.get('reverseCharge', False)),
        thresholds=thresholds,
    )


def _parse_sales_tax(key: str, config: Dict[str, Any]) -> SalesTaxRegime:
    state_rules = {}
    for state, rule in (config.get('stateRules') or {}).items():
        if 'rate' not in rule:
            raise MisconfiguredRegime(key, f"state rule {state} has no rate")
        city_tax = {
            city: _to_rate(key, f"stateRules.{state}.cityTax.{city}", city_rate)
            for city, city_rate in (rule.get('cityTax') or {}).items()
        }
        state_rules[state] = StateRule(
            rate=_to_rate(key, f"stateRules.{state}.rate", rule['rate']),
            county_tax=bool(rule.get('countyTax', False)),
            city_tax=MappingProxyType(city_tax),
        )
    return SalesTaxRegime(key=key, state_rules=MappingProxyType(state_rules))


def _parse_gst(key: str, config: Dict[str, Any]) -> GstRegime:
    # GST entries carry a single top-level rate; rates.standard is accepted too
    rate = config.get('rate')
    if rate is None:
        rate = (config.get('rates') or {}).get('standard')
    if rate is None:
        raise MisconfiguredRegime(key, "GST regime has no rate")
    return GstRegime(key=key, rate=_to_rate(key, 'rate', rate))


_PARSERS = {
    VAT_KIND: _parse_vat,
    SALES_TAX_KIND: _parse_sales_tax,
    GST_KIND: _parse_gst,
}


def regime_from_config(key: str, config: Dict[str, Any]) -> TaxRegime:
    """
    Parse one TAX_MATRIX entry into a typed regime.

    Args:
        key: Canonical regime key (e.g. 'EU', 'US')
        config: Entry with exactly one of the 'vat', 'gst', 'salesTax' flags set

    Returns:
        VatRegime, SalesTaxRegime or GstRegime

    Raises:
        MisconfiguredRegime: If zero or several flags are set, or a rate is invalid
    """
    flags = [kind for kind in _KIND_FLAGS if config.get(kind)]
    if len(flags) != 1:
        raise MisconfiguredRegime(
            key, f"exactly one of vat/gst/salesTax must be set, found {flags or 'none'}"
        )
    return _PARSERS[flags[0]](key, config)


class TaxRegistry:
    """Read-only lookup of tax regimes by canonical key"""

    def __init__(self, regimes: Mapping[str, TaxRegime]):
        self._regimes = MappingProxyType(dict(regimes))

    @classmethod
    def from_config(cls, table: Dict[str, Dict[str, Any]]) -> 'TaxRegistry':
        """
        Build a registry from a TAX_MATRIX-shaped table.

        Raises:
            MisconfiguredRegime: If any entry is invalid
        """
        regimes = {key: regime_from_config(key, config) for key, config in table.items()}
        logger.info(f"Loaded {len(regimes)} tax regimes: {', '.join(sorted(regimes))}")
        return cls(regimes)

    def get(self, key: str) -> Optional[TaxRegime]:
        return self._regimes.get(key)

    def keys(self):
        return self._regimes.keys()

    def __contains__(self, key: object) -> bool:
        return key in self._regimes

    def __iter__(self) -> Iterator[str]:
        return iter(self._regimes)

    def __len__(self) -> int:
        return len(self._regimes)


def build_default_registry() -> TaxRegistry:
    """Registry for the embedded TAX_MATRIX"""
    return TaxRegistry.from_config(TAX_MATRIX)
