#!/usr/bin/env python3
"""
Script to verify the embedded tax matrix and print sample calculations
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'cloud-function'))
import tax_calculator
import tax_regimes
from exceptions import TaxEngineError

SAMPLE_ITEMS = [{'description': 'Consulting', 'amount': 100, 'quantity': 1}]
SAMPLE_BUYERS = ['DE', 'FR', 'GB', 'AU', 'NZ', 'US-CA', 'US-NY', 'US', 'JP']

try:
    registry = tax_regimes.build_default_registry()
except TaxEngineError as e:
    print(f"✗ Tax matrix is invalid: {e}")
    sys.exit(1)

print("Regimes found:")
print("-" * 50)
for key in sorted(registry.keys()):
    regime = registry.get(key)
    if isinstance(regime, tax_regimes.VatRegime):
        print(f"  • {key}: VAT standard {regime.rates.standard}, reverse charge {regime.reverse_charge}")
    elif isinstance(regime, tax_regimes.SalesTaxRegime):
        states = ', '.join(f"{state} {rule.rate}" for state, rule in sorted(regime.state_rules.items()))
        print(f"  • {key}: sales tax ({states})")
    else:
        print(f"  • {key}: GST {regime.rate}")

print("\n" + "=" * 50)
print("Sample calculations (100.00 USD, one item):")
calculator = tax_calculator.TaxCalculator(registry=registry)
for buyer in SAMPLE_BUYERS:
    try:
        result = calculator.calculate_taxes(SAMPLE_ITEMS, 'DE', buyer)
    except TaxEngineError as e:
        print(f"  ✗ {buyer}: {e}")
        continue
    source = result.exchange_rate.source if result.exchange_rate else 'unavailable'
    display = f"{result.display.total} {result.display.currency}" if result.display else '-'
    print(f"  ✓ {buyer}: tax {result.tax_amount} total {result.total} (display {display}, rates {source})")
