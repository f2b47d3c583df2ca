"""
Compliance helpers: VAT number format checks, GST registration thresholds and
local business ID requirements.

Only the format of a VAT number is checked here. Confirming that a number is
registered is left to an external validation service.
"""

import re
from decimal import Decimal
from typing import List, Union

import config

_EU_VAT_NUMBER = re.compile(r'^' + re.escape(config.EU_VAT_PREFIX) + r'[A-Z]{2}[0-9A-Z]{8,12}$')

# Annual revenue above which a seller must register for GST, in local currency
GST_REGISTRATION_THRESHOLDS = {
    'AU': Decimal('75000'),
    'NZ': Decimal('60000'),
    'CA': Decimal('30000'),
    'SG': Decimal('1000000'),
    'ZA': Decimal('50000'),
    'IN': Decimal('2000000'),
}

BUSINESS_ID_REQUIREMENTS = {
    'US': ['EIN'],
    'CA': ['BN'],
    'AU': ['ABN'],
    'UK': ['UTR'],
    'DE': ['Steuernummer'],
    'FR': ['SIRET'],
    'BR': ['CNPJ'],
    'IN': ['GSTIN'],
}

DEFAULT_BUSINESS_ID_REQUIREMENTS = ['Business Registration Number']


def normalize_vat_number(vat_number: str) -> str:
    """Upper-case a VAT number and strip all whitespace"""
    return re.sub(r'\s+', '', vat_number or '').upper()


def is_well_formed_vat_number(vat_number: str) -> bool:
    """
    Check an EU-prefixed VAT number against the expected format.

    Args:
        vat_number: VAT number as entered (e.g. 'eu de 123456789')

    Returns:
        True if the normalized number looks like 'EU' + country + 8-12 characters
    """
    if not vat_number:
        return False
    return bool(_EU_VAT_NUMBER.match(normalize_vat_number(vat_number)))


def requires_gst_registration(country: str, annual_revenue: Union[Decimal, int, float, str]) -> bool:
    """
    Check if a seller must register for GST in a country.

    Args:
        country: ISO country code
        annual_revenue: Seller's annual revenue in the country's currency

    Returns:
        True if revenue exceeds the country's threshold; False for countries without one
    """
    threshold = GST_REGISTRATION_THRESHOLDS.get((country or '').upper())
    if threshold is None:
        return False
    return Decimal(str(annual_revenue)) > threshold


def get_business_id_requirements(country: str) -> List[str]:
    """
    Business identifiers a party in `country` is expected to show on invoices.

    Args:
        country: ISO country code ('GB' is treated as 'UK')

    Returns:
        List of identifier names
    """
    code = (country or '').upper().split('-', 1)[0]
    if code == 'GB':
        code = 'UK'
    return list(BUSINESS_ID_REQUIREMENTS.get(code, DEFAULT_BUSINESS_ID_REQUIREMENTS))
