"""
Jurisdiction reference data: country code to name, tax type and currency.
"""

from dataclasses import dataclass
from typing import Dict, Optional

VAT = 'VAT'
GST = 'GST'
SALES_TAX = 'SalesTax'
JCT = 'JCT'

TAX_TYPES = (VAT, GST, SALES_TAX, JCT)


@dataclass(frozen=True)
class Jurisdiction:
    """A tax territory (ISO-3166 alpha-2 code or synthetic group such as 'EU')"""
    code: str
    name: str
    tax_type: str
    currency: str


# code: (name, tax type, currency)
_JURISDICTION_DATA = {
    # EU member states
    'AT': ('Austria', VAT, 'EUR'),
    'BE': ('Belgium', VAT, 'EUR'),
    'BG': ('Bulgaria', VAT, 'BGN'),
    'HR': ('Croatia', VAT, 'EUR'),
    'CY': ('Cyprus', VAT, 'EUR'),
    'CZ': ('Czech Republic', VAT, 'CZK'),
    'DK': ('Denmark', VAT, 'DKK'),
    'EE': ('Estonia', VAT, 'EUR'),
    'FI': ('Finland', VAT, 'EUR'),
    'FR': ('France', VAT, 'EUR'),
    'DE': ('Germany', VAT, 'EUR'),
    'GR': ('Greece', VAT, 'EUR'),
    'HU': ('Hungary', VAT, 'HUF'),
    'IE': ('Ireland', VAT, 'EUR'),
    'IT': ('Italy', VAT, 'EUR'),
    'LV': ('Latvia', VAT, 'EUR'),
    'LT': ('Lithuania', VAT, 'EUR'),
    'LU': ('Luxembourg', VAT, 'EUR'),
    'MT': ('Malta', VAT, 'EUR'),
    'NL': ('Netherlands', VAT, 'EUR'),
    'PL': ('Poland', VAT, 'PLN'),
    'PT': ('Portugal', VAT, 'EUR'),
    'RO': ('Romania', VAT, 'RON'),
    'SK': ('Slovakia', VAT, 'EUR'),
    'SI': ('Slovenia', VAT, 'EUR'),
    'ES': ('Spain', VAT, 'EUR'),
    'SE': ('Sweden', VAT, 'SEK'),

    # Synthetic groups and post-exit UK
    'EU': ('European Union', VAT, 'EUR'),
    'UK': ('United Kingdom', VAT, 'GBP'),
    'GB': ('United Kingdom', VAT, 'GBP'),

    # Other VAT countries
    'CH': ('Switzerland', VAT, 'CHF'),
    'NO': ('Norway', VAT, 'NOK'),
    'ZA': ('South Africa', VAT, 'ZAR'),
    'MX': ('Mexico', VAT, 'MXN'),
    'BR': ('Brazil', VAT, 'BRL'),
    'AR': ('Argentina', VAT, 'ARS'),
    'CL': ('Chile', VAT, 'CLP'),
    'CO': ('Colombia', VAT, 'COP'),
    'TR': ('Turkey', VAT, 'TRY'),
    'CN': ('China', VAT, 'CNY'),
    'KR': ('South Korea', VAT, 'KRW'),
    'AE': ('United Arab Emirates', VAT, 'AED'),
    'SA': ('Saudi Arabia', VAT, 'SAR'),

    # GST countries
    'AU': ('Australia', GST, 'AUD'),
    'NZ': ('New Zealand', GST, 'NZD'),
    'CA': ('Canada', GST, 'CAD'),
    'SG': ('Singapore', GST, 'SGD'),
    'IN': ('India', GST, 'INR'),

    # Sales tax
    'US': ('United States', SALES_TAX, 'USD'),

    # Consumption tax
    'JP': ('Japan', JCT, 'JPY'),
}

JURISDICTIONS: Dict[str, Jurisdiction] = {
    code: Jurisdiction(code=code, name=name, tax_type=tax_type, currency=currency)
    for code, (name, tax_type, currency) in _JURISDICTION_DATA.items()
}


def get_jurisdiction(code: str) -> Optional[Jurisdiction]:
    """
    Look up a jurisdiction by code.

    Sub-regional codes ('US-CA') resolve to their country ('US').

    Args:
        code: ISO country code or synthetic group code

    Returns:
        Jurisdiction, or None if the code is unknown
    """
    if not code:
        return None
    country = code.upper().split('-', 1)[0]
    return JURISDICTIONS.get(country)


def get_country_name(country_code: str) -> str:
    """
    Get country name from country code.

    Args:
        country_code: ISO country code (e.g., 'US', 'GB')

    Returns:
        Country name or country code if not found
    """
    jurisdiction = get_jurisdiction(country_code)
    return jurisdiction.name if jurisdiction else country_code


def get_currency(country_code: str, default: Optional[str] = None) -> Optional[str]:
    """Currency used in a jurisdiction, or `default` if unknown."""
    jurisdiction = get_jurisdiction(country_code)
    return jurisdiction.currency if jurisdiction else default
