"""
Maps raw country codes to canonical tax regime keys.
"""

from typing import Optional, Tuple

# EU member states (post UK exit)
EU_MEMBER_STATES = frozenset({
    'AT', 'BE', 'BG', 'CY', 'CZ', 'DE', 'DK', 'EE', 'ES', 'FI', 'FR', 'GR', 'HR', 'HU',
    'IE', 'IT', 'LT', 'LU', 'LV', 'MT', 'NL', 'PL', 'PT', 'RO', 'SE', 'SI', 'SK',
})

# Countries sharing a regime key
_GROUPED_CODES = {
    'GB': 'UK',  # EU rates and legal text no longer apply
    'AU': 'AU',
    'NZ': 'AU',  # grouped for GST
}


def resolve(raw_country_code: str) -> str:
    """
    Resolve a country code to the regime key used by the tax registry.

    Malformed codes are returned unchanged; they fail at registry lookup.

    Args:
        raw_country_code: ISO-3166 alpha-2 code, uppercase (e.g. 'FR', 'GB')

    Returns:
        'EU' for member states, 'UK' for GB, 'AU' for AU/NZ, otherwise the code itself
    """
    if raw_country_code in EU_MEMBER_STATES:
        return 'EU'
    return _GROUPED_CODES.get(raw_country_code, raw_country_code)


def split_jurisdiction_code(code: str) -> Tuple[str, Optional[str]]:
    """
    Split a jurisdiction code into country and sub-region.

    'US-CA' -> ('US', 'CA'); 'FR' -> ('FR', None)
    """
    country, _, subregion = code.partition('-')
    return country, subregion or None
