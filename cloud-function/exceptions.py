"""
Errors raised by the tax engine.

Every failure is explicit: a calculation either returns a complete breakdown
or raises one of these. Callers must not issue an invoice on error.
"""


class TaxEngineError(Exception):
    """Base class for tax engine errors"""


class UnsupportedJurisdiction(TaxEngineError):
    """No tax regime is configured for the buyer's jurisdiction"""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unsupported jurisdiction: {code}")


class UnsupportedSubregion(TaxEngineError):
    """A sales tax regime has no rule for the requested state/province"""

    def __init__(self, code: str, subregion):
        self.code = code
        self.subregion = subregion
        super().__init__(f"No tax config for state: {subregion} (jurisdiction {code})")


class MisconfiguredRegime(TaxEngineError):
    """Regime table entry is internally inconsistent"""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Misconfigured tax regime '{key}': {reason}")


class InvalidLineItem(TaxEngineError, ValueError):
    """Line item cannot be used as a taxable amount"""


class UnsupportedCurrency(TaxEngineError):
    """No exchange rate is known for a currency"""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"No exchange rate available for {currency}")
