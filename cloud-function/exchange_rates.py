"""
Exchange rate API client for converting tax breakdowns into display currencies.

Live rates are cached per currency pair for one hour. When the API is
unreachable a static fallback table is used and every rate taken from it is
tagged as such, with the date the table was last reviewed.
"""

import os
import requests
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Optional, Tuple
import config
from exceptions import UnsupportedCurrency

logger = logging.getLogger(__name__)

LIVE = 'live'
CACHE = 'cache'
FALLBACK = 'fallback'
IDENTITY = 'identity'

# Approximate USD-based rates. Not authoritative; see config.FALLBACK_RATES_AS_OF
FALLBACK_RATES: Dict[str, Decimal] = {
    'USD': Decimal('1'),
    'EUR': Decimal('0.93'),
    'GBP': Decimal('0.79'),
    'JPY': Decimal('144.17'),
    'CAD': Decimal('1.34'),
    'AUD': Decimal('1.49'),
    'NZD': Decimal('1.63'),
    'CHF': Decimal('0.89'),
    'CNY': Decimal('7.24'),
    'INR': Decimal('82.97'),
    'MXN': Decimal('17.07'),
    'BRL': Decimal('4.92'),
    'SEK': Decimal('10.45'),
    'DKK': Decimal('6.94'),
    'PLN': Decimal('4.02'),
    'CZK': Decimal('22.80'),
    'HUF': Decimal('358.00'),
    'RON': Decimal('4.63'),
    'SGD': Decimal('1.35'),
}


@dataclass(frozen=True)
class ExchangeRate:
    """Rate converting one unit of `base` into `target`"""
    base: str
    target: str
    rate: Decimal
    source: str
    as_of: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK


class ExchangeRateClient:
    """Client for fetching exchange rates from exchangerate-api.com"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the exchange rate client.

        Args:
            api_key: Optional API key (free tier doesn't require it)
            base_url: API endpoint; the base currency is appended as a path segment
            timeout: Request timeout in seconds
            cache_ttl: Seconds a fetched rate stays valid
            clock: Monotonic time source, replaceable in tests
        """
        self.base_url = (
            base_url
            or os.environ.get('EXCHANGE_RATE_API_BASE_URL')
            or config.EXCHANGE_RATE_API_BASE_URL
        )
        self.api_key = api_key or os.environ.get('EXCHANGE_RATE_API_KEY') or config.EXCHANGE_RATE_API_KEY
        self.timeout = timeout if timeout is not None else config.EXCHANGE_RATE_TIMEOUT_SECONDS
        self.cache_ttl = cache_ttl if cache_ttl is not None else config.EXCHANGE_RATE_CACHE_TTL_SECONDS
        self.clock = clock
        # (base, target) -> (rate, fetched_at); concurrent writers simply overwrite
        self.cache: Dict[Tuple[str, str], Tuple[ExchangeRate, float]] = {}

    def fetch_rates(self, base: str = 'USD') -> Tuple[Dict[str, Decimal], str]:
        """
        Fetch current exchange rates from `base` to all currencies.

        Args:
            base: Base currency code

        Returns:
            Tuple of (rates dictionary, date string)
            - rates: Dictionary mapping currency codes to exchange rates (base to currency)
            - date: Date string (YYYY-MM-DD) from the API response

        Raises:
            requests.RequestException: If the API request fails
            ValueError: If a rate in the response is not a positive number
        """
        base = base.upper()
        url = f"{self.base_url.rstrip('/')}/{base}"
        params = {'api_key': self.api_key} if self.api_key else None

        logger.info(f"Fetching exchange rates from {url}")
        response = requests.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()

        data = response.json()
        rates = {
            currency.upper(): Decimal(str(value))
            for currency, value in (data.get('rates') or {}).items()
        }

        api_date = data.get('date')
        if api_date:
            api_date = str(api_date)[:10]
        else:
            api_date = datetime.now(timezone.utc).strftime('%Y-%m-%d')
            logger.warning("API response did not include date field, using current UTC date")

        for currency, value in rates.items():
            if not value.is_finite() or value <= 0:
                raise ValueError(f"API returned an invalid rate for {currency}: {value}")

        rates[base] = Decimal('1')

        fetched_at = self.clock()
        for target, value in rates.items():
            self.cache[(base, target)] = (
                ExchangeRate(base=base, target=target, rate=value, source=LIVE, as_of=api_date),
                fetched_at,
            )

        logger.info(f"Fetched {len(rates)} exchange rates for {base} on {api_date}")
        return rates, api_date

    def _cached(self, base: str, target: str) -> Optional[ExchangeRate]:
        entry = self.cache.get((base, target))
        if entry is None:
            return None
        rate, fetched_at = entry
        if self.clock() - fetched_at >= self.cache_ttl:
            return None
        return replace(rate, source=CACHE)

    def get_rate(self, base: str, target: str) -> ExchangeRate:
        """
        Get the exchange rate from `base` to `target`.

        Uses the cache when fresh, otherwise the live API, otherwise the static
        fallback table.

        Args:
            base: Source currency code (e.g., 'USD')
            target: Target currency code (e.g., 'EUR')

        Returns:
            ExchangeRate tagged with its source

        Raises:
            UnsupportedCurrency: If the live API failed and no fallback rate exists
        """
        base = base.upper()
        target = target.upper()

        if base == target:
            return ExchangeRate(base=base, target=target, rate=Decimal('1'), source=IDENTITY)

        cached = self._cached(base, target)
        if cached is not None:
            return cached

        try:
            rates, api_date = self.fetch_rates(base)
        except (requests.RequestException, ValueError, InvalidOperation) as e:
            logger.warning(f"Exchange API failed for {base}, using fallback rates: {e}")
            return self.fallback_rate(base, target)

        rate = rates.get(target)
        if rate is None:
            logger.warning(f"Exchange rate not found for {base}->{target} in live data, using fallback")
            return self.fallback_rate(base, target)

        return ExchangeRate(base=base, target=target, rate=rate, source=LIVE, as_of=api_date)

    def fallback_rate(self, base: str, target: str) -> ExchangeRate:
        """
        Rate from the static fallback table (USD based, cross rates via USD).

        Raises:
            UnsupportedCurrency: If either currency is missing from the table
        """
        base = base.upper()
        target = target.upper()
        for currency in (base, target):
            if currency not in FALLBACK_RATES:
                raise UnsupportedCurrency(currency)

        rate = FALLBACK_RATES[target] / FALLBACK_RATES[base]
        return ExchangeRate(
            base=base,
            target=target,
            rate=rate,
            source=FALLBACK,
            as_of=config.FALLBACK_RATES_AS_OF,
        )

    def convert(self, amount: Decimal, base: str, target: str) -> Tuple[Decimal, ExchangeRate]:
        """
        Convert an amount between currencies.

        Args:
            amount: Amount in `base`
            base: Source currency code
            target: Target currency code

        Returns:
            Tuple of (converted amount, rate used)
        """
        rate = self.get_rate(base, target)
        return Decimal(amount) * rate.rate, rate
