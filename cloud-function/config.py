"""
Configuration constants for the invoice tax engine.
"""

# Exchange Rate API configuration
EXCHANGE_RATE_API_BASE_URL = "https://api.exchangerate-api.com/v4/latest"
EXCHANGE_RATE_API_KEY = None  # Set via environment variable or Secret Manager
EXCHANGE_RATE_TIMEOUT_SECONDS = 5
EXCHANGE_RATE_CACHE_TTL_SECONDS = 3600  # 1 hour

# Date the static fallback rates were last reviewed (YYYY-MM-DD)
FALLBACK_RATES_AS_OF = "2024-06-01"

# Tax amounts are always computed and reported in this currency
REPORTING_CURRENCY = "USD"

# Buyer VAT IDs carrying this prefix qualify for intra-community reverse charge
EU_VAT_PREFIX = "EU"

# Display amounts are rounded to this many decimal places
DISPLAY_DECIMAL_PLACES = 2

# Logging configuration
LOG_LEVEL = "INFO"
