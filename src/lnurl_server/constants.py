"""Protocol constants for the LNURL-pay / LNURL-withdraw bridge."""

# Network base unit; amounts in this currency are never converted.
BASE_CURRENCY = "BTC"

MSAT_PER_SAT = 1000
MIN_SENDABLE_MSAT = 1_000  # 1 sat
MAX_SENDABLE_MSAT = 100_000_000_000  # 1 BTC

# Lookback window for the ledger's price series.
PRICE_RANGE = "ONE_DAY"

LEDGER_TIMEOUT_SECS = 30
CORRELATION_TTL_SECS = 1440
CORRELATION_KEY_PREFIX = "nostrInvoice:"
# Connect and per-command socket timeout for the Redis correlation store.
CORRELATION_STORE_TIMEOUT_SECS = 5

ZAP_REQUEST_KIND = 9734

# Headers forwarded to the ledger for audit and rate limiting.
FORWARDED_HEADERS = ("x-real-ip", "x-forwarded-for")
