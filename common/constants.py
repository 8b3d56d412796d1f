"""Project-wide constants (size thresholds, chunk sizes, relay limits, defaults)."""

# Content classification
STRATEGY_THRESHOLD_BYTES: int = 20_000  # normal storage holds content up to and including this size
MAX_CONTENT_SIZE_BYTES: int = 60_000  # hard cap used by callers writing fixed-size fields
BINARY_DETECTION_WINDOW: int = 8192

# Chunked storage
OPTIMAL_CHUNK_SIZE: int = 80_000
CHUNKED_STORAGE_SEGMENT_BYTES: int = 20_000
MAX_CHUNKS: int = 255
MAX_CONCURRENT_CHUNK_CHECKS: int = 32
REFERENCE_VERSION: str = "0.0.1"

# Storage contracts (write targets for encoded calls)
STORAGE_CONTRACT_ADDRESS: str = "0x00000000db40fcb9f4466330982372e27fd7bbf5"
CHUNKED_STORAGE_CONTRACT_ADDRESS: str = "0x000000a822f09af21b1951b65223f54ea392e6c6"
STORAGE_PUT_FUNCTION: str = "put"
CHUNKED_STORAGE_PUT_FUNCTION: str = "put"

# Relay batching limits
MAX_TRANSACTIONS_PER_BATCH: int = 100
MAX_BATCH_SIZE_BYTES: int = 900_000
MAX_TRANSACTION_SIZE_BYTES: int = 100_000
TRANSACTION_SIZE_OVERHEAD_BYTES: int = 200
REQUEST_SIZE_OVERHEAD_BYTES: int = 300

# Retry defaults (milliseconds)
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_INITIAL_DELAY_MS: int = 1000
DEFAULT_MAX_DELAY_MS: int = 30_000
DEFAULT_BACKOFF_MULTIPLIER: float = 2

# Confirmation defaults
DEFAULT_CONFIRMATIONS: int = 1
DEFAULT_CONFIRMATION_TIMEOUT_MS: int = 60_000
INTER_BATCH_CONFIRMATION_TIMEOUT_MS: int = 30_000
RECEIPT_POLL_INTERVAL_SECONDS: float = 1.0

# Relay session / funding
SESSION_EXPIRES_IN_SECONDS: int = 3600
PAYMENT_SETTLE_DELAY_SECONDS: float = 2.0
RELAY_DOMAIN_NAME: str = "Net Relay Service"
RELAY_DOMAIN_VERSION: str = "1"
PAYMENT_HEADER: str = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER: str = "X-PAYMENT-RESPONSE"

# HTTP
DEFAULT_HTTP_TIMEOUT_SECONDS: float = 30.0
STORAGE_URL_BASE: str = "https://storedon.net/net"
