"""Common configuration constants used across the application."""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

RPC_TIMEOUT = 60.0
"""Timeout for daemon RPC calls (sendcurrency can be slow to return)"""

# Retry Configuration
MAX_RETRIES = 5
"""Default maximum number of retry attempts"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 60.0
"""Maximum delay between retries in seconds"""

# Cashback Economics
SATS_PER_COIN = 100_000_000
"""Smallest currency units per whole coin"""

NETWORK_FEE_DEDUCTION = 20_000
"""Sats withheld from the referrer output to cover the network fee"""

DEFAULT_CONFIRMATIONS = 10
"""Blocks required on top of a registration before it is paid out"""

DEFAULT_MAX_PAYOUT_ATTEMPTS = 5
"""Failed payout operations tolerated before a cashback is no longer offered"""

# Operation Polling
DEFAULT_POLL_INTERVAL = 0.1
"""Delay between z_getoperationstatus calls in seconds"""

DEFAULT_POLL_TIMEOUT = 300.0
"""Wall-clock limit for a single payout operation in seconds"""

# Block Feed
ZMQ_BLOCK_TOPIC = b"hashblock"
"""ZMQ topic carrying raw block hashes"""

BLOCK_HASH_LENGTH = 32
"""Length of a raw block hash in bytes"""

# Shutdown
NOTIFIER_DRAIN_TIMEOUT = 10.0
"""Seconds the notifier is given to flush queued events on shutdown"""

DISCORD_API_BASE = "https://discord.com/api/v10"
"""Discord REST API base URL"""
