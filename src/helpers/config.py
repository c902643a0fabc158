"""Configuration management and environment variable utilities."""

import os
from pathlib import Path

from dotenv import load_dotenv

from src.helpers.constants import (
    DEFAULT_CONFIRMATIONS,
    DEFAULT_MAX_PAYOUT_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
)


# Load environment variables from .env file
load_dotenv()


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from src.helpers.config import get_required_env

        token = get_required_env("DISCORD_TOKEN")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable.

    Args:
        key: Environment variable name
        default: Value used when the variable is unset or blank

    Returns:
        Parsed integer

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{key} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


def get_float_env(key: str, default: float) -> float:
    """Get a float environment variable.

    Args:
        key: Environment variable name
        default: Value used when the variable is unset or blank

    Returns:
        Parsed float

    Raises:
        ValueError: If the variable is set but is not a number
    """
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        msg = f"{key} must be a number, got {raw!r}"
        raise ValueError(msg) from None


def get_discord_token(token: str | None = None) -> str:
    """Get the Discord bot token from parameter or environment.

    Raises:
        ValueError: If no token is given and DISCORD_TOKEN is not set
    """
    if token:
        return token
    return get_required_env("DISCORD_TOKEN")


def get_chain_config_dir() -> Path:
    """Directory holding one TOML file per monitored chain."""
    return Path(get_optional_env("CHAIN_CONFIG_DIR", "pbaas") or "pbaas")


def get_confirmations() -> int:
    """Blocks required on top of a registration before payout."""
    return get_int_env("CONFIRMATIONS", DEFAULT_CONFIRMATIONS)


def get_poll_interval() -> float:
    return get_float_env("POLL_INTERVAL", DEFAULT_POLL_INTERVAL)


def get_poll_timeout() -> float:
    return get_float_env("POLL_TIMEOUT", DEFAULT_POLL_TIMEOUT)


def get_max_payout_attempts() -> int:
    return get_int_env("MAX_PAYOUT_ATTEMPTS", DEFAULT_MAX_PAYOUT_ATTEMPTS)


__all__ = [
    "get_chain_config_dir",
    "get_confirmations",
    "get_discord_token",
    "get_float_env",
    "get_int_env",
    "get_max_payout_attempts",
    "get_optional_env",
    "get_poll_interval",
    "get_poll_timeout",
    "get_required_env",
]
