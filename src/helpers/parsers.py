"""Parsing utilities for common data transformations."""

from decimal import Decimal

from typing import Any

from src.helpers.constants import BLOCK_HASH_LENGTH, SATS_PER_COIN


def parse_block_hash(raw_hash: bytes) -> str:
    """Hex-encode a raw block hash received from the ZMQ feed.

    Args:
        raw_hash: Raw block hash bytes (second frame of a hashblock message)

    Returns:
        str: Lowercase hex block hash

    Raises:
        ValueError: If the frame is not exactly 32 bytes

    Example:
        >>> parse_block_hash(bytes(32))
        '0000000000000000000000000000000000000000000000000000000000000000'
    """
    if len(raw_hash) != BLOCK_HASH_LENGTH:
        msg = f"Expected {BLOCK_HASH_LENGTH}-byte block hash, got {len(raw_hash)} bytes"
        raise ValueError(msg)
    return raw_hash.hex()


def sats_to_coins(sats: int) -> Decimal:
    """Convert an integer amount in sats to a decimal coin amount.

    Args:
        sats: Amount in the smallest currency unit

    Returns:
        Decimal: Amount in whole coins, exact to 8 decimal places

    Example:
        >>> sats_to_coins(950000)
        Decimal('0.00950000')
    """
    return (Decimal(sats) / SATS_PER_COIN).quantize(Decimal("0.00000001"))


def parse_creation_height(history: dict[str, Any]) -> int:
    """Extract the block height at which an identity was first registered.

    Args:
        history: Result of getidentityhistory

    Returns:
        int: Lowest height found in the identity's history

    Raises:
        ValueError: If the history carries no heights at all

    Example:
        >>> parse_creation_height({"history": [{"height": 120}, {"height": 150}]})
        120
    """
    heights = [
        int(entry["height"])
        for entry in history.get("history", [])
        if isinstance(entry, dict) and entry.get("height") is not None
    ]
    if not heights:
        msg = "Identity history contains no block heights"
        raise ValueError(msg)
    return min(heights)


__all__ = [
    "parse_block_hash",
    "parse_creation_height",
    "sats_to_coins",
]
