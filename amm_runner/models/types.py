"""Shared type definitions for addresses and token amounts.

These types are used across the run records and the configuration models.
"""

import re
from typing import Annotated, Any, TypeGuard

from pydantic import BeforeValidator, Field

from amm_runner.constants import UINT256_MAX


def validate_uint256(value: Any) -> int:
    """Validate that a value is a non-negative integer that fits in uint256.

    Args:
        value: Value to validate (int or decimal string)

    Returns:
        The value as an int

    Raises:
        ValueError: If value is negative, not an integer, or above 2^256-1
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 must be an integer, got bool")

    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err

    if not isinstance(value, int):
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")
    return value


# Ethereum address (40 hex chars after 0x prefix)
ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
Address = Annotated[str, Field(pattern=ADDRESS_PATTERN)]

# 256-bit unsigned integer (accepts decimal strings)
Uint256 = Annotated[
    int,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer"),
]


def normalize_address(address: str) -> str:
    """Normalize an Ethereum address to lowercase with 0x prefix.

    Checksummed and lowercase forms of the same address compare equal
    after normalization.
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr
    return addr


def is_valid_address(address: Any) -> TypeGuard[str]:
    """True for a 0x-prefixed, 40-hex-digit string (checksum case is not verified)."""
    return isinstance(address, str) and re.fullmatch(ADDRESS_PATTERN, address) is not None


def same_address(a: str, b: str) -> bool:
    """Compare two addresses ignoring checksum case."""
    return normalize_address(a) == normalize_address(b)
