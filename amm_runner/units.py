"""Conversion between human-readable token amounts and base units.

Uses Decimal with enough precision for any uint256 so "50000" with 18
decimals becomes exactly 50000 * 10**18.
"""

from __future__ import annotations

import decimal
from decimal import Decimal

from amm_runner.constants import TOKEN_DECIMALS

# 78 digits of precision: enough for uint256 values (up to ~10^77)
DECIMAL_HIGH_PREC_CONTEXT = decimal.Context(prec=78)


def parse_units(value: str | int | Decimal, decimals: int = TOKEN_DECIMALS) -> int:
    """Convert a decimal amount into integer base units.

    Raises:
        ValueError: If value is negative, not a number, or has more
            fractional digits than `decimals`
    """
    if isinstance(value, float):
        raise TypeError("parse_units does not accept float; pass a string or Decimal")

    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        try:
            amount = Decimal(value)
        except decimal.InvalidOperation as err:
            raise ValueError(f"Not a decimal amount: {value!r}") from err

        if not amount.is_finite() or amount < 0:
            raise ValueError(f"Amount must be a finite non-negative number: {value!r}")

        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Too many decimal places for {decimals} decimals: {value!r}")
        return int(scaled)


def format_units(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Render integer base units as a minimal decimal string ("1.5", "100")."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if frac == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


__all__ = ["parse_units", "format_units"]
