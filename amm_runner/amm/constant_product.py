"""Constant-product AMM math.

SimpleSwap uses the constant product formula x * y = k with the fee taken
from the input amount before pricing:

    amount_in_with_fee = amount_in * 997 // 1000
    amount_out = amount_in_with_fee * reserve_out // (reserve_in + amount_in_with_fee)

Both divisions floor. All arithmetic is on Python ints; floats would let
rounding push the post-swap product below the pre-swap product.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from amm_runner.constants import FEE_DENOMINATOR, FEE_NUMERATOR
from amm_runner.errors import InsufficientLiquidity, InvalidAmount, InvalidToken, PricingError
from amm_runner.models.types import same_address

logger = structlog.get_logger()


def _require_int(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")


def quote(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_numerator: int = FEE_NUMERATOR,
    fee_denominator: int = FEE_DENOMINATOR,
) -> int:
    """Calculate the output amount of a swap against a constant-product pool.

    Args:
        amount_in: Input token amount (base units)
        reserve_in: Pool reserve of the input token
        reserve_out: Pool reserve of the output token
        fee_numerator: Share of the input kept after the fee (default 997)
        fee_denominator: Fee denominator (default 1000)

    Returns:
        Output token amount, floored

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientLiquidity: If either reserve is zero
        TypeError: If any argument is not an int
    """
    for name, value in (
        ("amount_in", amount_in),
        ("reserve_in", reserve_in),
        ("reserve_out", reserve_out),
        ("fee_numerator", fee_numerator),
        ("fee_denominator", fee_denominator),
    ):
        _require_int(name, value)

    if fee_denominator <= 0 or not 0 < fee_numerator <= fee_denominator:
        raise ValueError(f"Invalid fee {fee_numerator}/{fee_denominator}")
    if amount_in <= 0:
        raise InvalidAmount(f"Amount must be positive: {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity(
            f"Not enough liquidity: reserve_in={reserve_in}, reserve_out={reserve_out}"
        )

    amount_in_with_fee = amount_in * fee_numerator // fee_denominator
    return amount_in_with_fee * reserve_out // (reserve_in + amount_in_with_fee)


@dataclass(frozen=True)
class PoolReserves:
    """Snapshot of a pool's two reserves."""

    reserve_a: int
    reserve_b: int

    def __post_init__(self) -> None:
        if self.reserve_a < 0 or self.reserve_b < 0:
            raise ValueError(f"Reserves cannot be negative: ({self.reserve_a}, {self.reserve_b})")

    @property
    def product(self) -> int:
        """The constant-product k = reserve_a * reserve_b."""
        return self.reserve_a * self.reserve_b

    def add_liquidity(self, amount_a: int, amount_b: int) -> PoolReserves:
        """Return the reserves after depositing exactly (amount_a, amount_b). No fee."""
        _require_int("amount_a", amount_a)
        _require_int("amount_b", amount_b)
        if amount_a < 0 or amount_b < 0:
            raise InvalidAmount(f"Deposit amounts cannot be negative: ({amount_a}, {amount_b})")
        return PoolReserves(self.reserve_a + amount_a, self.reserve_b + amount_b)


@dataclass
class ConstantProductPool:
    """A two-token pool mirroring the SimpleSwap contract's bookkeeping."""

    token_a: str
    token_b: str
    reserve_a: int = 0
    reserve_b: int = 0
    fee_numerator: int = FEE_NUMERATOR
    fee_denominator: int = FEE_DENOMINATOR

    @property
    def reserves(self) -> PoolReserves:
        return PoolReserves(self.reserve_a, self.reserve_b)

    def is_token_a(self, token_in: str) -> bool:
        """Return True for token A, False for token B.

        Raises:
            InvalidToken: If token_in is neither pool token
        """
        if same_address(token_in, self.token_a):
            return True
        if same_address(token_in, self.token_b):
            return False
        raise InvalidToken(f"Token {token_in} not in pool")

    def get_reserves(self, token_in: str) -> tuple[int, int]:
        """Get reserves ordered as (reserve_in, reserve_out)."""
        if self.is_token_a(token_in):
            return self.reserve_a, self.reserve_b
        return self.reserve_b, self.reserve_a

    def get_token_out(self, token_in: str) -> str:
        """Get the output token for a given input token."""
        return self.token_b if self.is_token_a(token_in) else self.token_a

    def get_amount_out(self, amount_in: int, token_in: str) -> int:
        reserve_in, reserve_out = self.get_reserves(token_in)
        return quote(amount_in, reserve_in, reserve_out, self.fee_numerator, self.fee_denominator)

    def add_liquidity(self, amount_a: int, amount_b: int) -> PoolReserves:
        updated = self.reserves.add_liquidity(amount_a, amount_b)
        self.reserve_a, self.reserve_b = updated.reserve_a, updated.reserve_b
        return updated

    def swap(self, amount_in: int, token_in: str) -> int:
        """Apply a swap to the reserves and return the output amount.

        Raises:
            PricingError: On invalid input, or if the product would decrease
        """
        amount_out = self.get_amount_out(amount_in, token_in)
        before = self.reserves

        if self.is_token_a(token_in):
            after = PoolReserves(self.reserve_a + amount_in, self.reserve_b - amount_out)
        else:
            after = PoolReserves(self.reserve_a - amount_out, self.reserve_b + amount_in)

        if after.product < before.product:
            raise PricingError(f"Constant product decreased: {before.product} -> {after.product}")

        self.reserve_a, self.reserve_b = after.reserve_a, after.reserve_b
        logger.debug(
            "pool_swap_applied",
            token_in=token_in,
            amount_in=amount_in,
            amount_out=amount_out,
            reserve_a=self.reserve_a,
            reserve_b=self.reserve_b,
        )
        return amount_out


__all__ = ["quote", "PoolReserves", "ConstantProductPool"]
