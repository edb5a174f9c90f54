"""Constant-product AMM pricing."""

from amm_runner.amm.constant_product import ConstantProductPool, PoolReserves, quote

__all__ = ["quote", "PoolReserves", "ConstantProductPool"]
