"""Swap loop driver.

Repeatedly swaps a fixed input amount through the pool and records the
caller's counter-asset balance around each swap. The driver does not price
swaps itself: it reads the pool's own getAmountOut view for the record and
treats observed balances as the ground truth.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from amm_runner.errors import LedgerError, SwapExecutionError
from amm_runner.ledger.base import Ledger
from amm_runner.models.records import DeployedContract, SwapRecord
from amm_runner.units import format_units

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


class FailurePolicy(str, Enum):
    """What to do after a swap fails."""

    ABORT = "abort"
    CONTINUE = "continue"


@dataclass
class SwapLoopResult:
    """Records gathered by a loop, and the error that halted it if any."""

    records: list[SwapRecord] = field(default_factory=list)
    error: SwapExecutionError | None = None

    @property
    def successful(self) -> list[SwapRecord]:
        return [r for r in self.records if r.success]

    @property
    def failed(self) -> list[SwapRecord]:
        return [r for r in self.records if not r.success]

    @property
    def halted(self) -> bool:
        return self.error is not None


class SwapLoopDriver:
    """Run a fixed number of swaps from one account, one confirmation at a time."""

    def __init__(
        self,
        ledger: Ledger,
        delay_seconds: float = 0.5,
        policy: FailurePolicy = FailurePolicy.ABORT,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the driver.

        Args:
            ledger: Ledger to submit swaps through
            delay_seconds: Pause between iterations (rate limit, not a backoff)
            policy: ABORT stops at the first failure; CONTINUE logs and proceeds
            sleep: Coroutine used for the pause (injectable for tests)
        """
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds cannot be negative: {delay_seconds}")
        self.ledger = ledger
        self.delay_seconds = delay_seconds
        self.policy = policy
        self._sleep = sleep

    async def _swap_once(
        self,
        record: SwapRecord,
        pool: DeployedContract,
        token_in: DeployedContract,
        token_out: DeployedContract,
    ) -> None:
        owner = self.ledger.account.address

        record.balance_before = await self.ledger.read_contract(token_out, "balanceOf", [owner])
        record.amount_out_expected = await self.ledger.read_contract(
            pool, "getAmountOut", [record.amount_in, token_in.address]
        )

        pending = await self.ledger.call_contract(pool, "swap", [record.amount_in, token_in.address])
        record.tx_hash = pending.tx_hash
        receipt = await self.ledger.wait_for_confirmation(pending)

        record.balance_after = await self.ledger.read_contract(token_out, "balanceOf", [owner])
        record.success = True

        logger.info(
            "swap_confirmed",
            index=record.index,
            tx_hash=receipt.tx_hash,
            block=receipt.block_number,
            balance_before=format_units(record.balance_before),
            balance_after=format_units(record.balance_after),
            expected_out=format_units(record.amount_out_expected),
        )

    async def run_swaps(
        self,
        pool: DeployedContract,
        token_in: DeployedContract,
        token_out: DeployedContract,
        amount_per_swap: int,
        count: int,
    ) -> SwapLoopResult:
        """Swap `amount_per_swap` of token_in for token_out `count` times.

        Returns:
            SwapLoopResult with one record per attempted swap. Under ABORT the
            loop stops after the first failed record and sets `error`.
        """
        if amount_per_swap <= 0:
            raise ValueError(f"amount_per_swap must be positive: {amount_per_swap}")
        if count < 1:
            raise ValueError(f"count must be at least 1: {count}")

        result = SwapLoopResult()
        for index in range(1, count + 1):
            if index > 1 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

            record = SwapRecord(index=index, amount_in=amount_per_swap)
            result.records.append(record)
            try:
                await self._swap_once(record, pool, token_in, token_out)
            except LedgerError as err:
                record.error = str(err)
                failure = SwapExecutionError(index, str(err))
                logger.error("swap_failed", index=index, tx_hash=record.tx_hash, error=str(err))
                if self.policy is FailurePolicy.ABORT:
                    result.error = failure
                    logger.warning("swap_loop_halted", index=index, remaining=count - index)
                    break

        logger.info(
            "swap_loop_finished",
            attempted=len(result.records),
            succeeded=len(result.successful),
            failed=len(result.failed),
        )
        return result


__all__ = ["FailurePolicy", "SwapLoopDriver", "SwapLoopResult"]
