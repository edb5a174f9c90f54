"""Records produced by a run: artifacts, deployments, swaps and summaries.

Artifacts, deployments and swap records are plain dataclasses passed
between pipeline stages. The run summaries are pydantic models so the CLI
can emit them as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from amm_runner.models.types import Address, Uint256


@dataclass(frozen=True)
class ContractArtifact:
    """Compiler output for one contract kind."""

    name: str
    abi: list[dict[str, Any]] = field(repr=False)
    bytecode: str = field(repr=False)

    def has_function(self, method: str) -> bool:
        return any(item.get("type") == "function" and item.get("name") == method for item in self.abi)


@dataclass(frozen=True)
class DeployedContract:
    """A contract instance confirmed on the ledger."""

    address: str
    kind: str
    abi: list[dict[str, Any]] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def from_artifact(cls, address: str, artifact: ContractArtifact) -> DeployedContract:
        return cls(address=address, kind=artifact.name, abi=artifact.abi)


@dataclass
class SwapRecord:
    """Observation of one swap iteration.

    amount_out_expected is the pool's own getAmountOut view read just before
    submitting; the balances are the caller's counter-asset balance around
    the swap and are the ground truth.
    """

    index: int
    amount_in: int
    amount_out_expected: int | None = None
    balance_before: int | None = None
    balance_after: int | None = None
    success: bool = False
    tx_hash: str | None = None
    error: str | None = None

    @property
    def amount_received(self) -> int | None:
        if self.balance_before is None or self.balance_after is None:
            return None
        return self.balance_after - self.balance_before


class ReservesView(BaseModel):
    """Pool reserves as read from the ledger."""

    reserve_a: Uint256
    reserve_b: Uint256


class PoolRunSummary(BaseModel):
    """Outcome of the pool pipeline."""

    deployer: Address
    native_balance: Uint256
    token_a: Address
    token_b: Address
    pool: Address
    reserves_after_liquidity: ReservesView
    reserves_final: ReservesView | None = None
    swaps: list[SwapRecord] = Field(default_factory=list)
    swap_error: str | None = None

    @property
    def successful_swaps(self) -> int:
        return sum(1 for record in self.swaps if record.success)

    @property
    def failed_swaps(self) -> int:
        return sum(1 for record in self.swaps if not record.success)

    @property
    def completed(self) -> bool:
        return self.swap_error is None and self.failed_swaps == 0


class CollectiblesRunSummary(BaseModel):
    """Outcome of the collectibles pipeline."""

    deployer: Address
    native_balance: Uint256
    token_name: str
    token_symbol: str
    token: Address
    token_supply: Uint256
    collection_name: str
    collection_symbol: str
    collection: Address
    minted: int
    collection_supply: int
    burned: Uint256
    burn_address: Address


__all__ = [
    "ContractArtifact",
    "DeployedContract",
    "SwapRecord",
    "ReservesView",
    "PoolRunSummary",
    "CollectiblesRunSummary",
]
