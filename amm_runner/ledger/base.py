"""Ledger protocol: submit transactions, read state, wait for confirmation.

Every method is a coroutine; each call is a suspension point. A ledger
signs with exactly one account and assigns nonces in submission order, so
callers must not submit from the same account concurrently.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from amm_runner.models.records import ContractArtifact, DeployedContract


@dataclass
class Account:
    """The signing identity and its locally tracked nonce.

    nonce is None until the ledger has fetched it from the network; after
    that it is advanced once per accepted submission and never decreases.
    """

    address: str
    nonce: int | None = None

    def advance_nonce(self) -> int:
        """Consume the current nonce and return it."""
        if self.nonce is None:
            raise RuntimeError("Nonce has not been initialized")
        used = self.nonce
        self.nonce += 1
        return used


@dataclass(frozen=True)
class PendingTransaction:
    """A submitted, not yet confirmed transaction."""

    tx_hash: str
    nonce: int
    description: str
    is_deployment: bool = False


@dataclass(frozen=True)
class Receipt:
    """A confirmed transaction.

    contract_address is set only for deployments.
    """

    tx_hash: str
    block_number: int
    gas_used: int = 0
    contract_address: str | None = None


class Ledger(Protocol):
    """Blockchain client used by the sequencer and swap driver."""

    account: Account

    async def get_balance(self, address: str) -> int:
        """Native balance of `address` in wei."""
        ...

    async def deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any]
    ) -> PendingTransaction:
        """Submit a deployment transaction.

        Raises:
            TransactionReverted: If the node rejects the deployment up front
        """
        ...

    async def call_contract(
        self, contract: DeployedContract, method: str, args: Sequence[Any]
    ) -> PendingTransaction:
        """Submit a state-changing contract call.

        Raises:
            TransactionReverted: If gas estimation shows the call would revert
        """
        ...

    async def read_contract(self, contract: DeployedContract, method: str, args: Sequence[Any] = ()) -> Any:
        """Evaluate a view function against the latest state.

        Raises:
            TransactionReverted: If the view reverts
        """
        ...

    async def wait_for_confirmation(self, pending: PendingTransaction) -> Receipt:
        """Block until `pending` is mined.

        Raises:
            TransactionReverted: If it was mined with a failure status
            ConfirmationTimeout: If it is not mined within the ledger's timeout
        """
        ...


__all__ = ["Account", "PendingTransaction", "Receipt", "Ledger"]
