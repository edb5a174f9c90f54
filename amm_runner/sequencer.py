"""Deployment sequencer.

A deployment plan is an ordered list of steps. Each step submits exactly
one transaction and the sequencer waits for its confirmation before the
next step is submitted, so:

- later steps can reference addresses produced by earlier deployments
  (via `Ref`), and
- the signing account's nonce advances in program order.

The first failing step aborts the plan. Confirmed steps are not undone;
the raised DeploymentError lists what was already deployed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from amm_runner.errors import DeploymentError, LedgerError
from amm_runner.ledger.base import Ledger, Receipt
from amm_runner.models.records import ContractArtifact, DeployedContract
from amm_runner.models.types import is_valid_address

logger = structlog.get_logger()


@dataclass(frozen=True)
class Ref:
    """Placeholder for the address deployed by an earlier step."""

    step: str


@dataclass(frozen=True)
class DeployContract:
    """Deploy `artifact` with the given constructor arguments."""

    name: str
    artifact: ContractArtifact
    constructor_args: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Call:
    """Call a state-changing method on a deployed contract.

    contract is either a Ref to a deployment step of the same plan or an
    already deployed contract.
    """

    name: str
    contract: Ref | DeployedContract
    method: str
    args: tuple[Any, ...] = ()


Step = DeployContract | Call


@dataclass
class DeploymentResult:
    """Confirmed outcome of a plan: contracts by step name, receipts by step name."""

    contracts: dict[str, DeployedContract] = field(default_factory=dict)
    receipts: dict[str, Receipt] = field(default_factory=dict)

    def __getitem__(self, step: str) -> DeployedContract:
        return self.contracts[step]

    @property
    def addresses(self) -> dict[str, str]:
        return {name: contract.address for name, contract in self.contracts.items()}


def _refs(values: Iterable[Any]) -> list[Ref]:
    return [v for v in values if isinstance(v, Ref)]


def validate_plan(steps: Sequence[Step]) -> None:
    """Check step names are unique and every Ref points at an earlier deployment.

    Raises:
        ValueError: If the plan is malformed
    """
    seen: set[str] = set()
    deployed: set[str] = set()
    for step in steps:
        if step.name in seen:
            raise ValueError(f"Duplicate step name: {step.name}")

        if isinstance(step, DeployContract):
            refs = _refs(step.constructor_args)
        else:
            refs = _refs(step.args)
            if isinstance(step.contract, Ref):
                refs.append(step.contract)

        for ref in refs:
            if ref.step not in deployed:
                raise ValueError(
                    f"Step '{step.name}' references '{ref.step}', which is not an earlier deployment"
                )

        seen.add(step.name)
        if isinstance(step, DeployContract):
            deployed.add(step.name)


class DeploymentSequencer:
    """Execute deployment plans one confirmed transaction at a time."""

    def __init__(self, ledger: Ledger) -> None:
        self.ledger = ledger

    @staticmethod
    def _resolve(value: Any, contracts: Mapping[str, DeployedContract]) -> Any:
        if isinstance(value, Ref):
            return contracts[value.step].address
        return value

    async def _run_step(self, step: Step, result: DeploymentResult) -> Receipt:
        if isinstance(step, DeployContract):
            args = [self._resolve(a, result.contracts) for a in step.constructor_args]
            pending = await self.ledger.deploy_contract(step.artifact, args)
        else:
            target = step.contract
            if isinstance(target, Ref):
                target = result.contracts[target.step]
            args = [self._resolve(a, result.contracts) for a in step.args]
            pending = await self.ledger.call_contract(target, step.method, args)

        logger.info("step_submitted", step=step.name, tx_hash=pending.tx_hash, nonce=pending.nonce)
        return await self.ledger.wait_for_confirmation(pending)

    async def run(self, steps: Sequence[Step]) -> DeploymentResult:
        """Execute `steps` in order, waiting for each confirmation.

        Raises:
            ValueError: If the plan is malformed (nothing is submitted)
            DeploymentError: On the first step that fails to submit or confirm
        """
        validate_plan(steps)
        result = DeploymentResult()

        for position, step in enumerate(steps, start=1):
            logger.debug("step_started", step=step.name, position=position, total=len(steps))
            try:
                receipt = await self._run_step(step, result)
            except LedgerError as err:
                logger.error(
                    "step_failed",
                    step=step.name,
                    position=position,
                    error=str(err),
                    confirmed=result.addresses,
                )
                raise DeploymentError(step.name, str(err), result.addresses) from err

            result.receipts[step.name] = receipt
            if isinstance(step, DeployContract):
                if not is_valid_address(receipt.contract_address):
                    raise DeploymentError(
                        step.name,
                        f"receipt has no usable contract address: {receipt.contract_address!r}",
                        result.addresses,
                    )
                result.contracts[step.name] = DeployedContract.from_artifact(
                    receipt.contract_address, step.artifact
                )

            logger.info(
                "step_confirmed",
                step=step.name,
                tx_hash=receipt.tx_hash,
                block=receipt.block_number,
                address=receipt.contract_address,
            )

        return result


__all__ = [
    "Ref",
    "DeployContract",
    "Call",
    "Step",
    "DeploymentResult",
    "DeploymentSequencer",
    "validate_plan",
]
