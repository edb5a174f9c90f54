"""Ledger backed by a JSON-RPC node through web3.py.

Transactions are built by web3 (gas and fee fields filled from the node),
signed locally with eth_account and sent raw. Nonces are fetched once from
the node ("pending") and then advanced locally per submission.

Every failure talking to the node (reverts, RPC errors, dropped
connections) leaves this module as a LedgerError subclass.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import aiohttp
import structlog
from eth_account import Account as EthAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from amm_runner.errors import ConfirmationTimeout, LedgerError, TransactionReverted
from amm_runner.ledger.base import Account, PendingTransaction, Receipt
from amm_runner.models.records import ContractArtifact, DeployedContract

logger = structlog.get_logger()

# RPC-level failures plus transport failures of the aiohttp-based provider
NODE_ERRORS: tuple[type[BaseException], ...] = (
    Web3Exception,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
)


def _checksum_args(args: Sequence[Any]) -> list[Any]:
    """Checksum anything that looks like an address; web3 rejects lowercase ones."""
    out: list[Any] = []
    for arg in args:
        if isinstance(arg, str) and Web3.is_address(arg):
            out.append(Web3.to_checksum_address(arg))
        else:
            out.append(arg)
    return out


def _revert_reason(err: ContractLogicError) -> str:
    return getattr(err, "message", None) or str(err)


class Web3Ledger:
    """Ledger implementation talking to a real node."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        *,
        chain_id: int | None = None,
        confirmation_timeout: float = 120.0,
        poll_latency: float = 1.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            rpc_url: HTTP RPC URL of the node
            private_key: Hex private key of the signing account
            chain_id: Chain id for replay protection (fetched when None)
            confirmation_timeout: Seconds to wait for a receipt
            poll_latency: Seconds between receipt polls
            w3: Pre-built AsyncWeb3 instance (used in tests)
        """
        self.w3 = w3 if w3 is not None else AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._signer = EthAccount.from_key(private_key)
        self.account = Account(address=self._signer.address)
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout
        self.poll_latency = poll_latency
        self._submit_lock = asyncio.Lock()

    async def get_balance(self, address: str) -> int:
        try:
            return int(await self.w3.eth.get_balance(Web3.to_checksum_address(address)))
        except NODE_ERRORS as err:
            raise LedgerError(f"Could not read balance of {address}: {err}") from err

    async def _tx_params(self, description: str) -> dict[str, Any]:
        try:
            if self.chain_id is None:
                self.chain_id = int(await self.w3.eth.chain_id)
            if self.account.nonce is None:
                self.account.nonce = int(
                    await self.w3.eth.get_transaction_count(self.account.address, "pending")
                )
                logger.debug("nonce_initialized", address=self.account.address, nonce=self.account.nonce)
        except NODE_ERRORS as err:
            raise LedgerError(f"{description}: could not fetch chain id or nonce: {err}") from err
        return {"from": self.account.address, "nonce": self.account.nonce, "chainId": self.chain_id}

    async def _submit(self, builder: Any, description: str, is_deployment: bool) -> PendingTransaction:
        async with self._submit_lock:
            params = await self._tx_params(description)
            try:
                tx = await builder.build_transaction(params)
            except ContractLogicError as err:
                raise TransactionReverted(f"{description}: {_revert_reason(err)}") from err
            except NODE_ERRORS as err:
                raise LedgerError(f"{description}: could not build transaction: {err}") from err

            signed = self._signer.sign_transaction(tx)
            try:
                raw_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            except NODE_ERRORS as err:
                raise LedgerError(f"{description}: node rejected transaction: {err}") from err

            nonce = self.account.advance_nonce()

        tx_hash = Web3.to_hex(raw_hash)
        logger.debug("transaction_sent", description=description, tx_hash=tx_hash, nonce=nonce)
        return PendingTransaction(
            tx_hash=tx_hash, nonce=nonce, description=description, is_deployment=is_deployment
        )

    async def deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any]
    ) -> PendingTransaction:
        description = f"deploy {artifact.name}"
        try:
            factory = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
            builder = factory.constructor(*_checksum_args(constructor_args))
        except (Web3Exception, ValueError, TypeError) as err:
            raise LedgerError(f"{description}: invalid constructor arguments: {err}") from err
        return await self._submit(builder, description, is_deployment=True)

    def _function(self, contract: DeployedContract, method: str, args: Sequence[Any]) -> Any:
        """Bind `method(*args)` on the contract; bad names or arguments become LedgerError."""
        try:
            bound = self.w3.eth.contract(address=Web3.to_checksum_address(contract.address), abi=contract.abi)
            return getattr(bound.functions, method)(*_checksum_args(args))
        except (Web3Exception, ValueError, TypeError) as err:
            raise LedgerError(f"{contract.kind}.{method}: cannot encode call: {err}") from err

    async def call_contract(
        self, contract: DeployedContract, method: str, args: Sequence[Any]
    ) -> PendingTransaction:
        fn = self._function(contract, method, args)
        return await self._submit(fn, f"{contract.kind}.{method}", is_deployment=False)

    async def read_contract(self, contract: DeployedContract, method: str, args: Sequence[Any] = ()) -> Any:
        fn = self._function(contract, method, args)
        try:
            return await fn.call()
        except ContractLogicError as err:
            raise TransactionReverted(f"{contract.kind}.{method}: {_revert_reason(err)}") from err
        except NODE_ERRORS as err:
            raise LedgerError(f"{contract.kind}.{method}: read failed: {err}") from err

    async def wait_for_confirmation(self, pending: PendingTransaction) -> Receipt:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                pending.tx_hash,
                timeout=self.confirmation_timeout,
                poll_latency=self.poll_latency,
            )
        except TimeExhausted as err:
            raise ConfirmationTimeout(pending.tx_hash, self.confirmation_timeout) from err
        except NODE_ERRORS as err:
            raise LedgerError(
                f"{pending.description}: lost track of {pending.tx_hash} while waiting: {err}"
            ) from err

        if receipt["status"] != 1:
            raise TransactionReverted(f"{pending.description}: mined with status 0", pending.tx_hash)

        contract_address = receipt.get("contractAddress")
        if pending.is_deployment and not contract_address:
            raise LedgerError(f"{pending.description}: receipt has no contract address")

        return Receipt(
            tx_hash=pending.tx_hash,
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt.get("gasUsed", 0)),
            contract_address=contract_address,
        )


__all__ = ["Web3Ledger"]
