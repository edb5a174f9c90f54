"""Tests for the web3-backed ledger with a mocked AsyncWeb3."""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TimeExhausted,
    Web3RPCError,
    Web3ValidationError,
)

from amm_runner.errors import ConfirmationTimeout, DeploymentError, LedgerError, TransactionReverted
from amm_runner.ledger.base import PendingTransaction
from amm_runner.models.records import DeployedContract
from amm_runner.sequencer import DeployContract, DeploymentSequencer
from amm_runner.swap_loop import FailurePolicy, SwapLoopDriver
from tests.helpers import make_artifact, make_web3_ledger

POOL = DeployedContract(address="0x" + "ab" * 20, kind="SimpleSwap")
TOKEN_A = DeployedContract(address="0x" + "0a" * 20, kind="TestERC20")
TOKEN_B = DeployedContract(address="0x" + "0b" * 20, kind="TestERC20")

# Failures a node or its HTTP transport can raise outside of a revert
NODE_FAILURES = pytest.mark.parametrize(
    "failure",
    [
        Web3RPCError("rate limited"),
        BadFunctionCallOutput("Could not decode contract function call"),
        aiohttp.ClientConnectionError("Connection reset by peer"),
        asyncio.TimeoutError(),
    ],
    ids=["rpc_error", "bad_output", "connection_reset", "transport_timeout"],
)


def pending_swap(tx_hash="0x01"):
    return PendingTransaction(tx_hash, 0, "SimpleSwap.swap")


class TestSubmission:
    """Tests for nonce handling and submission errors."""

    def test_nonce_fetched_once_and_advanced(self):
        """The pending nonce is read once, then tracked locally."""
        ledger, w3 = make_web3_ledger(nonce=7)

        async def run():
            first = await ledger.deploy_contract(make_artifact("TestERC20"), ["A", "A", 1])
            second = await ledger.call_contract(POOL, "swap", [1, POOL.address])
            return first, second

        first, second = asyncio.run(run())
        assert (first.nonce, second.nonce) == (7, 8)
        assert ledger.account.nonce == 9
        w3.eth.get_transaction_count.assert_awaited_once_with(ledger.account.address, "pending")
        assert first.is_deployment and not second.is_deployment
        assert first.description == "deploy TestERC20"
        assert second.description == "SimpleSwap.swap"
        assert first.tx_hash.startswith("0x")
        assert first.tx_hash != second.tx_hash

    def test_transaction_params(self):
        """Built transactions carry sender, nonce and chain id."""
        ledger, w3 = make_web3_ledger(nonce=3)
        asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address]))
        builder = w3.eth.contract.return_value.functions.swap.return_value
        builder.build_transaction.assert_awaited_once_with(
            {"from": ledger.account.address, "nonce": 3, "chainId": 31337}
        )

    def test_revert_at_estimation(self):
        """A call that would revert is rejected without consuming a nonce."""
        ledger, w3 = make_web3_ledger(nonce=5)
        builder = w3.eth.contract.return_value.functions.swap.return_value
        builder.build_transaction.side_effect = ContractLogicError("execution reverted: Invalid token")

        with pytest.raises(TransactionReverted, match="Invalid token"):
            asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address]))
        assert ledger.account.nonce == 5
        w3.eth.send_raw_transaction.assert_not_awaited()

    def test_node_rejects_raw_transaction(self):
        """A send failure is a ledger error and the nonce is kept."""
        ledger, w3 = make_web3_ledger(nonce=5)
        w3.eth.send_raw_transaction.side_effect = Web3RPCError("nonce too low")

        with pytest.raises(LedgerError, match="node rejected"):
            asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address]))
        assert ledger.account.nonce == 5

    def test_chain_id_fetched_when_missing(self):
        """Without a configured chain id the node is asked once."""
        ledger, w3 = make_web3_ledger(chain_id=None)

        async def chain_id():
            return 393

        type(w3.eth).chain_id = property(lambda _self: chain_id())
        asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address]))
        assert ledger.chain_id == 393

    def test_addresses_are_checksummed(self):
        """Lowercase address arguments are checksummed before encoding."""
        ledger, w3 = make_web3_ledger()
        asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address.lower()]))
        args = w3.eth.contract.return_value.functions.swap.call_args.args
        assert args[1] != POOL.address.lower()
        assert args[1].lower() == POOL.address.lower()


class TestConfirmation:
    """Tests for wait_for_confirmation."""

    def test_success(self):
        """A status-1 receipt becomes a Receipt."""
        ledger, w3 = make_web3_ledger()
        w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={
                "status": 1,
                "blockNumber": 12,
                "gasUsed": 50_000,
                "contractAddress": "0x" + "cd" * 20,
            }
        )
        pending = PendingTransaction("0x01", 0, "deploy TestERC20", is_deployment=True)
        receipt = asyncio.run(ledger.wait_for_confirmation(pending))
        assert receipt.block_number == 12
        assert receipt.gas_used == 50_000
        assert receipt.contract_address == "0x" + "cd" * 20

    def test_timeout(self):
        """No receipt within the timeout raises ConfirmationTimeout."""
        ledger, w3 = make_web3_ledger()
        ledger.confirmation_timeout = 5.0
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")

        with pytest.raises(ConfirmationTimeout) as exc_info:
            asyncio.run(ledger.wait_for_confirmation(pending_swap()))
        assert exc_info.value.tx_hash == "0x01"

    def test_failed_status(self):
        """A mined failure is reported as a revert with its hash."""
        ledger, w3 = make_web3_ledger()
        w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 0, "blockNumber": 3})

        with pytest.raises(TransactionReverted) as exc_info:
            asyncio.run(ledger.wait_for_confirmation(pending_swap("0x02")))
        assert exc_info.value.tx_hash == "0x02"

    def test_deployment_without_address(self):
        """A deployment receipt must carry the new contract address."""
        ledger, w3 = make_web3_ledger()
        w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 3, "contractAddress": None}
        )
        pending = PendingTransaction("0x03", 0, "deploy SimpleSwap", is_deployment=True)
        with pytest.raises(LedgerError, match="no contract address"):
            asyncio.run(ledger.wait_for_confirmation(pending))


class TestReads:
    """Tests for views and balances."""

    def test_read_revert(self):
        """A reverting view raises TransactionReverted."""
        ledger, w3 = make_web3_ledger()
        fn = w3.eth.contract.return_value.functions.getAmountOut.return_value
        fn.call = AsyncMock(side_effect=ContractLogicError("execution reverted: Not enough liquidity"))

        with pytest.raises(TransactionReverted, match="Not enough liquidity"):
            asyncio.run(ledger.read_contract(POOL, "getAmountOut", [1, POOL.address]))

    def test_read_value(self):
        """View results are returned as-is."""
        ledger, w3 = make_web3_ledger()
        fn = w3.eth.contract.return_value.functions.reserveA.return_value
        fn.call = AsyncMock(return_value=500)
        assert asyncio.run(ledger.read_contract(POOL, "reserveA")) == 500

    def test_balance(self):
        """Native balance comes from eth_getBalance."""
        ledger, _ = make_web3_ledger()
        assert asyncio.run(ledger.get_balance(POOL.address)) == 42


class TestNodeFailures:
    """Non-revert node and transport failures leave the ledger as LedgerError."""

    @NODE_FAILURES
    def test_wait_for_confirmation(self, failure):
        """A lost receipt poll is a ledger error, not a timeout."""
        ledger, w3 = make_web3_ledger()
        w3.eth.wait_for_transaction_receipt.side_effect = failure

        with pytest.raises(LedgerError, match="lost track of 0x01") as exc_info:
            asyncio.run(ledger.wait_for_confirmation(pending_swap()))
        assert not isinstance(exc_info.value, ConfirmationTimeout)
        assert exc_info.value.__cause__ is failure

    @NODE_FAILURES
    def test_read_contract(self, failure):
        """A failed view call names the contract and method."""
        ledger, w3 = make_web3_ledger()
        fn = w3.eth.contract.return_value.functions.balanceOf.return_value
        fn.call = AsyncMock(side_effect=failure)

        with pytest.raises(LedgerError, match="TestERC20.balanceOf: read failed") as exc_info:
            asyncio.run(ledger.read_contract(TOKEN_A, "balanceOf", [POOL.address]))
        assert not isinstance(exc_info.value, TransactionReverted)

    @NODE_FAILURES
    def test_get_balance(self, failure):
        """A failed eth_getBalance is a ledger error."""
        ledger, w3 = make_web3_ledger()
        w3.eth.get_balance.side_effect = failure

        with pytest.raises(LedgerError, match="Could not read balance"):
            asyncio.run(ledger.get_balance(POOL.address))

    @NODE_FAILURES
    def test_nonce_fetch(self, failure):
        """A failed nonce fetch leaves the nonce unset so the next submission retries it."""
        ledger, w3 = make_web3_ledger()
        w3.eth.get_transaction_count.side_effect = failure

        with pytest.raises(LedgerError, match="SimpleSwap.swap: could not fetch"):
            asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address]))
        assert ledger.account.nonce is None
        w3.eth.send_raw_transaction.assert_not_awaited()

    def test_build_transaction_rpc_error(self):
        """An RPC error while estimating gas is not mistaken for a revert."""
        ledger, w3 = make_web3_ledger(nonce=4)
        builder = w3.eth.contract.return_value.functions.swap.return_value
        builder.build_transaction.side_effect = Web3RPCError("header not found")

        with pytest.raises(LedgerError, match="could not build transaction") as exc_info:
            asyncio.run(ledger.call_contract(POOL, "swap", [1, POOL.address]))
        assert not isinstance(exc_info.value, TransactionReverted)
        assert ledger.account.nonce == 4

    def test_invalid_constructor_arguments(self):
        """Arguments web3 cannot encode are rejected before anything is sent."""
        ledger, w3 = make_web3_ledger()
        w3.eth.contract.return_value.constructor.side_effect = Web3ValidationError("wrong argument count")

        with pytest.raises(LedgerError, match="deploy TestERC20: invalid constructor arguments"):
            asyncio.run(ledger.deploy_contract(make_artifact("TestERC20"), ["A"]))
        w3.eth.send_raw_transaction.assert_not_awaited()

    def test_unencodable_call(self):
        """A call web3 cannot encode is a ledger error naming the method."""
        ledger, w3 = make_web3_ledger()
        w3.eth.contract.return_value.functions.approve.side_effect = TypeError("expected 2 arguments")

        with pytest.raises(LedgerError, match="TestERC20.approve: cannot encode call"):
            asyncio.run(ledger.call_contract(TOKEN_A, "approve", [POOL.address]))


class TestCallersSeeLedgerErrors:
    """Node failures reach the sequencer and swap loop as handled ledger errors."""

    def test_sequencer_names_the_step(self):
        """An RPC error while confirming a deployment becomes a DeploymentError for that step."""
        ledger, w3 = make_web3_ledger()
        w3.eth.wait_for_transaction_receipt.side_effect = Web3RPCError("rate limited")
        plan = [DeployContract("token", make_artifact("TestERC20"), ("A", "A", 1))]

        with pytest.raises(DeploymentError) as exc_info:
            asyncio.run(DeploymentSequencer(ledger).run(plan))
        assert exc_info.value.step == "token"
        assert "rate limited" in exc_info.value.reason
        assert exc_info.value.confirmed == {}

    def test_swap_loop_keeps_partial_results(self):
        """A balance read failing mid-loop halts with the records gathered so far."""
        ledger, w3 = make_web3_ledger()
        functions = w3.eth.contract.return_value.functions
        functions.getAmountOut.return_value.call = AsyncMock(return_value=10)
        # before/after of swap 1, before of swap 2, then the node drops the after-read
        functions.balanceOf.return_value.call = AsyncMock(
            side_effect=[0, 10, 10, Web3RPCError("rate limited")]
        )

        async def no_sleep(_seconds):
            return None

        driver = SwapLoopDriver(ledger, 0.5, FailurePolicy.ABORT, sleep=no_sleep)
        result = asyncio.run(driver.run_swaps(POOL, TOKEN_A, TOKEN_B, 100, 3))

        assert result.halted
        assert len(result.records) == 2
        assert len(result.successful) == 1
        assert result.records[0].amount_received == 10
        failed = result.records[1]
        assert not failed.success
        assert failed.tx_hash is not None
        assert "rate limited" in failed.error
        assert result.error.index == 2
