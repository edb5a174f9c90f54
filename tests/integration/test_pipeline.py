"""End-to-end pipeline runs against the in-memory ledger and a mocked node."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from web3.exceptions import Web3RPCError

from amm_runner.config import CollectiblesRunConfig, PoolRunConfig
from amm_runner.constants import BURN_ADDRESS
from amm_runner.contracts.compiler import StaticArtifactProvider
from amm_runner.errors import CompilationError, DeploymentError, TransactionReverted
from amm_runner.ledger.memory import InMemoryLedger
from amm_runner.models.records import DeployedContract
from amm_runner.pipeline import build_pool_plan, run_collectibles_pipeline, run_pool_pipeline
from amm_runner.swap_loop import FailurePolicy
from tests.helpers import FaultyLedger, make_artifacts, make_web3_ledger, tx_index
from tests.helpers.node import success_receipt

E18 = 10**18


def contract(address, kind):
    return DeployedContract(address=address, kind=kind)


class TestPoolPipeline:
    """The reference scenario: two tokens, a 50000/500 pool, ten swaps."""

    def test_reference_run(self, ledger, provider, no_sleep):
        """Deploy, seed liquidity and run ten swaps end to end."""
        summary = asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))

        assert summary.completed
        assert summary.successful_swaps == 10
        assert summary.deployer == ledger.account.address
        assert summary.native_balance == 10 * E18
        assert summary.reserves_after_liquidity.reserve_a == 50_000 * E18
        assert summary.reserves_after_liquidity.reserve_b == 500 * E18

        with_fee = 100 * E18 * 997 // 1000
        first_out = with_fee * (500 * E18) // (50_000 * E18 + with_fee)
        assert summary.swaps[0].amount_out_expected == first_out
        assert summary.swaps[0].amount_received == first_out

        final = summary.reserves_final
        assert final.reserve_a == 51_000 * E18
        assert final.reserve_b == 500 * E18 - sum(r.amount_received for r in summary.swaps)
        assert final.reserve_a * final.reserve_b >= 50_000 * E18 * 500 * E18

    def test_token_supplies(self, ledger, provider, no_sleep):
        """Token A and B carry the reference supplies, scaled to base units."""
        summary = asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))

        async def supplies():
            return (
                await ledger.read_contract(contract(summary.token_a, "TestERC20"), "totalSupply"),
                await ledger.read_contract(contract(summary.token_b, "TestERC20"), "totalSupply"),
            )

        assert asyncio.run(supplies()) == (100_000 * E18, 10_000 * E18)

    def test_pool_wired_to_tokens(self, ledger, provider, no_sleep):
        """The pool was constructed with the two token addresses."""
        summary = asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))
        pool = contract(summary.pool, "SimpleSwap")

        async def tokens():
            return await ledger.read_contract(pool, "tokenA"), await ledger.read_contract(pool, "tokenB")

        assert asyncio.run(tokens()) == (summary.token_a, summary.token_b)

    def test_submission_order(self, ledger, provider, no_sleep):
        """Transactions go out in plan order with consecutive nonces."""
        asyncio.run(run_pool_pipeline(ledger, provider, PoolRunConfig(swap_count=2), sleep=no_sleep))

        assert [p.description for p in ledger.submitted] == [
            "deploy TestERC20",
            "deploy TestERC20",
            "deploy SimpleSwap",
            "TestERC20.approve",
            "TestERC20.approve",
            "SimpleSwap.addLiquidity",
            "TestERC20.approve",
            "SimpleSwap.swap",
            "SimpleSwap.swap",
        ]
        assert [p.nonce for p in ledger.submitted] == list(range(9))

    def test_swap_failure_is_reported(self, provider, no_sleep):
        """A failed swap ends the loop but the summary is still produced."""

        def reject_fourth_swap(desc, n):
            return TransactionReverted("boom") if desc == "SimpleSwap.swap" and n == 4 else None

        ledger = FaultyLedger(submit_rule=reject_fourth_swap)
        summary = asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))

        assert not summary.completed
        assert summary.successful_swaps == 3
        assert summary.failed_swaps == 1
        assert "Swap #4" in summary.swap_error
        assert summary.reserves_final is not None

    def test_continue_policy(self, provider, no_sleep):
        """Under CONTINUE every swap is attempted."""

        def reject_fourth_swap(desc, n):
            return TransactionReverted("boom") if desc == "SimpleSwap.swap" and n == 4 else None

        ledger = FaultyLedger(submit_rule=reject_fourth_swap)
        config = PoolRunConfig(failure_policy=FailurePolicy.CONTINUE)
        summary = asyncio.run(run_pool_pipeline(ledger, provider, config, sleep=no_sleep))

        assert summary.successful_swaps == 9
        assert summary.swap_error is None
        assert not summary.completed

    def test_deployment_failure_mid_plan(self, provider, no_sleep):
        """A failed approval aborts before liquidity is added or swaps run."""

        def reject_second_approval(desc, n):
            return TransactionReverted("nope") if desc == "TestERC20.approve" and n == 2 else None

        ledger = FaultyLedger(submit_rule=reject_second_approval)
        with pytest.raises(DeploymentError) as exc_info:
            asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))

        assert exc_info.value.step == "approve_b_liquidity"
        assert set(exc_info.value.confirmed) == {"token_a", "token_b", "pool"}
        assert ledger.submissions["SimpleSwap.addLiquidity"] == 0
        assert ledger.submissions["SimpleSwap.swap"] == 0

    def test_compilation_failure_before_any_transaction(self, artifacts, ledger, no_sleep):
        """A missing contract aborts before anything is submitted."""
        provider = StaticArtifactProvider({"TestERC20": artifacts["TestERC20"]})
        with pytest.raises(CompilationError):
            asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))
        assert ledger.submitted == []

    def test_plan_steps(self):
        """The plan lists deployments before setup calls."""
        names = [step.name for step in build_pool_plan(make_artifacts(), PoolRunConfig())]
        assert names == [
            "token_a",
            "token_b",
            "pool",
            "approve_a_liquidity",
            "approve_b_liquidity",
            "add_liquidity",
            "approve_a_swaps",
        ]


class TestCollectiblesPipeline:
    """Token plus NFT collection."""

    def test_reference_run(self, ledger, provider):
        """Mint two NFTs and burn 1000 tokens."""
        summary = asyncio.run(run_collectibles_pipeline(ledger, provider, CollectiblesRunConfig(seed=1)))

        assert summary.minted == 2
        assert summary.collection_supply == 2
        assert summary.burn_address == BURN_ADDRESS
        token = contract(summary.token, "MyToken")

        async def balances():
            return (
                await ledger.read_contract(token, "balanceOf", [ledger.account.address]),
                await ledger.read_contract(token, "balanceOf", [BURN_ADDRESS]),
            )

        assert asyncio.run(balances()) == (999_000 * E18, 1000 * E18)

    def test_names_are_reproducible(self, provider):
        """The same seed produces the same names."""
        config = CollectiblesRunConfig(seed=9)
        first = asyncio.run(run_collectibles_pipeline(InMemoryLedger(), provider, config))
        second = asyncio.run(run_collectibles_pipeline(InMemoryLedger(), provider, config))
        assert (first.token_name, first.collection_name) == (second.token_name, second.collection_name)
        assert len(first.token_symbol) == 3
        assert first.token_symbol[0] == first.token_name[0].upper()

    def test_explicit_names_and_no_burn(self, ledger, provider):
        """Given names are used and a zero burn sends nothing."""
        config = CollectiblesRunConfig(
            token_name="Gold",
            token_symbol="GLD",
            collection_name="Cats",
            collection_symbol="CAT",
            burn_amount=0,
        )
        summary = asyncio.run(run_collectibles_pipeline(ledger, provider, config))

        assert (summary.token_name, summary.collection_symbol) == ("Gold", "CAT")
        assert "MyToken.transfer" not in [p.description for p in ledger.submitted]


class TestPoolPipelineOverRpc:
    """The pool pipeline against a mocked node whose RPC fails mid-loop."""

    def test_lost_swap_confirmation(self, provider, no_sleep):
        """An RPC error while confirming swap 2 still yields a partial summary."""
        ledger, w3 = make_web3_ledger(nonce=0)
        functions = w3.eth.contract.return_value.functions
        functions.reserveA.return_value.call = AsyncMock(return_value=50_000 * E18)
        functions.reserveB.return_value.call = AsyncMock(return_value=500 * E18)
        functions.getAmountOut.return_value.call = AsyncMock(return_value=E18)
        functions.balanceOf.return_value.call = AsyncMock(return_value=0)

        async def receipt(tx_hash, **kwargs):
            # Seven setup transactions, then swap 1 (index 7) and swap 2 (index 8)
            if tx_index(tx_hash) == 8:
                raise Web3RPCError("rate limited")
            return success_receipt(tx_hash, **kwargs)

        w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=receipt)
        summary = asyncio.run(run_pool_pipeline(ledger, provider, sleep=no_sleep))

        assert not summary.completed
        assert summary.successful_swaps == 1
        assert summary.failed_swaps == 1
        assert "Swap #2" in summary.swap_error
        assert "rate limited" in summary.swaps[1].error
        assert summary.swaps[1].tx_hash is not None
        assert summary.native_balance == 42
        assert summary.reserves_final.reserve_a == 50_000 * E18
        assert ledger.account.nonce == 9
