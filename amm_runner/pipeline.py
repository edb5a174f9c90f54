"""Orchestration of complete runs.

Pool pipeline:
    compile -> deploy token A -> deploy token B -> deploy pool(A, B)
    -> approve liquidity on A and B -> addLiquidity -> approve swap volume on A
    -> swap loop -> summary

Collectibles pipeline:
    compile -> deploy MyToken -> deploy MyNFT -> mint NFTs -> burn tokens -> summary

Both run as a single linear chain. The first fatal error propagates; a swap
failure is reported in the summary instead.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Mapping

import structlog

from amm_runner.config import CollectiblesRunConfig, PoolRunConfig
from amm_runner.contracts.compiler import ArtifactProvider, compile_all
from amm_runner.errors import DeploymentError, LedgerError
from amm_runner.ledger.base import Ledger
from amm_runner.models.records import (
    CollectiblesRunSummary,
    ContractArtifact,
    DeployedContract,
    PoolRunSummary,
    ReservesView,
)
from amm_runner.naming import generate_name
from amm_runner.sequencer import Call, DeployContract, DeploymentSequencer, Ref, Step
from amm_runner.swap_loop import Sleep, SwapLoopDriver
from amm_runner.units import format_units

logger = structlog.get_logger()

POOL_CONTRACTS = ("TestERC20", "SimpleSwap")
COLLECTIBLES_CONTRACTS = ("MyToken", "MyNFT")


def build_pool_plan(artifacts: Mapping[str, ContractArtifact], config: PoolRunConfig) -> list[Step]:
    """Deployment and setup steps of the pool pipeline, in submission order."""
    erc20 = artifacts["TestERC20"]
    swap = artifacts["SimpleSwap"]
    a, b = config.token_a, config.token_b
    return [
        DeployContract("token_a", erc20, (a.name, a.symbol, a.supply)),
        DeployContract("token_b", erc20, (b.name, b.symbol, b.supply)),
        DeployContract("pool", swap, (Ref("token_a"), Ref("token_b"))),
        Call("approve_a_liquidity", Ref("token_a"), "approve", (Ref("pool"), config.liquidity_a)),
        Call("approve_b_liquidity", Ref("token_b"), "approve", (Ref("pool"), config.liquidity_b)),
        Call("add_liquidity", Ref("pool"), "addLiquidity", (config.liquidity_a, config.liquidity_b)),
        Call("approve_a_swaps", Ref("token_a"), "approve", (Ref("pool"), config.swap_approval)),
    ]


async def read_reserves(ledger: Ledger, pool: DeployedContract) -> ReservesView:
    """Read both reserves from the pool contract."""
    reserve_a = await ledger.read_contract(pool, "reserveA")
    reserve_b = await ledger.read_contract(pool, "reserveB")
    return ReservesView(reserve_a=reserve_a, reserve_b=reserve_b)


async def _report_deployer(ledger: Ledger) -> int:
    deployer = ledger.account.address
    balance = await ledger.get_balance(deployer)
    logger.info("deployer_ready", address=deployer, balance=format_units(balance))
    return balance


async def run_pool_pipeline(
    ledger: Ledger,
    provider: ArtifactProvider,
    config: PoolRunConfig | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> PoolRunSummary:
    """Stand up two tokens and a pool, seed liquidity, then run the swap loop.

    Raises:
        ConfigurationError: If the run parameters are invalid
        CompilationError: If any contract fails to compile (before any transaction)
        DeploymentError: If a deployment or setup step fails
    """
    config = (config or PoolRunConfig()).validate()
    artifacts = compile_all(provider, POOL_CONTRACTS)
    native_balance = await _report_deployer(ledger)

    deployment = await DeploymentSequencer(ledger).run(build_pool_plan(artifacts, config))
    token_a, token_b, pool = deployment["token_a"], deployment["token_b"], deployment["pool"]

    try:
        reserves = await read_reserves(ledger, pool)
    except LedgerError as err:
        raise DeploymentError("read_reserves", str(err), deployment.addresses) from err
    logger.info(
        "liquidity_added",
        pool=pool.address,
        reserve_a=format_units(reserves.reserve_a),
        reserve_b=format_units(reserves.reserve_b),
    )

    driver = SwapLoopDriver(ledger, config.swap_delay, config.failure_policy, sleep=sleep)
    loop = await driver.run_swaps(pool, token_a, token_b, config.swap_amount, config.swap_count)

    final_reserves: ReservesView | None
    try:
        final_reserves = await read_reserves(ledger, pool)
    except LedgerError as err:
        logger.error("final_reserves_unavailable", pool=pool.address, error=str(err))
        final_reserves = None
    else:
        logger.info(
            "final_reserves",
            pool=pool.address,
            reserve_a=format_units(final_reserves.reserve_a),
            reserve_b=format_units(final_reserves.reserve_b),
        )

    logger.info(
        "pool_run_finished",
        pool=pool.address,
        succeeded=len(loop.successful),
        failed=len(loop.failed),
        halted=loop.halted,
    )
    return PoolRunSummary(
        deployer=ledger.account.address,
        native_balance=native_balance,
        token_a=token_a.address,
        token_b=token_b.address,
        pool=pool.address,
        reserves_after_liquidity=reserves,
        reserves_final=final_reserves,
        swaps=loop.records,
        swap_error=str(loop.error) if loop.error else None,
    )


def build_collectibles_plan(
    artifacts: Mapping[str, ContractArtifact],
    config: CollectiblesRunConfig,
    recipient: str,
    token_name: str,
    token_symbol: str,
    collection_name: str,
    collection_symbol: str,
) -> list[Step]:
    steps: list[Step] = [
        DeployContract("token", artifacts["MyToken"], (token_name, token_symbol, config.token_supply)),
        DeployContract("collection", artifacts["MyNFT"], (collection_name, collection_symbol)),
    ]
    steps.extend(
        Call(f"mint_{i}", Ref("collection"), "safeMint", (recipient,))
        for i in range(1, config.mint_count + 1)
    )
    if config.burn_amount > 0:
        steps.append(Call("burn", Ref("token"), "transfer", (config.burn_address, config.burn_amount)))
    return steps


async def run_collectibles_pipeline(
    ledger: Ledger,
    provider: ArtifactProvider,
    config: CollectiblesRunConfig | None = None,
) -> CollectiblesRunSummary:
    """Deploy a token and an NFT collection, mint to the deployer and burn some tokens.

    Raises:
        ConfigurationError: If the run parameters are invalid
        CompilationError: If any contract fails to compile (before any transaction)
        DeploymentError: If any step fails
    """
    config = (config or CollectiblesRunConfig()).validate()
    artifacts = compile_all(provider, COLLECTIBLES_CONTRACTS)
    native_balance = await _report_deployer(ledger)

    rng = random.Random(config.seed)
    token_label = generate_name("token", rng)
    collection_label = generate_name("nft", rng)
    token_name = config.token_name or token_label.name
    token_symbol = config.token_symbol or token_label.symbol
    collection_name = config.collection_name or collection_label.name
    collection_symbol = config.collection_symbol or collection_label.symbol

    deployer = ledger.account.address
    plan = build_collectibles_plan(
        artifacts, config, deployer, token_name, token_symbol, collection_name, collection_symbol
    )
    deployment = await DeploymentSequencer(ledger).run(plan)
    collection = deployment["collection"]

    try:
        collection_supply = await ledger.read_contract(collection, "totalSupply")
    except LedgerError as err:
        raise DeploymentError("read_total_supply", str(err), deployment.addresses) from err
    logger.info("collection_minted", collection=collection.address, total_supply=collection_supply)
    logger.info(
        "collectibles_run_finished",
        token=deployment["token"].address,
        collection=collection.address,
        burned=format_units(config.burn_amount),
    )

    return CollectiblesRunSummary(
        deployer=deployer,
        native_balance=native_balance,
        token_name=token_name,
        token_symbol=token_symbol,
        token=deployment["token"].address,
        token_supply=config.token_supply,
        collection_name=collection_name,
        collection_symbol=collection_symbol,
        collection=collection.address,
        minted=config.mint_count,
        collection_supply=collection_supply,
        burned=config.burn_amount,
        burn_address=config.burn_address,
    )


__all__ = [
    "POOL_CONTRACTS",
    "COLLECTIBLES_CONTRACTS",
    "build_pool_plan",
    "build_collectibles_plan",
    "read_reserves",
    "run_pool_pipeline",
    "run_collectibles_pipeline",
]
