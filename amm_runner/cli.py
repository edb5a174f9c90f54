"""Command-line entry point.

Usage:
    amm-runner pool [--swaps 10] [--swap-amount 100] [--delay 0.5] [--continue-on-error]
    amm-runner collectibles [--mints 2] [--seed 42]

Common options: --dry-run (in-memory ledger, no credential needed),
--artifacts DIR (precompiled JSON instead of solc), --json (machine-readable
summary), --verbose, --json-logs.

Configuration via environment variables (a .env file is loaded if present):
- RPC_URL: JSON-RPC endpoint (required unless --dry-run)
- PRIVATE_KEY: deployer key (required unless --dry-run)
- CHAIN_ID, CONFIRMATION_TIMEOUT, POLL_LATENCY: optional
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog
from dotenv import find_dotenv, load_dotenv

from amm_runner.config import CollectiblesRunConfig, NetworkSettings, PoolRunConfig
from amm_runner.constants import DEFAULT_SOLC_VERSION
from amm_runner.contracts.compiler import ArtifactProvider, SolcCompiler, StaticArtifactProvider
from amm_runner.errors import (
    AmmRunnerError,
    CompilationError,
    ConfigurationError,
    DeploymentError,
)
from amm_runner.ledger.base import Ledger
from amm_runner.ledger.memory import InMemoryLedger
from amm_runner.ledger.web3_ledger import Web3Ledger
from amm_runner.models.records import CollectiblesRunSummary, PoolRunSummary
from amm_runner.pipeline import run_collectibles_pipeline, run_pool_pipeline
from amm_runner.swap_loop import FailurePolicy
from amm_runner.units import format_units, parse_units

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_COMPILATION = 3
EXIT_DEPLOYMENT = 4
EXIT_SWAPS = 5


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amm-runner",
        description="Deploy a token pair and a constant-product pool, then exercise it with swaps",
    )
    parser.add_argument("--dry-run", action="store_true", help="Run against an in-memory ledger")
    parser.add_argument("--artifacts", type=Path, help="Directory of precompiled <Name>.json artifacts")
    parser.add_argument("--solc-version", default=DEFAULT_SOLC_VERSION, help="solc release to compile with")
    parser.add_argument("--env-file", type=Path, default=None, help="Path to .env (default: ./.env)")
    parser.add_argument("--timeout", type=float, help="Confirmation timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    pool = subparsers.add_parser("pool", help="Deploy tokens + pool, add liquidity, run swaps")
    pool.add_argument("--swaps", type=int, default=10, help="Number of swaps (default: 10)")
    pool.add_argument("--swap-amount", default="100", help="Token A sold per swap, in tokens (default: 100)")
    pool.add_argument("--liquidity-a", default="50000", help="Token A liquidity, in tokens (default: 50000)")
    pool.add_argument("--liquidity-b", default="500", help="Token B liquidity, in tokens (default: 500)")
    pool.add_argument("--delay", type=float, default=0.5, help="Seconds between swaps (default: 0.5)")
    pool.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep swapping after a failed swap instead of stopping",
    )

    collectibles = subparsers.add_parser("collectibles", help="Deploy a token and an NFT collection")
    collectibles.add_argument("--mints", type=int, default=2, help="NFTs to mint (default: 2)")
    collectibles.add_argument(
        "--burn", default="1000", help="Tokens sent to the burn address (default: 1000)"
    )
    collectibles.add_argument("--seed", type=int, help="Seed for generated names")

    return parser


def _units(value: str, option: str) -> int:
    try:
        return parse_units(value)
    except (ValueError, TypeError) as err:
        raise ConfigurationError(f"Invalid amount for {option}: {value!r}") from err


def pool_config_from_args(args: argparse.Namespace) -> PoolRunConfig:
    return PoolRunConfig(
        liquidity_a=_units(args.liquidity_a, "--liquidity-a"),
        liquidity_b=_units(args.liquidity_b, "--liquidity-b"),
        swap_amount=_units(args.swap_amount, "--swap-amount"),
        swap_count=args.swaps,
        swap_delay=args.delay,
        failure_policy=FailurePolicy.CONTINUE if args.continue_on_error else FailurePolicy.ABORT,
    )


def collectibles_config_from_args(args: argparse.Namespace) -> CollectiblesRunConfig:
    return CollectiblesRunConfig(
        mint_count=args.mints,
        burn_amount=_units(args.burn, "--burn"),
        seed=args.seed,
    )


def make_provider(args: argparse.Namespace) -> ArtifactProvider:
    if args.artifacts is not None:
        if not args.artifacts.is_dir():
            raise ConfigurationError(f"Artifacts directory not found: {args.artifacts}")
        return StaticArtifactProvider.from_directory(args.artifacts)
    return SolcCompiler(solc_version=args.solc_version)


def make_ledger(args: argparse.Namespace) -> Ledger:
    """Build the ledger; validates the credential before any network activity."""
    if args.dry_run:
        logger.info("dry_run", message="Using in-memory ledger; nothing is sent to a network")
        return InMemoryLedger()

    settings = NetworkSettings.from_env()
    if args.timeout is not None:
        settings = settings.model_copy(update={"confirmation_timeout": args.timeout})
    return Web3Ledger(
        settings.rpc_url,
        settings.private_key,
        chain_id=settings.chain_id,
        confirmation_timeout=settings.confirmation_timeout,
        poll_latency=settings.poll_latency,
    )


def render_pool_summary(summary: PoolRunSummary) -> str:
    lines = [
        "=" * 60,
        "Pool Run Summary",
        "=" * 60,
        f"Deployer:  {summary.deployer} ({format_units(summary.native_balance)} native)",
        f"Token A:   {summary.token_a}",
        f"Token B:   {summary.token_b}",
        f"Pool:      {summary.pool}",
        "Reserves after liquidity: "
        f"{format_units(summary.reserves_after_liquidity.reserve_a)} A / "
        f"{format_units(summary.reserves_after_liquidity.reserve_b)} B",
        "",
    ]
    for record in summary.swaps:
        if record.success:
            lines.append(
                f"  Swap #{record.index}: {format_units(record.amount_in)} A -> "
                f"{format_units(record.amount_received or 0)} B  (tx {record.tx_hash})"
            )
        else:
            lines.append(f"  Swap #{record.index}: FAILED - {record.error}")
    lines.append("")
    if summary.reserves_final is not None:
        lines.append(
            f"Final reserves: {format_units(summary.reserves_final.reserve_a)} A / "
            f"{format_units(summary.reserves_final.reserve_b)} B"
        )
    lines.append(f"Swaps: {summary.successful_swaps} succeeded, {summary.failed_swaps} failed")
    if summary.swap_error:
        lines.append(f"Halted: {summary.swap_error}")
    return "\n".join(lines)


def render_collectibles_summary(summary: CollectiblesRunSummary) -> str:
    return "\n".join(
        [
            "=" * 60,
            "Deployment Summary",
            "=" * 60,
            f"Deployer: {summary.deployer} ({format_units(summary.native_balance)} native)",
            f"Token: {summary.token_name} ({summary.token_symbol})",
            f"  Address: {summary.token}",
            f"  Supply:  {format_units(summary.token_supply)}",
            f"  Burned:  {format_units(summary.burned)} to {summary.burn_address}",
            f"NFT: {summary.collection_name} ({summary.collection_symbol})",
            f"  Address: {summary.collection}",
            f"  Minted:  {summary.minted} (total supply {summary.collection_supply})",
        ]
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, json_logs=args.json_logs)
    load_dotenv(args.env_file or find_dotenv(usecwd=True), override=False)

    summary: PoolRunSummary | CollectiblesRunSummary
    try:
        provider = make_provider(args)
        if args.command == "pool":
            pool_config = pool_config_from_args(args).validate()
            ledger = make_ledger(args)
            summary = asyncio.run(run_pool_pipeline(ledger, provider, pool_config))
        else:
            collectibles_config = collectibles_config_from_args(args).validate()
            ledger = make_ledger(args)
            summary = asyncio.run(run_collectibles_pipeline(ledger, provider, collectibles_config))
    except ConfigurationError as err:
        logger.error("configuration_error", error=str(err))
        return EXIT_CONFIGURATION
    except CompilationError as err:
        logger.error("compilation_failed", contract=err.contract, diagnostics=err.diagnostics)
        return EXIT_COMPILATION
    except DeploymentError as err:
        logger.error("deployment_failed", step=err.step, reason=err.reason, confirmed=err.confirmed)
        return EXIT_DEPLOYMENT
    except AmmRunnerError as err:
        logger.error("run_failed", error=str(err), error_type=type(err).__name__)
        return EXIT_UNEXPECTED
    except Exception as err:
        logger.exception("unexpected_error", error=str(err))
        return EXIT_UNEXPECTED

    if args.json:
        print(summary.model_dump_json(indent=2))
    elif isinstance(summary, PoolRunSummary):
        print(render_pool_summary(summary))
    else:
        print(render_collectibles_summary(summary))

    if isinstance(summary, PoolRunSummary) and not summary.completed:
        return EXIT_SWAPS
    return EXIT_OK


__all__ = ["main", "build_parser", "configure_logging"]
