"""Configuration for the pool runner.

Network settings (endpoint, credential) come from the environment and are
validated with pydantic before anything touches the network. Run
parameters are frozen dataclasses whose defaults reproduce the reference
scenario: two tokens, a 50000/500 pool and ten swaps of 100 tokens.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError

from amm_runner.constants import BURN_ADDRESS, TOKEN_DECIMALS
from amm_runner.errors import ConfigurationError
from amm_runner.models.types import is_valid_address
from amm_runner.swap_loop import FailurePolicy


class NetworkSettings(BaseModel):
    """Endpoint and signing credential for a live run."""

    rpc_url: str = Field(min_length=1)
    private_key: str = Field(pattern=r"^(0x)?[0-9a-fA-F]{64}$", repr=False)
    chain_id: int | None = Field(default=None, gt=0)
    confirmation_timeout: float = Field(default=120.0, gt=0)
    poll_latency: float = Field(default=1.0, gt=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> NetworkSettings:
        """Build settings from RPC_URL, PRIVATE_KEY, CHAIN_ID, CONFIRMATION_TIMEOUT, POLL_LATENCY.

        Raises:
            ConfigurationError: If a required variable is missing or any value is invalid
        """
        env = os.environ if environ is None else environ

        if not env.get("PRIVATE_KEY"):
            raise ConfigurationError("Missing PRIVATE_KEY in environment or .env")
        if not env.get("RPC_URL"):
            raise ConfigurationError("Missing RPC_URL in environment or .env")

        data: dict[str, str] = {"rpc_url": env["RPC_URL"], "private_key": env["PRIVATE_KEY"]}
        for key, field_name in (
            ("CHAIN_ID", "chain_id"),
            ("CONFIRMATION_TIMEOUT", "confirmation_timeout"),
            ("POLL_LATENCY", "poll_latency"),
        ):
            if env.get(key):
                data[field_name] = env[key]

        try:
            return cls.model_validate(data)
        except ValidationError as err:
            # Report field names only; the private key must never reach the logs
            fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in err.errors())
            raise ConfigurationError(f"Invalid network settings: {fields}") from None


@dataclass(frozen=True)
class TokenSpec:
    """Constructor arguments for a TestERC20 (supply in whole tokens)."""

    name: str
    symbol: str
    supply: int


@dataclass(frozen=True)
class PoolRunConfig:
    """Parameters of the pool pipeline.

    All amounts are in base units (18 decimals) except token supplies,
    which TestERC20 scales itself.

    Attributes:
        token_a: Input token of the swap loop
        token_b: Output token of the swap loop
        liquidity_a: Token A deposited into the pool
        liquidity_b: Token B deposited into the pool
        swap_amount: Token A sold per swap
        swap_count: Number of swaps
        swap_delay: Seconds between swaps
        failure_policy: ABORT (fail fast) or CONTINUE
    """

    token_a: TokenSpec = TokenSpec("tSWAP", "test swap", 100_000)
    token_b: TokenSpec = TokenSpec("noway", "ez contract lol", 10_000)
    liquidity_a: int = 50_000 * 10**TOKEN_DECIMALS
    liquidity_b: int = 500 * 10**TOKEN_DECIMALS
    swap_amount: int = 100 * 10**TOKEN_DECIMALS
    swap_count: int = 10
    swap_delay: float = 0.5
    failure_policy: FailurePolicy = FailurePolicy.ABORT

    @property
    def swap_approval(self) -> int:
        """Allowance granted to the pool for the whole swap loop."""
        return self.swap_amount * self.swap_count

    def validate(self) -> PoolRunConfig:
        """Raise ConfigurationError for impossible parameters; return self."""
        if self.swap_count < 1:
            raise ConfigurationError(f"swap_count must be at least 1, got {self.swap_count}")
        if self.swap_delay < 0:
            raise ConfigurationError(f"swap_delay cannot be negative, got {self.swap_delay}")
        for name in ("liquidity_a", "liquidity_b", "swap_amount"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        for spec in (self.token_a, self.token_b):
            if spec.supply <= 0:
                raise ConfigurationError(f"Supply of {spec.name} must be positive")
        if self.liquidity_a + self.swap_approval > self.token_a.supply * 10**TOKEN_DECIMALS:
            raise ConfigurationError("Liquidity plus swap volume exceeds token A supply")
        if self.liquidity_b > self.token_b.supply * 10**TOKEN_DECIMALS:
            raise ConfigurationError("Liquidity exceeds token B supply")
        return self


@dataclass(frozen=True)
class CollectiblesRunConfig:
    """Parameters of the collectibles pipeline (MyToken + MyNFT).

    Names are generated at random unless given; `seed` makes them
    reproducible.
    """

    token_supply: int = 1_000_000 * 10**TOKEN_DECIMALS
    mint_count: int = 2
    burn_amount: int = 1_000 * 10**TOKEN_DECIMALS
    burn_address: str = BURN_ADDRESS
    token_name: str | None = None
    token_symbol: str | None = None
    collection_name: str | None = None
    collection_symbol: str | None = None
    seed: int | None = None

    def validate(self) -> CollectiblesRunConfig:
        if self.mint_count < 0:
            raise ConfigurationError(f"mint_count cannot be negative, got {self.mint_count}")
        if self.token_supply <= 0:
            raise ConfigurationError("token_supply must be positive")
        if not 0 <= self.burn_amount <= self.token_supply:
            raise ConfigurationError("burn_amount must be between 0 and token_supply")
        if not is_valid_address(self.burn_address):
            raise ConfigurationError(f"burn_address is not an address: {self.burn_address!r}")
        return self


__all__ = ["NetworkSettings", "TokenSpec", "PoolRunConfig", "CollectiblesRunConfig"]
