"""Data models for artifacts, deployments and run summaries."""

from amm_runner.models.records import (
    CollectiblesRunSummary,
    ContractArtifact,
    DeployedContract,
    PoolRunSummary,
    ReservesView,
    SwapRecord,
)
from amm_runner.models.types import Address, Uint256, is_valid_address, normalize_address, same_address

__all__ = [
    # Types
    "Address",
    "Uint256",
    "is_valid_address",
    "normalize_address",
    "same_address",
    # Records
    "ContractArtifact",
    "DeployedContract",
    "SwapRecord",
    "ReservesView",
    # Summaries
    "PoolRunSummary",
    "CollectiblesRunSummary",
]
