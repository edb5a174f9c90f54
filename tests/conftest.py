"""Pytest configuration and fixtures."""

import pytest

from amm_runner.contracts.compiler import StaticArtifactProvider
from amm_runner.ledger.memory import InMemoryLedger
from amm_runner.models.records import ContractArtifact
from tests.helpers import make_artifacts


async def _no_sleep(_seconds: float) -> None:
    """Replacement for asyncio.sleep so swap loops never wait."""
    return None


@pytest.fixture
def artifacts() -> dict[str, ContractArtifact]:
    """Stand-in artifacts for all bundled contracts."""
    return make_artifacts()


@pytest.fixture
def provider(artifacts: dict[str, ContractArtifact]) -> StaticArtifactProvider:
    """Artifact provider serving the stand-in artifacts."""
    return StaticArtifactProvider(artifacts)


@pytest.fixture
def ledger() -> InMemoryLedger:
    """A fresh in-memory ledger with the default deployer."""
    return InMemoryLedger()


@pytest.fixture
def no_sleep():
    """Sleep coroutine that returns immediately."""
    return _no_sleep
