"""Test helpers module for shared test utilities.

- artifacts: stand-in compiler output for the bundled contracts
- ledgers: ledger doubles that inject failures or reorder confirmations
- node: a Web3Ledger over a mocked AsyncWeb3
"""

from tests.helpers.artifacts import ALL_CONTRACTS, make_artifact, make_artifacts
from tests.helpers.ledgers import FaultyLedger, ReorderingLedger
from tests.helpers.node import make_web3_ledger, tx_index

__all__ = [
    # Artifacts
    "ALL_CONTRACTS",
    "make_artifact",
    "make_artifacts",
    # Ledgers
    "FaultyLedger",
    "ReorderingLedger",
    # Mocked node
    "make_web3_ledger",
    "tx_index",
]
