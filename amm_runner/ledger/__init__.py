"""Ledger collaborators: the protocol, a web3-backed client and an in-memory simulator."""

from amm_runner.ledger.base import Account, Ledger, PendingTransaction, Receipt
from amm_runner.ledger.memory import InMemoryLedger
from amm_runner.ledger.web3_ledger import Web3Ledger

__all__ = [
    "Account",
    "Ledger",
    "PendingTransaction",
    "Receipt",
    "InMemoryLedger",
    "Web3Ledger",
]
