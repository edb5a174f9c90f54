"""A Web3Ledger wired to a MagicMock node.

The n-th raw transaction sent gets the hash bytes([n]) * 32, and its
default receipt is a success whose contractAddress is derived from n, so
a whole pipeline can run against the mock. Views are not stubbed; tests
set `w3.eth.contract.return_value.functions.<view>.return_value.call`.
"""

import itertools
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from web3 import Web3

from amm_runner.ledger.web3_ledger import Web3Ledger

PRIVATE_KEY = "0x" + "11" * 32
STATE_CHANGING = ("approve", "addLiquidity", "swap", "safeMint", "transfer")


def tx_index(tx_hash: str) -> int:
    """Submission index encoded in a hash produced by the mocked node."""
    return int(tx_hash[2:4], 16)


def contract_address(index: int) -> str:
    return Web3.to_checksum_address(f"0x{index + 1:040x}")


def success_receipt(tx_hash: str, **_kwargs) -> dict:
    index = tx_index(tx_hash)
    return {
        "status": 1,
        "blockNumber": index + 1,
        "gasUsed": 21_000,
        "contractAddress": contract_address(index),
    }


def make_web3_ledger(nonce: int = 7, chain_id: int | None = 31337) -> tuple[Web3Ledger, MagicMock]:
    """Return a Web3Ledger and the mocked AsyncWeb3 behind it."""
    w3 = MagicMock()
    counter = itertools.count()
    w3.eth.get_transaction_count = AsyncMock(return_value=nonce)
    w3.eth.send_raw_transaction = AsyncMock(side_effect=lambda raw: bytes([next(counter)]) * 32)
    w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=success_receipt)
    w3.eth.get_balance = AsyncMock(return_value=42)

    # One builder serves the constructor and every state-changing method
    builder = MagicMock()
    builder.build_transaction = AsyncMock(return_value={"gas": 21_000})
    contract = w3.eth.contract.return_value
    contract.constructor.return_value = builder
    for method in STATE_CHANGING:
        getattr(contract.functions, method).return_value = builder

    ledger = Web3Ledger("http://node", PRIVATE_KEY, chain_id=chain_id, w3=w3)
    ledger._signer = MagicMock(address=ledger.account.address)
    ledger._signer.sign_transaction.return_value = SimpleNamespace(raw_transaction=b"raw")
    return ledger, w3
