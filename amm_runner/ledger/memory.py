"""In-process ledger that simulates the bundled contracts.

Used for dry runs and tests. It executes the same `require` checks as the
Solidity sources (balances, allowances, pool liquidity) and prices swaps
with the constant-product engine, so a pipeline that succeeds here issues
the same sequence of calls it would issue against a node.

Like a node behind web3, a call that would revert is rejected at
submission and does not consume a nonce. Accepted transactions are mined
immediately, one block each.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from collections.abc import Callable, Sequence
from typing import Any, ClassVar

import structlog
from web3 import Web3

from amm_runner.amm.constant_product import ConstantProductPool
from amm_runner.constants import UINT256_MAX
from amm_runner.errors import (
    InvalidToken,
    LedgerError,
    PricingError,
    TransactionReverted,
)
from amm_runner.ledger.base import Account, PendingTransaction, Receipt
from amm_runner.models.records import ContractArtifact, DeployedContract
from amm_runner.models.types import normalize_address

logger = structlog.get_logger()

# First account of the default anvil/hardhat mnemonic
DEFAULT_DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Revert(Exception):
    """A simulated `require` failure."""

    pass


def require(condition: bool, reason: str) -> None:
    if not condition:
        raise Revert(reason)


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= UINT256_MAX


def _derive_address(sender: str, nonce: int) -> str:
    digest = Web3.keccak(text=f"{normalize_address(sender)}:{nonce}")
    return Web3.to_checksum_address(Web3.to_hex(digest[-20:]))


ContractLookup = Callable[[str], "SimulatedContract"]


class SimulatedContract:
    """Base for simulated contracts.

    METHODS maps Solidity function names to Python methods; every method
    receives the contract lookup and msg.sender before the call arguments.
    """

    METHODS: ClassVar[dict[str, str]] = {}
    VIEWS: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, address: str) -> None:
        self.address = address

    def dispatch(self, lookup: ContractLookup, sender: str, method: str, args: Sequence[Any]) -> Any:
        if method not in self.METHODS:
            raise Revert(f"{type(self).__name__} has no function {method}")
        try:
            return getattr(self, self.METHODS[method])(lookup, sender, *args)
        except TypeError as err:
            # Wrong argument count or types; a node would refuse to encode the call
            raise Revert(f"Bad arguments for {method}: {err}") from err


class SimulatedERC20(SimulatedContract):
    """TestERC20: initial supply is given in whole tokens."""

    METHODS: ClassVar[dict[str, str]] = {
        "name": "get_name",
        "symbol": "get_symbol",
        "decimals": "get_decimals",
        "totalSupply": "total_supply",
        "balanceOf": "balance_of",
        "allowance": "allowance",
        "approve": "approve",
        "transfer": "transfer",
        "transferFrom": "transfer_from",
    }
    VIEWS: ClassVar[frozenset[str]] = frozenset(
        {"name", "symbol", "decimals", "totalSupply", "balanceOf", "allowance"}
    )
    SCALE_SUPPLY: ClassVar[bool] = True
    decimals = 18

    def __init__(self, address: str, deployer: str, name: str, symbol: str, initial_supply: int) -> None:
        super().__init__(address)
        self.name = name
        self.symbol = symbol
        self.total = 0
        self.balances: dict[str, int] = defaultdict(int)
        self.allowances: dict[tuple[str, str], int] = defaultdict(int)
        require(_is_uint(initial_supply), "ERC20: initial supply must be a uint256")
        amount = initial_supply * 10**self.decimals if self.SCALE_SUPPLY else initial_supply
        self._mint(deployer, amount)

    def _mint(self, to: str, amount: int) -> None:
        require(normalize_address(to) != ZERO_ADDRESS, "ERC20: mint to the zero address")
        self.total += amount
        self.balances[normalize_address(to)] += amount

    def get_name(self, _lookup: ContractLookup, _sender: str) -> str:
        return self.name

    def get_symbol(self, _lookup: ContractLookup, _sender: str) -> str:
        return self.symbol

    def get_decimals(self, _lookup: ContractLookup, _sender: str) -> int:
        return self.decimals

    def total_supply(self, _lookup: ContractLookup, _sender: str) -> int:
        return self.total

    def balance_of(self, _lookup: ContractLookup, _sender: str, owner: str) -> int:
        return self.balances[normalize_address(owner)]

    def allowance(self, _lookup: ContractLookup, _sender: str, owner: str, spender: str) -> int:
        return self.allowances[(normalize_address(owner), normalize_address(spender))]

    def approve(self, _lookup: ContractLookup, sender: str, spender: str, amount: int) -> bool:
        self.allowances[(normalize_address(sender), normalize_address(spender))] = amount
        return True

    def transfer(self, _lookup: ContractLookup, sender: str, recipient: str, amount: int) -> bool:
        self._transfer(sender, recipient, amount)
        return True

    def transfer_from(
        self, _lookup: ContractLookup, sender: str, owner: str, recipient: str, amount: int
    ) -> bool:
        key = (normalize_address(owner), normalize_address(sender))
        current = self.allowances[key]
        require(current >= amount, "ERC20: transfer amount exceeds allowance")
        self._transfer(owner, recipient, amount)
        self.allowances[key] = current - amount
        return True

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        require(normalize_address(sender) != ZERO_ADDRESS, "ERC20: transfer from zero address")
        require(normalize_address(recipient) != ZERO_ADDRESS, "ERC20: transfer to zero address")
        balance = self.balances[normalize_address(sender)]
        require(balance >= amount, "ERC20: transfer amount exceeds balance")
        self.balances[normalize_address(sender)] = balance - amount
        self.balances[normalize_address(recipient)] += amount


class SimulatedMyToken(SimulatedERC20):
    """MyToken: initial supply in base units, plain transfer only."""

    METHODS: ClassVar[dict[str, str]] = {
        "name": "get_name",
        "symbol": "get_symbol",
        "decimals": "get_decimals",
        "totalSupply": "total_supply",
        "balanceOf": "balance_of",
        "transfer": "transfer",
    }
    VIEWS: ClassVar[frozenset[str]] = frozenset({"name", "symbol", "decimals", "totalSupply", "balanceOf"})
    SCALE_SUPPLY: ClassVar[bool] = False

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        balance = self.balances[normalize_address(sender)]
        require(balance >= amount, "Insufficient balance")
        self.balances[normalize_address(sender)] = balance - amount
        self.balances[normalize_address(recipient)] += amount


class SimulatedSwapPool(SimulatedContract):
    """SimpleSwap: reserves are kept in a ConstantProductPool."""

    METHODS: ClassVar[dict[str, str]] = {
        "tokenA": "get_token_a",
        "tokenB": "get_token_b",
        "reserveA": "get_reserve_a",
        "reserveB": "get_reserve_b",
        "getAmountOut": "get_amount_out",
        "addLiquidity": "add_liquidity",
        "swap": "swap",
    }
    VIEWS: ClassVar[frozenset[str]] = frozenset({"tokenA", "tokenB", "reserveA", "reserveB", "getAmountOut"})

    def __init__(self, address: str, _deployer: str, token_a: str, token_b: str) -> None:
        super().__init__(address)
        self.pool = ConstantProductPool(token_a=token_a, token_b=token_b)

    def get_token_a(self, _lookup: ContractLookup, _sender: str) -> str:
        return self.pool.token_a

    def get_token_b(self, _lookup: ContractLookup, _sender: str) -> str:
        return self.pool.token_b

    def get_reserve_a(self, _lookup: ContractLookup, _sender: str) -> int:
        return self.pool.reserve_a

    def get_reserve_b(self, _lookup: ContractLookup, _sender: str) -> int:
        return self.pool.reserve_b

    def _token(self, lookup: ContractLookup, address: str) -> SimulatedERC20:
        contract = lookup(address)
        require(isinstance(contract, SimulatedERC20), f"No ERC20 at {address}")
        return contract  # type: ignore[return-value]

    def get_amount_out(self, _lookup: ContractLookup, _sender: str, amount_in: int, token_in: str) -> int:
        """Same checks as SimpleSwap.getAmountOut: token, then liquidity.

        The view has no amount check, so a zero input quotes 0; only swap
        rejects it.
        """
        try:
            reserve_in, reserve_out = self.pool.get_reserves(token_in)
        except InvalidToken as err:
            raise Revert("Invalid token") from err
        require(reserve_in > 0 and reserve_out > 0, "Not enough liquidity")
        require(_is_uint(amount_in), "Amount must be a uint256")
        if amount_in == 0:
            return 0
        return self.pool.get_amount_out(amount_in, token_in)

    def add_liquidity(self, lookup: ContractLookup, sender: str, amount_a: int, amount_b: int) -> None:
        token_a = self._token(lookup, self.pool.token_a)
        token_b = self._token(lookup, self.pool.token_b)
        token_a.transfer_from(lookup, self.address, sender, self.address, amount_a)
        token_b.transfer_from(lookup, self.address, sender, self.address, amount_b)
        self.pool.add_liquidity(amount_a, amount_b)

    def swap(self, lookup: ContractLookup, sender: str, amount_in: int, token_in: str) -> None:
        require(amount_in > 0, "Amount must be positive")
        amount_out = self.get_amount_out(lookup, sender, amount_in, token_in)
        token_out = self.pool.get_token_out(token_in)

        self._token(lookup, token_in).transfer_from(lookup, self.address, sender, self.address, amount_in)
        self._token(lookup, token_out).transfer(lookup, self.address, sender, amount_out)

        try:
            applied = self.pool.swap(amount_in, token_in)
        except PricingError as err:
            raise Revert(str(err)) from err
        require(applied == amount_out, "Reserve bookkeeping mismatch")

        # SimpleSwap re-syncs reserves to actual balances after every swap
        token_a = self._token(lookup, self.pool.token_a)
        token_b = self._token(lookup, self.pool.token_b)
        self.pool.reserve_a = token_a.balance_of(lookup, self.address, self.address)
        self.pool.reserve_b = token_b.balance_of(lookup, self.address, self.address)


class SimulatedNFT(SimulatedContract):
    """MyNFT: sequential token ids starting at 1."""

    METHODS: ClassVar[dict[str, str]] = {
        "name": "get_name",
        "symbol": "get_symbol",
        "nextTokenId": "next_token_id",
        "safeMint": "safe_mint",
        "ownerOf": "owner_of",
        "totalSupply": "total_supply",
    }
    VIEWS: ClassVar[frozenset[str]] = frozenset({"name", "symbol", "nextTokenId", "ownerOf", "totalSupply"})

    def __init__(self, address: str, _deployer: str, name: str, symbol: str) -> None:
        super().__init__(address)
        self.name = name
        self.symbol = symbol
        self.next_id = 1
        self.owners: dict[int, str] = {}

    def get_name(self, _lookup: ContractLookup, _sender: str) -> str:
        return self.name

    def get_symbol(self, _lookup: ContractLookup, _sender: str) -> str:
        return self.symbol

    def next_token_id(self, _lookup: ContractLookup, _sender: str) -> int:
        return self.next_id

    def safe_mint(self, _lookup: ContractLookup, _sender: str, to: str) -> int:
        token_id = self.next_id
        self.next_id += 1
        self.owners[token_id] = Web3.to_checksum_address(to)
        return token_id

    def owner_of(self, _lookup: ContractLookup, _sender: str, token_id: int) -> str:
        require(token_id in self.owners, "Token doesn't exist")
        return self.owners[token_id]

    def total_supply(self, _lookup: ContractLookup, _sender: str) -> int:
        return self.next_id - 1


CONTRACT_KINDS: dict[str, type[SimulatedContract]] = {
    "TestERC20": SimulatedERC20,
    "SimpleSwap": SimulatedSwapPool,
    "MyToken": SimulatedMyToken,
    "MyNFT": SimulatedNFT,
}


class InMemoryLedger:
    """Ledger simulating the bundled contracts in process.

    Attributes:
        account: The single signing account (nonce starts at 0)
        submitted: Every accepted transaction, in submission order
    """

    def __init__(
        self,
        deployer: str = DEFAULT_DEPLOYER,
        native_balance: int = 10 * 10**18,
    ) -> None:
        self.account = Account(address=Web3.to_checksum_address(deployer), nonce=0)
        self.block_number = 0
        self.submitted: list[PendingTransaction] = []
        self._native: dict[str, int] = defaultdict(int)
        self._native[normalize_address(deployer)] = native_balance
        self._contracts: dict[str, SimulatedContract] = {}
        self._receipts: dict[str, Receipt] = {}

    def contract_at(self, address: str) -> SimulatedContract:
        """Return the simulated contract at `address` (raises Revert if none)."""
        contract = self._contracts.get(normalize_address(address))
        if contract is None:
            raise Revert(f"No contract at {address}")
        return contract

    async def get_balance(self, address: str) -> int:
        return self._native[normalize_address(address)]

    def _execute(self, description: str, action: Callable[[], Any]) -> Any:
        """Run `action` atomically: any Revert restores the previous state."""
        snapshot = copy.deepcopy(self._contracts)
        try:
            return action()
        except Revert as err:
            self._contracts = snapshot
            raise TransactionReverted(f"{description}: {err}") from err

    def _record(
        self, description: str, is_deployment: bool, contract_address: str | None
    ) -> PendingTransaction:
        nonce = self.account.advance_nonce()
        tx_hash = Web3.to_hex(Web3.keccak(text=f"{self.account.address}:{nonce}:{description}"))
        self.block_number += 1
        self._receipts[tx_hash] = Receipt(
            tx_hash=tx_hash,
            block_number=self.block_number,
            gas_used=21_000,
            contract_address=contract_address,
        )
        pending = PendingTransaction(
            tx_hash=tx_hash, nonce=nonce, description=description, is_deployment=is_deployment
        )
        self.submitted.append(pending)
        return pending

    async def deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any]
    ) -> PendingTransaction:
        description = f"deploy {artifact.name}"
        kind = CONTRACT_KINDS.get(artifact.name)
        if kind is None:
            raise LedgerError(f"{description}: no simulation available for {artifact.name}")

        address = _derive_address(self.account.address, self.account.nonce or 0)

        def construct() -> None:
            try:
                instance = kind(address, self.account.address, *constructor_args)
            except TypeError as err:
                raise Revert(f"Bad constructor arguments: {err}") from err
            self._contracts[normalize_address(address)] = instance

        self._execute(description, construct)
        return self._record(description, is_deployment=True, contract_address=address)

    async def call_contract(
        self, contract: DeployedContract, method: str, args: Sequence[Any]
    ) -> PendingTransaction:
        description = f"{contract.kind}.{method}"

        def call() -> Any:
            target = self.contract_at(contract.address)
            require(method not in target.VIEWS, f"{method} is a view function")
            return target.dispatch(self.contract_at, self.account.address, method, args)

        self._execute(description, call)
        return self._record(description, is_deployment=False, contract_address=None)

    async def read_contract(self, contract: DeployedContract, method: str, args: Sequence[Any] = ()) -> Any:
        description = f"{contract.kind}.{method}"

        def view() -> Any:
            target = self.contract_at(contract.address)
            require(method in target.VIEWS, f"{method} is not a view function")
            return target.dispatch(self.contract_at, self.account.address, method, args)

        return self._execute(description, view)

    async def wait_for_confirmation(self, pending: PendingTransaction) -> Receipt:
        try:
            return self._receipts[pending.tx_hash]
        except KeyError as err:
            raise LedgerError(f"Unknown transaction {pending.tx_hash}") from err


__all__ = [
    "InMemoryLedger",
    "SimulatedContract",
    "SimulatedERC20",
    "SimulatedMyToken",
    "SimulatedSwapPool",
    "SimulatedNFT",
    "CONTRACT_KINDS",
    "DEFAULT_DEPLOYER",
]
