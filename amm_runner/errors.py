"""Error classes for the deployment and swap pipeline.

Every failure surfaced to the operator derives from AmmRunnerError so the
CLI can map it to an exit status. Nothing here is retried.
"""

from __future__ import annotations

from collections.abc import Mapping


class AmmRunnerError(Exception):
    """Base error for all pipeline failures."""

    pass


class ConfigurationError(AmmRunnerError):
    """Missing or malformed credential, endpoint or run parameter."""

    pass


class CompilationError(AmmRunnerError):
    """The compiler returned error diagnostics for a contract."""

    def __init__(self, contract: str, diagnostics: list[str]) -> None:
        self.contract = contract
        self.diagnostics = list(diagnostics)
        summary = diagnostics[0] if diagnostics else "no output"
        super().__init__(f"Compilation of {contract} failed: {summary}")


# --- Pricing engine ---


class PricingError(AmmRunnerError):
    """Base error for constant-product pricing preconditions."""

    pass


class InsufficientLiquidity(PricingError):
    """One of the pool reserves is zero."""

    pass


class InvalidToken(PricingError):
    """Token is not one of the pool's two assets."""

    pass


class InvalidAmount(PricingError, ValueError):
    """Swap or deposit amount must be positive."""

    pass


# --- Ledger boundary ---


class LedgerError(AmmRunnerError):
    """Base error for transaction submission and confirmation."""

    pass


class TransactionReverted(LedgerError):
    """Transaction was rejected by the contract or mined with status 0."""

    def __init__(self, reason: str, tx_hash: str | None = None) -> None:
        self.reason = reason
        self.tx_hash = tx_hash
        where = f" (tx {tx_hash})" if tx_hash else ""
        super().__init__(f"Transaction reverted{where}: {reason}")


class ConfirmationTimeout(LedgerError):
    """Transaction was not confirmed within the configured timeout."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed after {timeout:g}s")


# --- Pipeline stages ---


class DeploymentError(AmmRunnerError):
    """A deployment or setup step failed; the sequence was halted.

    Attributes:
        step: Name of the step that failed
        reason: Underlying failure description
        confirmed: Addresses of deployments confirmed before the failure,
            keyed by step name in execution order
    """

    def __init__(self, step: str, reason: str, confirmed: Mapping[str, str] | None = None) -> None:
        self.step = step
        self.reason = reason
        self.confirmed = dict(confirmed or {})
        super().__init__(f"Step '{step}' failed: {reason}")


class SwapExecutionError(AmmRunnerError):
    """An individual swap failed to submit or confirm."""

    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"Swap #{index} failed: {reason}")


__all__ = [
    "AmmRunnerError",
    "ConfigurationError",
    "CompilationError",
    "PricingError",
    "InsufficientLiquidity",
    "InvalidToken",
    "InvalidAmount",
    "LedgerError",
    "TransactionReverted",
    "ConfirmationTimeout",
    "DeploymentError",
    "SwapExecutionError",
]
