"""
Collaborator Protocol interfaces.

The distribution run depends on these protocols instead of concrete chain
clients, so a deployment can plug in an RPC-backed ledger while dry runs and
tests use the in-memory implementations from ``tokengen.blockchain``.

Usage:
    orchestrator = DistributionOrchestrator(
        config,
        ledger=MyRpcLedger(...),      # satisfies Ledger
        locker=MyLockerClient(...),   # satisfies LiquidityLockerProvider
        state_dir="state/",
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class TransferReceipt:
    tx_hash: str
    sender: str
    recipient: str
    amount: int
    confirmed: bool = True


@runtime_checkable
class Ledger(Protocol):
    """
    Fungible balance authority.

    ``transfer`` submits and returns a transaction hash; ``confirm`` blocks
    until that transaction is final. Both raise ``TransientTransferError``
    for retryable network/confirmation issues and ``PermanentTransferError``
    when the ledger rejects the transfer.
    """

    def transfer(self, sender: str, recipient: str, amount: int) -> str:
        ...

    def confirm(self, tx_hash: str) -> TransferReceipt:
        ...

    def balance_of(self, address: str) -> int:
        ...


@runtime_checkable
class LiquidityLockerProvider(Protocol):
    """Locks liquidity for a fixed period; repeated calls with one key lock once."""

    def lock_liquidity(
        self,
        owner_address: str,
        amount: int,
        unlock_timestamp: int,
        idempotency_key: str,
    ) -> str:
        ...
