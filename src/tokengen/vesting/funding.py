from __future__ import annotations

import logging
import threading
from typing import Any, Dict

from tokengen.core import metrics
from tokengen.core.exceptions import InsufficientFundingError

logger = logging.getLogger("tokengen.vesting.funding")


class FundingLedger:
    """
    Reserved-vs-funded accounting for the vesting pool.

    ``funded`` only grows when a confirmed transfer into the pool is
    recorded; ``committed`` grows with every schedule and shrinks by the
    unvested part of a revoked schedule. New schedules may only commit what
    is ``available``, so outstanding grants never exceed tokens actually held.
    """

    def __init__(self) -> None:
        self.funded = 0
        self.committed = 0
        self.disbursed = 0
        # deposit_key -> amount; re-recording a known deposit is a no-op
        self.deposits: Dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def available(self) -> int:
        return self.funded - self.committed

    def record_deposit(self, deposit_key: str, amount: int) -> bool:
        """Record a confirmed transfer into the pool. Returns False if already known."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError("Deposit amount must be a positive integer")
        if not deposit_key:
            raise ValueError("Deposit key cannot be empty")
        with self._lock:
            existing = self.deposits.get(deposit_key)
            if existing is not None:
                if existing != amount:
                    raise ValueError(
                        f"Deposit {deposit_key} already recorded with amount {existing}"
                    )
                return False
            self.deposits[deposit_key] = amount
            self.funded += amount
            self._publish()
        logger.info(
            "Vesting pool funded with %d units (deposit %s, funded %d)",
            amount,
            deposit_key,
            self.funded,
            extra={"event": "vesting_pool.funded"},
        )
        return True

    def forget_deposit(self, deposit_key: str) -> None:
        """Undo a deposit that could not be persisted."""
        with self._lock:
            amount = self.deposits.pop(deposit_key)
            self.funded -= amount
            self._publish()

    def reserve(self, amount: int) -> None:
        with self._lock:
            available = self.funded - self.committed
            if amount > available:
                raise InsufficientFundingError(
                    f"Vesting pool has {available} units available, {amount} requested",
                    requested=amount,
                    available=available,
                )
            self.committed += amount
            self._publish()

    def adjust(self, committed_delta: int = 0, disbursed_delta: int = 0) -> None:
        """Apply a settled change from a release or revocation (or undo one)."""
        with self._lock:
            committed = self.committed + committed_delta
            disbursed = self.disbursed + disbursed_delta
            if committed < 0 or disbursed < 0 or disbursed > self.funded:
                raise ValueError("Funding adjustment would leave the pool inconsistent")
            self.committed = committed
            self.disbursed = disbursed
            self._publish()

    def _publish(self) -> None:
        metrics.update_vesting_pool(self.funded, self.committed, self.disbursed)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "funded": str(self.funded),
                "committed": str(self.committed),
                "disbursed": str(self.disbursed),
                "deposits": {key: str(value) for key, value in self.deposits.items()},
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FundingLedger:
        ledger = cls()
        ledger.funded = int(data.get("funded", 0))
        ledger.committed = int(data.get("committed", 0))
        ledger.disbursed = int(data.get("disbursed", 0))
        ledger.deposits = {key: int(value) for key, value in data.get("deposits", {}).items()}
        return ledger
