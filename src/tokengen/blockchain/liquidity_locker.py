import logging
import threading
from typing import Any, Dict, List

logger = logging.getLogger("tokengen.blockchain.liquidity_locker")


class LiquidityLocker:
    def __init__(self):
        # {lock_id: {"amount": int, "unlock_timestamp": int, "owner": str, "status": str, "idempotency_key": str}}
        self.locked_positions: Dict[str, Dict[str, Any]] = {}
        self._by_key: Dict[str, str] = {}
        self._lock_id_counter = 0
        self._lock = threading.Lock()

    def lock_liquidity(
        self,
        owner_address: str,
        amount: int,
        unlock_timestamp: int,
        idempotency_key: str,
    ) -> str:
        """
        Locks liquidity until ``unlock_timestamp``.

        A repeated call with the same idempotency key returns the original
        lock id without locking again.
        """
        if not owner_address:
            raise ValueError("Owner address cannot be empty.")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError("Lock amount must be a positive integer.")
        if isinstance(unlock_timestamp, bool) or not isinstance(unlock_timestamp, int) or unlock_timestamp <= 0:
            raise ValueError("Unlock timestamp must be a positive integer.")
        if not idempotency_key:
            raise ValueError("Idempotency key cannot be empty.")

        with self._lock:
            existing = self._by_key.get(idempotency_key)
            if existing is not None:
                position = self.locked_positions[existing]
                if position["amount"] != amount or position["unlock_timestamp"] != unlock_timestamp:
                    raise ValueError(
                        f"Idempotency key {idempotency_key} already used by {existing} with different parameters."
                    )
                return existing

            self._lock_id_counter += 1
            lock_id = f"lock_{self._lock_id_counter}"
            self.locked_positions[lock_id] = {
                "amount": amount,
                "unlock_timestamp": unlock_timestamp,
                "owner": owner_address,
                "status": "locked",
                "idempotency_key": idempotency_key,
            }
            self._by_key[idempotency_key] = lock_id

        logger.info(
            "Liquidity locked: %d units by %s until %s (lock_id=%s)",
            amount,
            owner_address,
            unlock_timestamp,
            lock_id,
        )
        return lock_id

    def unlock_liquidity(self, lock_id: str, caller_address: str, current_time: int) -> int:
        """
        Unlocks a position after its unlock timestamp has passed.
        """
        with self._lock:
            position = self.locked_positions.get(lock_id)
            if not position:
                raise ValueError(f"Lock ID {lock_id} not found.")
            if position["owner"].lower() != caller_address.lower():
                raise PermissionError(f"Caller {caller_address} is not the owner of lock ID {lock_id}.")
            if position["status"] == "unlocked":
                raise ValueError(f"Liquidity for lock ID {lock_id} is already unlocked.")
            if current_time < position["unlock_timestamp"]:
                remaining_time = position["unlock_timestamp"] - current_time
                raise ValueError(
                    f"Liquidity for lock ID {lock_id} is still locked. "
                    f"Unlock available in {remaining_time} seconds."
                )
            position["status"] = "unlocked"
            unlocked_amount = position["amount"]

        logger.info(
            "Liquidity unlocked: %d units for lock %s by %s",
            unlocked_amount,
            lock_id,
            caller_address,
        )
        return unlocked_amount

    def get_locked_liquidity(self, owner_address: str | None = None) -> List[Dict[str, Any]]:
        """
        Returns all locked positions, or the locked positions of one owner.
        """
        with self._lock:
            positions = [pos for pos in self.locked_positions.values() if pos["status"] == "locked"]
        if owner_address:
            return [pos for pos in positions if pos["owner"].lower() == owner_address.lower()]
        return positions

    def get_total_locked_liquidity(self) -> int:
        return sum(pos["amount"] for pos in self.get_locked_liquidity())
