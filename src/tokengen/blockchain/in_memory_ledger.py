"""
In-memory token ledger.

Implements the ``Ledger`` protocol for dry runs and tests: balances live in
a dict, transfers are applied on submission and confirmed immediately.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Dict

from tokengen.core.exceptions import PermanentTransferError, TransientTransferError
from tokengen.core.interfaces import TransferReceipt

logger = logging.getLogger("tokengen.blockchain.in_memory_ledger")


class InMemoryLedger:
    def __init__(self, balances: Dict[str, int] | None = None):
        self.balances: Dict[str, int] = {}
        self.transactions: Dict[str, TransferReceipt] = {}
        self._nonce = 0
        self._lock = threading.Lock()
        for address, amount in (balances or {}).items():
            self.mint(address, amount)

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def mint(self, address: str, amount: int) -> None:
        """Credit ``amount`` to ``address`` (genesis supply for simulations)."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError("Mint amount must be a non-negative integer")
        with self._lock:
            key = self._key(address)
            self.balances[key] = self.balances.get(key, 0) + amount

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self.balances.get(self._key(address), 0)

    def transfer(self, sender: str, recipient: str, amount: int) -> str:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise PermanentTransferError(
                "Transfer amount must be a positive integer", details={"amount": repr(amount)}
            )
        if not recipient:
            raise PermanentTransferError("Recipient address cannot be empty")

        with self._lock:
            sender_key = self._key(sender)
            balance = self.balances.get(sender_key, 0)
            if balance < amount:
                raise PermanentTransferError(
                    f"Insufficient balance: {sender} holds {balance}, transfer needs {amount}",
                    details={"sender": sender, "balance": balance, "amount": amount},
                )
            self._nonce += 1
            tx_hash = "0x" + hashlib.sha256(
                f"{sender_key}:{recipient.lower()}:{amount}:{self._nonce}".encode()
            ).hexdigest()
            self.balances[sender_key] = balance - amount
            recipient_key = self._key(recipient)
            self.balances[recipient_key] = self.balances.get(recipient_key, 0) + amount
            self.transactions[tx_hash] = TransferReceipt(
                tx_hash=tx_hash, sender=sender, recipient=recipient, amount=amount
            )

        logger.debug("Transfer %s: %d units %s -> %s", tx_hash, amount, sender, recipient)
        return tx_hash

    def confirm(self, tx_hash: str) -> TransferReceipt:
        with self._lock:
            receipt = self.transactions.get(tx_hash)
        if receipt is None:
            raise TransientTransferError(f"Transaction {tx_hash} not found", tx_hash=tx_hash)
        return receipt
