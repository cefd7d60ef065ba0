"""In-memory ledger and liquidity locker used for dry runs and tests."""

from tokengen.blockchain.in_memory_ledger import InMemoryLedger
from tokengen.blockchain.liquidity_locker import LiquidityLocker

__all__ = ["InMemoryLedger", "LiquidityLocker"]
