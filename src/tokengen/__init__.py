"""
tokengen - Token Genesis Allocation & Vesting Engine

Splits a fixed token supply into named allocation buckets, funds and tracks
cliff + linear vesting schedules, and sequences the genesis distribution as a
resumable, idempotent list of steps.

Main Components:
- Allocation: percentage table to exact integer amounts with remainder accounting
- Vesting: schedule store, release calculator, scheduler with funding ledger
- Distribution: step list and durable execution log for the genesis run
- Blockchain: in-memory ledger and liquidity locker used for dry runs
"""

__version__ = "0.1.0"
__author__ = "tokengen Development Team"

__all__ = []
