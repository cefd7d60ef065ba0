"""Cliff + linear vesting: schedules, release math, funding and creation."""

from tokengen.vesting.calculator import releasable, vested_amount, vesting_timeline
from tokengen.vesting.funding import FundingLedger
from tokengen.vesting.schedule import VestingSchedule
from tokengen.vesting.scheduler import VestingScheduler
from tokengen.vesting.store import VestingScheduleStore

__all__ = [
    "FundingLedger",
    "VestingSchedule",
    "VestingScheduleStore",
    "VestingScheduler",
    "releasable",
    "vested_amount",
    "vesting_timeline",
]
