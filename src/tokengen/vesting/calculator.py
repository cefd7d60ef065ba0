"""
Release calculator.

Pure functions over a ``VestingSchedule`` and an explicit ``now``:

- before ``start + cliff_duration`` nothing has vested (this includes any
  ``now`` earlier than ``start``);
- from ``start + vesting_duration`` on, the whole grant has vested;
- in between, ``floor(total_amount * (now - start) / vesting_duration)``.

The linear curve is measured from ``start``; the cliff only gates when
release begins. A revoked schedule never vests beyond the amount frozen at
revocation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tokengen.core.exceptions import InvalidTimestampError
from tokengen.vesting.schedule import VestingSchedule


def validate_timestamp(value: Any, name: str = "now") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidTimestampError(
            f"{name} must be an integer unix timestamp", details={name: repr(value)}
        )
    if value < 0:
        raise InvalidTimestampError(f"{name} cannot be negative", details={name: value})
    return value


def vested_amount(schedule: VestingSchedule, now: int) -> int:
    """Cumulative amount vested at ``now``, independent of releases."""
    now = validate_timestamp(now)

    if now < schedule.start + schedule.cliff_duration:
        vested = 0
    elif now >= schedule.start + schedule.vesting_duration:
        vested = schedule.total_amount
    else:
        elapsed = now - schedule.start
        vested = schedule.total_amount * elapsed // schedule.vesting_duration

    if schedule.revoked:
        vested = min(vested, schedule.vested_at_revocation or 0)
    return vested


def releasable(schedule: VestingSchedule, now: int) -> int:
    """Amount that a release at ``now`` would transfer to the beneficiary."""
    return max(0, vested_amount(schedule, now) - schedule.released)


@dataclass(frozen=True)
class VestingTimeline:
    cliff_end: int
    vesting_end: int
    amount_at_cliff: int
    units_per_second: int


def vesting_timeline(schedule: VestingSchedule) -> VestingTimeline:
    """Key points of the curve, used by previews and status output."""
    return VestingTimeline(
        cliff_end=schedule.cliff_end,
        vesting_end=schedule.vesting_end,
        amount_at_cliff=vested_amount(schedule, schedule.cliff_end),
        units_per_second=schedule.total_amount // schedule.vesting_duration,
    )
