"""
Distribution step list.

The genesis run is an explicit, ordered list of ``DistributionStep``
records derived from the resolved allocation plan and the bucket
configuration. Each step has a stable key used as its idempotency key in
the step log:

- ``transfer:<bucket>``    unlocked / liquidity bucket to its destination
- ``lock:<bucket>``        liquidity lock, after the liquidity transfer
- ``tge_unlock:<bucket>``  TGE-unlocked share of a vested bucket
- ``fund:<bucket>``        vested share into the vesting pool
- ``schedule:<bucket>``    vesting schedule creation, after funding
- ``transfer:remainder``   allocation remainder to the configured sink
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from tokengen.allocation.planner import AllocationPlan, plan
from tokengen.core.config import (
    BUCKET_KIND_LIQUIDITY,
    BUCKET_KIND_VESTED,
    RESERVED_BUCKET_NAME,
    GenesisConfig,
)
from tokengen.core.constants import (
    PERCENT_DENOMINATOR,
    REMAINDER_STRATEGY_BUCKET,
    REMAINDER_STRATEGY_LARGEST,
    REMAINDER_STRATEGY_SINK,
)

logger = logging.getLogger("tokengen.distribution.steps")

STEP_TRANSFER = "transfer"
STEP_LOCK = "lock"
STEP_TGE_UNLOCK = "tge_unlock"
STEP_FUND = "fund"
STEP_SCHEDULE = "schedule"

TRANSFER_KINDS = frozenset({STEP_TRANSFER, STEP_TGE_UNLOCK, STEP_FUND})

REMAINDER_BUCKET = RESERVED_BUCKET_NAME


@dataclass(frozen=True)
class DistributionStep:
    key: str
    kind: str
    bucket: str
    amount: int
    recipient: Optional[str]
    depends_on: tuple[str, ...] = ()
    deferred: bool = False
    # schedule steps
    start: int = 0
    cliff_duration: int = 0
    vesting_duration: int = 0
    revocable: bool = False
    # lock steps
    unlock_timestamp: int = 0

    @property
    def is_transfer(self) -> bool:
        return self.kind in TRANSFER_KINDS

    def describe(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "kind": self.kind,
            "bucket": self.bucket,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "depends_on": list(self.depends_on),
            "deferred": self.deferred,
        }


def step_key(kind: str, bucket: str) -> str:
    return f"{kind}:{bucket}"


def resolve_plan(config: GenesisConfig) -> AllocationPlan:
    """Plan the configured buckets and apply the remainder policy."""
    resolved = plan(
        config.total_supply_units,
        [(bucket.name, bucket.percentage) for bucket in config.buckets],
    )
    strategy = config.remainder.strategy
    if strategy == REMAINDER_STRATEGY_LARGEST:
        return resolved.assign_remainder(resolved.largest_bucket())
    if strategy == REMAINDER_STRATEGY_BUCKET:
        return resolved.assign_remainder(config.remainder.bucket)
    return resolved


def build_steps(config: GenesisConfig, allocation: AllocationPlan) -> List[DistributionStep]:
    """Derive the ordered step list for a resolved plan."""
    steps: List[DistributionStep] = []

    for bucket in config.buckets:
        amount = allocation.amount(bucket.name)
        if amount == 0:
            logger.debug("Bucket %s has no allocation; no steps", bucket.name)
            continue
        deferred = bucket.is_deferred
        if deferred:
            logger.warning(
                "Bucket %s has no destination yet; its steps are deferred",
                bucket.name,
                extra={"event": "distribution.bucket_deferred", "bucket": bucket.name},
            )

        if bucket.kind == BUCKET_KIND_VESTED:
            unlocked = amount * bucket.tge_unlock_percent // PERCENT_DENOMINATOR
            vesting = amount - unlocked
            if unlocked > 0:
                steps.append(
                    DistributionStep(
                        key=step_key(STEP_TGE_UNLOCK, bucket.name),
                        kind=STEP_TGE_UNLOCK,
                        bucket=bucket.name,
                        amount=unlocked,
                        recipient=bucket.destination,
                        deferred=deferred,
                    )
                )
            fund_key = step_key(STEP_FUND, bucket.name)
            steps.append(
                DistributionStep(
                    key=fund_key,
                    kind=STEP_FUND,
                    bucket=bucket.name,
                    amount=vesting,
                    recipient=config.vesting_pool,
                    deferred=deferred,
                )
            )
            steps.append(
                DistributionStep(
                    key=step_key(STEP_SCHEDULE, bucket.name),
                    kind=STEP_SCHEDULE,
                    bucket=bucket.name,
                    amount=vesting,
                    recipient=bucket.destination,
                    depends_on=(fund_key,),
                    deferred=deferred,
                    start=config.tge,
                    cliff_duration=bucket.cliff_duration,
                    vesting_duration=bucket.vesting_duration,
                    revocable=bucket.revocable,
                )
            )
            continue

        transfer_key = step_key(STEP_TRANSFER, bucket.name)
        steps.append(
            DistributionStep(
                key=transfer_key,
                kind=STEP_TRANSFER,
                bucket=bucket.name,
                amount=amount,
                recipient=bucket.destination,
                deferred=deferred,
            )
        )
        if bucket.kind == BUCKET_KIND_LIQUIDITY and bucket.lock_duration:
            steps.append(
                DistributionStep(
                    key=step_key(STEP_LOCK, bucket.name),
                    kind=STEP_LOCK,
                    bucket=bucket.name,
                    amount=amount,
                    recipient=bucket.destination,
                    depends_on=(transfer_key,),
                    deferred=deferred,
                    unlock_timestamp=config.tge + bucket.lock_duration,
                )
            )

    if allocation.remainder > 0 and config.remainder.strategy == REMAINDER_STRATEGY_SINK:
        steps.append(
            DistributionStep(
                key=step_key(STEP_TRANSFER, REMAINDER_BUCKET),
                kind=STEP_TRANSFER,
                bucket=REMAINDER_BUCKET,
                amount=allocation.remainder,
                recipient=config.remainder.sink,
            )
        )

    return steps
