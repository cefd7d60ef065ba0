"""
Vesting and distribution instrumentation.

Prometheus metrics tracking schedule creation, releases, revocations,
vesting-pool funding and distribution step outcomes, with helper functions
that are safe to call from the release path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

schedules_created_counter = Counter(
    "tokengen_vesting_schedules_created_total", "Total vesting schedules created"
)

tokens_released_counter = Counter(
    "tokengen_tokens_released_total", "Total base units released from vesting schedules"
)

revocations_counter = Counter(
    "tokengen_vesting_revocations_total", "Total vesting schedules revoked"
)

distribution_steps_counter = Counter(
    "tokengen_distribution_steps_total",
    "Distribution step outcomes",
    ["kind", "status"],
)

vesting_pool_gauge = Gauge(
    "tokengen_vesting_pool_units",
    "Vesting pool funding ledger totals in base units",
    ["field"],
)


def record_schedule_created() -> None:
    schedules_created_counter.inc()


def record_release(amount: int) -> None:
    """Increment the release counter for a positive delta."""
    if amount <= 0:
        return
    tokens_released_counter.inc(amount)


def record_revocation() -> None:
    revocations_counter.inc()


def record_step_outcome(kind: str, status: str) -> None:
    distribution_steps_counter.labels(kind=kind, status=status).inc()


def update_vesting_pool(funded: int, committed: int, disbursed: int) -> None:
    """Refresh the vesting pool gauges from the funding ledger totals."""
    vesting_pool_gauge.labels(field="funded").set(funded)
    vesting_pool_gauge.labels(field="committed").set(committed)
    vesting_pool_gauge.labels(field="disbursed").set(disbursed)
