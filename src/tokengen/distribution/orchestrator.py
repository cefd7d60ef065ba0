"""
Genesis distribution orchestrator.

Executes the step list derived from the allocation plan against a ``Ledger``
and a ``LiquidityLockerProvider``. Every step outcome is written to the step
log before the next step starts, so a run interrupted anywhere can be
started again with the same configuration and state directory: completed
steps are skipped and in-flight transfers are confirmed rather than sent a
second time.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from tokengen.allocation.planner import AllocationPlan
from tokengen.core import metrics
from tokengen.core.config import GenesisConfig
from tokengen.core.constants import (
    ALLOCATION_PLAN_FILE,
    STEP_LOG_FILE,
    VESTING_STORE_FILE,
)
from tokengen.core.exceptions import (
    ConfigurationError,
    DistributionError,
    PermanentTransferError,
    PlanMismatchError,
    TransientTransferError,
)
from tokengen.core.interfaces import Ledger, LiquidityLockerProvider, TransferReceipt
from tokengen.core.state_file import read_json, write_json_atomic
from tokengen.distribution.retry import RetryStrategy
from tokengen.distribution.step_log import StepLog, StepStatus
from tokengen.distribution.steps import (
    STEP_FUND,
    STEP_LOCK,
    STEP_SCHEDULE,
    DistributionStep,
    build_steps,
    resolve_plan,
)
from tokengen.vesting.scheduler import VestingScheduler
from tokengen.vesting.store import VestingScheduleStore

logger = logging.getLogger("tokengen.distribution.orchestrator")


@dataclass
class DistributionReport:
    plan: AllocationPlan
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    def to_dict(self) -> Dict[str, Any]:
        error = None
        if self.error is not None:
            to_dict = getattr(self.error, "to_dict", None)
            error = to_dict() if callable(to_dict) else {
                "error": type(self.error).__name__,
                "message": str(self.error),
            }
        return {
            "ok": self.ok,
            "plan_fingerprint": self.plan.fingerprint(),
            "completed": list(self.completed),
            "skipped": list(self.skipped),
            "deferred": list(self.deferred),
            "blocked": list(self.blocked),
            "failed_step": self.failed_step,
            "error": error,
        }


class DistributionOrchestrator:
    def __init__(
        self,
        config: GenesisConfig,
        ledger: Ledger,
        scheduler: Optional[VestingScheduler] = None,
        locker: Optional[LiquidityLockerProvider] = None,
        state_dir: Optional[str] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        time_provider: Optional[Callable[[], int]] = None,
    ):
        self.config = config
        self.ledger = ledger
        self.locker = locker
        self.state_dir = state_dir
        self.retry_strategy = retry_strategy or RetryStrategy()

        if scheduler is None:
            store = VestingScheduleStore(self._state_path(VESTING_STORE_FILE))
            scheduler = VestingScheduler(store, time_provider=time_provider)
        self.scheduler = scheduler
        self.step_log = StepLog(self._state_path(STEP_LOG_FILE))

        self._plan: Optional[AllocationPlan] = None
        self._steps: List[DistributionStep] = []

    def _state_path(self, name: str) -> Optional[str]:
        if not self.state_dir:
            return None
        return os.path.join(self.state_dir, name)

    @property
    def store(self) -> VestingScheduleStore:
        return self.scheduler.store

    @property
    def steps(self) -> List[DistributionStep]:
        if self._plan is None:
            self.prepare()
        return list(self._steps)

    # ===== Planning =====
    def prepare(self) -> AllocationPlan:
        """
        Resolve the plan, check it against the recorded one and build steps.

        Raises:
            PlanMismatchError: If the state directory holds a different plan
            ConfigurationError: If a lock step exists but no locker is set
        """
        allocation = resolve_plan(self.config)
        self._audit_plan(allocation)
        steps = build_steps(self.config, allocation)
        if self.locker is None and any(step.kind == STEP_LOCK for step in steps):
            raise ConfigurationError("Liquidity lock steps require a liquidity locker")
        self._plan = allocation
        self._steps = steps
        return allocation

    def _audit_plan(self, allocation: AllocationPlan) -> None:
        path = self._state_path(ALLOCATION_PLAN_FILE)
        if path is None:
            return
        recorded = read_json(path)
        fingerprint = allocation.fingerprint()
        if recorded is None:
            write_json_atomic(path, {"fingerprint": fingerprint, "plan": allocation.to_dict()})
            logger.info(
                "Recorded allocation plan %s",
                fingerprint,
                extra={"event": "distribution.plan_recorded"},
            )
            return
        if recorded.get("fingerprint") != fingerprint:
            raise PlanMismatchError(
                "Allocation plan differs from the plan recorded for this state directory",
                details={"recorded": recorded.get("fingerprint"), "computed": fingerprint},
            )

    # ===== Execution =====
    def run(self, buckets: Optional[Iterable[str]] = None) -> DistributionReport:
        """
        Execute pending steps in order and stop at the first failure.

        ``buckets`` restricts the run to the named buckets.
        """
        allocation = self.prepare()
        report = DistributionReport(plan=allocation)

        selected = None
        if buckets is not None:
            selected = set(buckets)
            known = {step.bucket for step in self._steps} | {b.name for b in self.config.buckets}
            unknown = sorted(selected - known)
            if unknown:
                raise ConfigurationError(
                    f"Unknown buckets: {', '.join(unknown)}", details={"buckets": unknown}
                )

        for step in self._steps:
            if selected is not None and step.bucket not in selected:
                continue
            if self.step_log.is_completed(step.key):
                report.skipped.append(step.key)
                continue
            if step.deferred:
                self.step_log.mark_deferred(step)
                metrics.record_step_outcome(step.kind, StepStatus.DEFERRED.value)
                report.deferred.append(step.key)
                continue
            if any(not self.step_log.is_completed(dep) for dep in step.depends_on):
                report.blocked.append(step.key)
                continue

            success, _, error = self.retry_strategy.execute(self._execute, step)
            if not success:
                self.step_log.mark_failed(step, error)
                metrics.record_step_outcome(step.kind, StepStatus.FAILED.value)
                logger.error(
                    "Distribution step %s failed: %s",
                    step.key,
                    error,
                    extra={"event": "distribution.step_failed", "step": step.key},
                )
                report.failed_step = step.key
                report.error = error
                break

            report.completed.append(step.key)
            metrics.record_step_outcome(step.kind, StepStatus.COMPLETED.value)

        logger.info(
            "Distribution run finished: %d completed, %d skipped, %d deferred, %d blocked%s",
            len(report.completed),
            len(report.skipped),
            len(report.deferred),
            len(report.blocked),
            f", failed at {report.failed_step}" if report.failed_step else "",
            extra={"event": "distribution.run_finished"},
        )
        return report

    def _execute(self, step: DistributionStep) -> Optional[str]:
        if step.is_transfer:
            receipt = self._transfer(step)
            if step.kind == STEP_FUND:
                self.store.record_deposit(step.key, step.amount)
            self.step_log.mark_completed(step, tx_hash=receipt.tx_hash)
            logger.info(
                "Step %s completed: %d units to %s (%s)",
                step.key,
                step.amount,
                step.recipient,
                receipt.tx_hash,
                extra={"event": "distribution.step_completed", "step": step.key},
            )
            return receipt.tx_hash

        if step.kind == STEP_SCHEDULE:
            result = self.scheduler.create(
                step.recipient,
                step.amount,
                step.start,
                step.cliff_duration,
                step.vesting_duration,
                revocable=step.revocable,
                idempotency_key=step.bucket,
            )
        elif step.kind == STEP_LOCK:
            result = self.locker.lock_liquidity(
                step.recipient, step.amount, step.unlock_timestamp, step.key
            )
        else:
            raise DistributionError(f"Unknown step kind {step.kind}", step_key=step.key)

        self.step_log.mark_completed(step, result=result)
        logger.info(
            "Step %s completed: %s",
            step.key,
            result,
            extra={"event": "distribution.step_completed", "step": step.key},
        )
        return result

    def _transfer(self, step: DistributionStep) -> TransferReceipt:
        record = self.step_log.get(step.key)
        tx_hash = None
        if record is not None and record.tx_hash and (
            record.confirmed
            or record.status == StepStatus.IN_FLIGHT
            or (record.status == StepStatus.FAILED and record.recoverable)
        ):
            tx_hash = record.tx_hash
            logger.info("Re-confirming transaction %s for step %s", tx_hash, step.key)
        else:
            tx_hash = self.ledger.transfer(self.config.source, step.recipient, step.amount)
            self.step_log.mark_in_flight(step, tx_hash)

        receipt = self.ledger.confirm(tx_hash)
        if not receipt.confirmed:
            raise TransientTransferError(f"Transaction {tx_hash} is not confirmed yet", tx_hash=tx_hash)
        if (
            receipt.amount != step.amount
            or receipt.recipient.lower() != step.recipient.lower()
        ):
            raise PermanentTransferError(
                f"Receipt for {tx_hash} does not match step {step.key}",
                tx_hash=tx_hash,
                details={"step": step.key, "amount": str(receipt.amount)},
            )
        self.step_log.mark_confirmed(step, tx_hash)
        return receipt
