from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable, List, Optional

from tokengen.core import metrics
from tokengen.core.address_checksum import normalize_address
from tokengen.core.exceptions import (
    InvalidScheduleError,
    InvalidTimestampError,
    NothingToReleaseError,
    ScheduleNotRevocableError,
    VestingError,
)
from tokengen.vesting.calculator import releasable, validate_timestamp, vested_amount
from tokengen.vesting.schedule import VestingSchedule
from tokengen.vesting.store import StoreUpdate, VestingScheduleStore

logger = logging.getLogger("tokengen.vesting.scheduler")


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScheduleError(f"{name} must be an integer", details={name: repr(value)})
    return value


class VestingScheduler:
    """
    Creates, releases and revokes vesting schedules held by a store.

    Every operation accepts an explicit ``now``; when omitted, the injected
    ``time_provider`` is read instead.
    """

    def __init__(
        self,
        store: VestingScheduleStore,
        time_provider: Callable[[], int] | None = None,
    ):
        self.store = store
        self._time_provider = time_provider or (lambda: int(time.time()))

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise InvalidTimestampError("time_provider must return an integer timestamp") from exc

    def _resolve_now(self, now: int | None) -> int:
        return validate_timestamp(self._current_time() if now is None else now)

    # ===== Creation =====
    def create(
        self,
        beneficiary: str,
        amount: int,
        start: int,
        cliff_duration: int,
        vesting_duration: int,
        revocable: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """
        Create a vesting schedule funded from the vesting pool.

        Args:
            beneficiary: Address receiving the vested tokens
            amount: Total base units to vest
            start: Unix timestamp the linear curve is measured from
            cliff_duration: Seconds after ``start`` before anything is releasable
            vesting_duration: Seconds after ``start`` when everything has vested
                (includes the cliff)
            revocable: Whether the schedule may later be revoked
            idempotency_key: Optional key; re-creating with the same key and
                parameters returns the existing schedule id

        Returns:
            The schedule id

        Raises:
            InvalidScheduleError: If any parameter is invalid
            InsufficientFundingError: If the pool lacks unreserved funds
            ScheduleConflictError: If the key exists with different parameters
        """
        if not beneficiary:
            raise InvalidScheduleError("Beneficiary address cannot be empty.")
        try:
            beneficiary = normalize_address(beneficiary)
        except ValueError as exc:
            raise InvalidScheduleError(
                f"Invalid beneficiary: {exc}", details={"beneficiary": beneficiary}
            ) from exc

        amount = _require_int(amount, "amount")
        start = _require_int(start, "start")
        cliff_duration = _require_int(cliff_duration, "cliff_duration")
        vesting_duration = _require_int(vesting_duration, "vesting_duration")
        if not isinstance(revocable, bool):
            raise InvalidScheduleError("revocable must be a boolean")

        if amount <= 0:
            raise InvalidScheduleError("Total amount must be a positive integer.")
        if start < 0:
            raise InvalidScheduleError("Start time cannot be negative.")
        if cliff_duration < 0:
            raise InvalidScheduleError("Cliff duration cannot be negative.")
        if vesting_duration <= 0:
            raise InvalidScheduleError("Vesting duration must be positive.")
        if cliff_duration > vesting_duration:
            raise InvalidScheduleError(
                "Cliff duration cannot exceed vesting duration.",
                details={"cliff_duration": cliff_duration, "vesting_duration": vesting_duration},
            )
        if idempotency_key is not None and (
            not isinstance(idempotency_key, str) or not idempotency_key
        ):
            raise InvalidScheduleError("Idempotency key must be a non-empty string")

        candidate = VestingSchedule(
            schedule_id="",
            beneficiary=beneficiary,
            total_amount=amount,
            start=start,
            cliff_duration=cliff_duration,
            vesting_duration=vesting_duration,
            revocable=revocable,
            idempotency_key=idempotency_key,
            created_at=self._current_time(),
        )
        schedule, created = self.store.insert(candidate)

        if created:
            metrics.record_schedule_created()
            logger.info(
                "Vesting schedule %s created for %s (%d units, cliff %ds, duration %ds)",
                schedule.schedule_id,
                beneficiary,
                amount,
                cliff_duration,
                vesting_duration,
                extra={"event": "vesting.schedule_created", "schedule_id": schedule.schedule_id},
            )
        else:
            logger.info(
                "Vesting schedule %s already exists for key %s",
                schedule.schedule_id,
                idempotency_key,
            )
        return schedule.schedule_id

    # ===== Queries =====
    def get(self, beneficiary: str, schedule_id: str) -> VestingSchedule:
        return self.store.get_for(beneficiary, schedule_id)

    def find(self, beneficiary: str, idempotency_key: str) -> Optional[VestingSchedule]:
        return self.store.find(beneficiary, idempotency_key)

    def schedules_for(self, beneficiary: str) -> List[VestingSchedule]:
        return self.store.list_schedules(beneficiary)

    def get_releasable(self, beneficiary: str, schedule_id: str, now: int | None = None) -> int:
        return releasable(self.get(beneficiary, schedule_id), self._resolve_now(now))

    # ===== Mutations =====
    def release(self, beneficiary: str, schedule_id: str, now: int | None = None) -> int:
        """
        Release everything vested but not yet released.

        Returns the released delta, which the caller transfers out of the
        vesting pool. Raises NothingToReleaseError when the delta is zero.
        """
        now = self._resolve_now(now)
        self.get(beneficiary, schedule_id)

        def apply(current: VestingSchedule) -> StoreUpdate[int]:
            amount = releasable(current, now)
            if amount <= 0:
                raise NothingToReleaseError(
                    f"No tokens available to release for schedule {schedule_id}",
                    details={"schedule_id": schedule_id, "now": now, "released": current.released},
                )
            released = current.released + amount
            if released > current.total_amount:
                raise VestingError(
                    f"Release would exceed total amount for schedule {schedule_id}",
                    details={"schedule_id": schedule_id},
                )
            updated = dataclasses.replace(current, released=released, last_released_at=now)
            return StoreUpdate(updated, amount, disbursed=amount)

        amount = self.store.transact(schedule_id, apply)
        metrics.record_release(amount)
        logger.info(
            "Released %d units for schedule %s",
            amount,
            schedule_id,
            extra={"event": "vesting.released", "schedule_id": schedule_id},
        )
        return amount

    def revoke(self, beneficiary: str, schedule_id: str, now: int | None = None) -> int:
        """
        Stop further accrual on a revocable schedule.

        The amount vested at ``now`` (never less than what was already
        released) stays releasable; the unvested rest is returned to the
        vesting pool and reported as the return value.
        """
        now = self._resolve_now(now)
        self.get(beneficiary, schedule_id)

        def apply(current: VestingSchedule) -> StoreUpdate[int]:
            if not current.revocable:
                raise ScheduleNotRevocableError(
                    f"Vesting schedule {schedule_id} is not revocable.",
                    details={"schedule_id": schedule_id},
                )
            if current.revoked:
                raise ScheduleNotRevocableError(
                    f"Vesting schedule {schedule_id} is already revoked.",
                    details={"schedule_id": schedule_id},
                )
            frozen = max(vested_amount(current, now), current.released)
            unvested = current.total_amount - frozen
            updated = dataclasses.replace(
                current, revoked=True, revoked_at=now, vested_at_revocation=frozen
            )
            return StoreUpdate(updated, unvested, uncommitted=unvested)

        unvested = self.store.transact(schedule_id, apply)
        metrics.record_revocation()
        logger.warning(
            "Vesting schedule %s revoked at %d; %d unvested units returned to the pool",
            schedule_id,
            now,
            unvested,
            extra={"event": "vesting.revoked", "schedule_id": schedule_id},
        )
        return unvested
