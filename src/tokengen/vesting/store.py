"""
Vesting schedule store.

Owns every ``VestingSchedule`` and the vesting-pool ``FundingLedger``.
Schedules are created once and never deleted; the only mutations are
release and revoke, which run through ``transact`` under a per-schedule
lock so no two read-modify-write sequences on one schedule interleave.

When ``state_path`` is set, schedules, the funding ledger and the id
counter are persisted together in one atomically replaced JSON file.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar

from tokengen.core.exceptions import ScheduleConflictError, ScheduleNotFoundError
from tokengen.core.state_file import read_json, write_json_atomic
from tokengen.vesting.funding import FundingLedger
from tokengen.vesting.schedule import VestingSchedule

logger = logging.getLogger("tokengen.vesting.store")

T = TypeVar("T")

STORE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class StoreUpdate(Generic[T]):
    """Outcome of a transaction: the replacement record, the value handed back
    to the caller and the funding ledger change to apply with it."""

    schedule: VestingSchedule
    result: T
    uncommitted: int = 0
    disbursed: int = 0


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class VestingScheduleStore:
    def __init__(self, state_path: Optional[str] = None):
        self.state_path = state_path
        self.funding = FundingLedger()
        self._schedules: dict[str, VestingSchedule] = {}
        # (lowercased beneficiary, idempotency key) -> schedule_id
        self._by_key: dict[tuple[str, str], str] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._index_lock = threading.RLock()
        self._schedule_id_counter = 0
        if state_path:
            self._load_state()

    # ===== State Management =====
    def _load_state(self) -> None:
        data = read_json(self.state_path)
        if data is None:
            return
        version = data.get("version", STORE_FORMAT_VERSION)
        if version != STORE_FORMAT_VERSION:
            raise ValueError(f"Unsupported vesting store format version {version}")

        self._schedule_id_counter = int(data.get("schedule_id_counter", 0))
        self.funding = FundingLedger.from_dict(data.get("funding", {}))
        for entry in data.get("schedules", []):
            schedule = VestingSchedule.from_dict(entry)
            self._index(schedule)
        logger.info(
            "Loaded %d vesting schedules from %s",
            len(self._schedules),
            self.state_path,
        )

    def _persist_locked(self) -> None:
        if not self.state_path:
            return
        payload = {
            "version": STORE_FORMAT_VERSION,
            "schedule_id_counter": self._schedule_id_counter,
            "schedules": [s.to_dict() for s in self._schedules.values()],
            "funding": self.funding.snapshot(),
        }
        write_json_atomic(self.state_path, payload)

    def _index(self, schedule: VestingSchedule) -> None:
        self._schedules[schedule.schedule_id] = schedule
        self._locks.setdefault(schedule.schedule_id, threading.Lock())
        if schedule.idempotency_key is not None:
            self._by_key[(schedule.beneficiary.lower(), schedule.idempotency_key)] = schedule.schedule_id

    # ===== Queries =====
    def get(self, schedule_id: str) -> VestingSchedule:
        with self._index_lock:
            schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(
                f"Vesting schedule {schedule_id} not found.",
                details={"schedule_id": schedule_id},
            )
        return schedule

    def get_for(self, beneficiary: str, schedule_id: str) -> VestingSchedule:
        """Look a schedule up by ``(beneficiary, schedule_id)``."""
        schedule = self.get(schedule_id)
        if not _same_address(schedule.beneficiary, beneficiary):
            raise ScheduleNotFoundError(
                f"Vesting schedule {schedule_id} not found for {beneficiary}.",
                details={"schedule_id": schedule_id, "beneficiary": beneficiary},
            )
        return schedule

    def find(self, beneficiary: str, idempotency_key: str) -> Optional[VestingSchedule]:
        with self._index_lock:
            schedule_id = self._by_key.get((beneficiary.lower(), idempotency_key))
            return self._schedules.get(schedule_id) if schedule_id else None

    def list_schedules(self, beneficiary: Optional[str] = None) -> List[VestingSchedule]:
        with self._index_lock:
            schedules = list(self._schedules.values())
        if beneficiary is None:
            return schedules
        return [s for s in schedules if _same_address(s.beneficiary, beneficiary)]

    def __len__(self) -> int:
        with self._index_lock:
            return len(self._schedules)

    # ===== Mutations =====
    def record_deposit(self, deposit_key: str, amount: int) -> bool:
        with self._index_lock:
            recorded = self.funding.record_deposit(deposit_key, amount)
            if recorded:
                try:
                    self._persist_locked()
                except OSError:
                    self.funding.forget_deposit(deposit_key)
                    logger.error("Failed to persist vesting pool deposit %s", deposit_key, exc_info=True)
                    raise
        return recorded

    def insert(self, candidate: VestingSchedule) -> tuple[VestingSchedule, bool]:
        """
        Reserve funding for and store a new schedule.

        The candidate's ``schedule_id`` is ignored; a fresh id is assigned.
        When the candidate carries an idempotency key already used by the
        same beneficiary, the existing schedule is returned if every identity
        field matches and ``ScheduleConflictError`` is raised otherwise.

        Returns:
            Tuple of (stored schedule, whether it was newly created)
        """
        with self._index_lock:
            if candidate.idempotency_key is not None:
                existing_id = self._by_key.get(
                    (candidate.beneficiary.lower(), candidate.idempotency_key)
                )
                if existing_id is not None:
                    existing = self._schedules[existing_id]
                    if existing.identity() != candidate.identity():
                        raise ScheduleConflictError(
                            f"Idempotency key {candidate.idempotency_key!r} already used "
                            f"by {existing_id} with different parameters",
                            details={
                                "schedule_id": existing_id,
                                "idempotency_key": candidate.idempotency_key,
                            },
                        )
                    return existing, False

            self.funding.reserve(candidate.total_amount)
            self._schedule_id_counter += 1
            schedule = dataclasses.replace(
                candidate, schedule_id=f"vesting_{self._schedule_id_counter}"
            )
            self._index(schedule)
            try:
                self._persist_locked()
            except OSError:
                self._schedules.pop(schedule.schedule_id)
                self._locks.pop(schedule.schedule_id, None)
                if schedule.idempotency_key is not None:
                    self._by_key.pop((schedule.beneficiary.lower(), schedule.idempotency_key))
                self._schedule_id_counter -= 1
                self.funding.adjust(committed_delta=-schedule.total_amount)
                logger.error("Failed to persist new vesting schedule", exc_info=True)
                raise
        return schedule, True

    def transact(
        self,
        schedule_id: str,
        fn: Callable[[VestingSchedule], StoreUpdate[T]],
    ) -> T:
        """
        Run a read-modify-write on one schedule atomically.

        ``fn`` receives the current record and returns a ``StoreUpdate``.
        Exceptions raised by ``fn`` leave the schedule untouched.
        """
        self.get(schedule_id)
        with self._index_lock:
            lock = self._locks[schedule_id]

        with lock:
            current = self.get(schedule_id)
            update = fn(current)
            if update.schedule is current:
                return update.result
            if update.schedule.schedule_id != schedule_id:
                raise ValueError("A transaction cannot change the schedule id")

            with self._index_lock:
                self.funding.adjust(
                    committed_delta=-update.uncommitted, disbursed_delta=update.disbursed
                )
                self._schedules[schedule_id] = update.schedule
                try:
                    self._persist_locked()
                except OSError:
                    self._schedules[schedule_id] = current
                    self.funding.adjust(
                        committed_delta=update.uncommitted, disbursed_delta=-update.disbursed
                    )
                    logger.error(
                        "Failed to persist update for vesting schedule %s",
                        schedule_id,
                        exc_info=True,
                    )
                    raise
        return update.result

    def snapshot(self) -> dict[str, Any]:
        with self._index_lock:
            return {
                "schedules": [s.to_dict() for s in self._schedules.values()],
                "funding": self.funding.snapshot(),
            }
