"""
Durable distribution step log.

One record per step key. A step is written as ``in_flight`` (with its
transaction hash) before the orchestrator waits for confirmation and as
``completed`` right after, so a run that crashes at any point can be resumed
without repeating a confirmed transfer.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from tokengen.core.exceptions import TokenGenesisError
from tokengen.core.state_file import read_json, write_json_atomic
from tokengen.distribution.steps import DistributionStep

logger = logging.getLogger("tokengen.distribution.step_log")


class StepStatus(str, Enum):
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"
    DEFERRED = "deferred"


@dataclass
class StepRecord:
    key: str
    kind: str
    bucket: str
    amount: str
    status: StepStatus
    tx_hash: Optional[str] = None
    confirmed: bool = False
    result: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    attempts: int = 0
    updated_at: float = field(default_factory=time.time)

    @property
    def recoverable(self) -> bool:
        return bool(self.error and self.error.get("recoverable"))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepRecord":
        return cls(
            key=data["key"],
            kind=data["kind"],
            bucket=data["bucket"],
            amount=str(data["amount"]),
            status=StepStatus(data["status"]),
            tx_hash=data.get("tx_hash"),
            confirmed=bool(data.get("confirmed", False)),
            result=data.get("result"),
            error=data.get("error"),
            attempts=int(data.get("attempts", 0)),
            updated_at=float(data.get("updated_at", 0.0)),
        )


def _error_payload(error: BaseException) -> Dict[str, Any]:
    if isinstance(error, TokenGenesisError):
        return error.to_dict()
    return {"error": type(error).__name__, "message": str(error), "recoverable": False}


class StepLog:
    def __init__(self, state_path: Optional[str] = None):
        self.state_path = state_path
        self._records: Dict[str, StepRecord] = {}
        self._lock = threading.RLock()
        if state_path:
            data = read_json(state_path)
            if data is not None:
                for entry in data.get("steps", []):
                    record = StepRecord.from_dict(entry)
                    self._records[record.key] = record
                logger.info("Loaded %d step records from %s", len(self._records), state_path)

    def _persist_locked(self) -> None:
        if not self.state_path:
            return
        write_json_atomic(
            self.state_path,
            {"steps": [record.to_dict() for record in self._records.values()]},
        )

    def _upsert(self, step: DistributionStep, status: StepStatus, **changes: Any) -> StepRecord:
        with self._lock:
            record = self._records.get(step.key)
            if record is None:
                record = StepRecord(
                    key=step.key,
                    kind=step.kind,
                    bucket=step.bucket,
                    amount=str(step.amount),
                    status=status,
                )
            record.status = status
            for name, value in changes.items():
                setattr(record, name, value)
            record.updated_at = time.time()
            self._records[step.key] = record
            self._persist_locked()
            return record

    def get(self, key: str) -> Optional[StepRecord]:
        with self._lock:
            return self._records.get(key)

    def is_completed(self, key: str) -> bool:
        record = self.get(key)
        return record is not None and record.status == StepStatus.COMPLETED

    def records(self) -> List[StepRecord]:
        with self._lock:
            return list(self._records.values())

    def mark_in_flight(self, step: DistributionStep, tx_hash: str) -> None:
        self._upsert(step, StepStatus.IN_FLIGHT, tx_hash=tx_hash, confirmed=False, error=None)

    def mark_confirmed(self, step: DistributionStep, tx_hash: str) -> None:
        self._upsert(step, StepStatus.IN_FLIGHT, tx_hash=tx_hash, confirmed=True, error=None)

    def mark_completed(
        self,
        step: DistributionStep,
        tx_hash: Optional[str] = None,
        result: Optional[str] = None,
    ) -> None:
        with self._lock:
            existing = self._records.get(step.key)
            if tx_hash is None and existing is not None:
                tx_hash = existing.tx_hash
            self._upsert(step, StepStatus.COMPLETED, tx_hash=tx_hash, result=result, error=None)

    def mark_failed(self, step: DistributionStep, error: BaseException) -> None:
        payload = _error_payload(error)
        with self._lock:
            existing = self._records.get(step.key)
            # A transaction that confirmed, or may still confirm, is kept so the
            # next run re-confirms it instead of submitting a second transfer.
            keep = existing is not None and (existing.confirmed or payload.get("recoverable"))
            tx_hash = existing.tx_hash if keep else None
            confirmed = existing.confirmed if keep else False
            failures = (existing.attempts if existing is not None else 0) + 1
            self._upsert(
                step,
                StepStatus.FAILED,
                tx_hash=tx_hash,
                confirmed=confirmed,
                error=payload,
                attempts=failures,
            )

    def mark_deferred(self, step: DistributionStep) -> None:
        self._upsert(step, StepStatus.DEFERRED)
