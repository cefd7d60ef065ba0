from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

# Fields fixed at creation. Two schedules with equal values here describe the
# same grant, which is what idempotent creation compares.
IDENTITY_FIELDS = (
    "beneficiary",
    "total_amount",
    "start",
    "cliff_duration",
    "vesting_duration",
    "revocable",
)


@dataclass(frozen=True)
class VestingSchedule:
    """A cliff + linear vesting grant.

    Records are immutable; release and revoke produce a replacement record
    that the store swaps in under the schedule's lock.
    """

    schedule_id: str
    beneficiary: str
    total_amount: int
    start: int
    cliff_duration: int
    vesting_duration: int
    revocable: bool
    idempotency_key: str | None = None
    released: int = 0
    revoked: bool = False
    revoked_at: int | None = None
    vested_at_revocation: int | None = None
    created_at: int = 0
    last_released_at: int | None = None

    @property
    def cliff_end(self) -> int:
        return self.start + self.cliff_duration

    @property
    def vesting_end(self) -> int:
        return self.start + self.vesting_duration

    @property
    def fully_released(self) -> bool:
        if self.revoked:
            return self.released >= (self.vested_at_revocation or 0)
        return self.released >= self.total_amount

    def identity(self) -> tuple[Any, ...]:
        return tuple(getattr(self, name) for name in IDENTITY_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("total_amount", "released", "vested_at_revocation"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VestingSchedule:
        vested_at_revocation = data.get("vested_at_revocation")
        return cls(
            schedule_id=data["schedule_id"],
            beneficiary=data["beneficiary"],
            total_amount=int(data["total_amount"]),
            start=int(data["start"]),
            cliff_duration=int(data["cliff_duration"]),
            vesting_duration=int(data["vesting_duration"]),
            revocable=bool(data["revocable"]),
            idempotency_key=data.get("idempotency_key"),
            released=int(data.get("released", 0)),
            revoked=bool(data.get("revoked", False)),
            revoked_at=data.get("revoked_at"),
            vested_at_revocation=int(vested_at_revocation) if vested_at_revocation is not None else None,
            created_at=int(data.get("created_at", 0)),
            last_released_at=data.get("last_released_at"),
        )
