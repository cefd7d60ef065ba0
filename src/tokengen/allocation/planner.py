"""
Allocation planner.

Splits a fixed total supply into named buckets by integer percentage.
Each bucket receives ``floor(total_supply * percentage / 100)`` base units;
whatever integer truncation leaves over is returned as ``remainder`` so the
caller assigns it explicitly instead of losing or minting units.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from tokengen.core.constants import PERCENT_DENOMINATOR
from tokengen.core.exceptions import InvalidAllocationError

logger = logging.getLogger("tokengen.allocation.planner")


@dataclass(frozen=True)
class BucketShare:
    name: str
    percentage: int


@dataclass(frozen=True)
class AllocationPlan:
    """Resolved per-bucket amounts for a total supply.

    ``amounts`` preserves bucket order. ``sum(amounts) + remainder`` always
    equals ``total_supply``.
    """

    total_supply: int
    buckets: tuple[BucketShare, ...]
    amounts: dict[str, int] = field(hash=False)
    remainder: int
    remainder_assigned_to: str | None = None

    def amount(self, name: str) -> int:
        try:
            return self.amounts[name]
        except KeyError:
            raise KeyError(f"Unknown bucket: {name}") from None

    def largest_bucket(self) -> str:
        """Name of the bucket with the highest percentage (first wins ties)."""
        best = self.buckets[0]
        for bucket in self.buckets[1:]:
            if bucket.percentage > best.percentage:
                best = bucket
        return best.name

    def assign_remainder(self, name: str) -> AllocationPlan:
        """Return a plan with the remainder folded into ``name``."""
        if name not in self.amounts:
            raise InvalidAllocationError(
                f"Cannot assign remainder to unknown bucket {name!r}",
                details={"bucket": name},
            )
        if self.remainder == 0:
            return self
        amounts = dict(self.amounts)
        amounts[name] += self.remainder
        logger.info(
            "Assigned allocation remainder of %d units to bucket %s",
            self.remainder,
            name,
        )
        return AllocationPlan(
            total_supply=self.total_supply,
            buckets=self.buckets,
            amounts=amounts,
            remainder=0,
            remainder_assigned_to=name,
        )

    def to_dict(self) -> dict[str, Any]:
        # Amounts are serialized as strings: JSON readers outside Python
        # lose precision above 2**53.
        return {
            "total_supply": str(self.total_supply),
            "buckets": [
                {"name": b.name, "percentage": b.percentage, "amount": str(self.amounts[b.name])}
                for b in self.buckets
            ],
            "remainder": str(self.remainder),
            "remainder_assigned_to": self.remainder_assigned_to,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AllocationPlan:
        buckets = tuple(BucketShare(b["name"], int(b["percentage"])) for b in data["buckets"])
        return cls(
            total_supply=int(data["total_supply"]),
            buckets=buckets,
            amounts={b["name"]: int(b["amount"]) for b in data["buckets"]},
            remainder=int(data["remainder"]),
            remainder_assigned_to=data.get("remainder_assigned_to"),
        )

    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON form, used to detect plan drift."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _normalize_buckets(buckets: Any) -> list[BucketShare]:
    if isinstance(buckets, Mapping):
        items: Iterable[Any] = buckets.items()
    elif isinstance(buckets, (str, bytes)) or not isinstance(buckets, Iterable):
        raise InvalidAllocationError("Buckets must be a sequence or mapping")
    else:
        items = buckets

    shares: list[BucketShare] = []
    for item in items:
        if isinstance(item, BucketShare):
            shares.append(item)
        elif hasattr(item, "name") and hasattr(item, "percentage"):
            shares.append(BucketShare(item.name, item.percentage))
        elif isinstance(item, Sequence) and not isinstance(item, str) and len(item) == 2:
            shares.append(BucketShare(item[0], item[1]))
        else:
            raise InvalidAllocationError(f"Malformed bucket entry: {item!r}")
    return shares


def plan(total_supply: int, buckets: Any) -> AllocationPlan:
    """
    Split ``total_supply`` base units across ``buckets``.

    Args:
        total_supply: Positive integer supply in base units
        buckets: Ordered ``(name, percentage)`` pairs, ``BucketShare``
            objects, objects exposing ``name``/``percentage``, or a mapping

    Returns:
        AllocationPlan with floor-divided amounts and the explicit remainder

    Raises:
        InvalidAllocationError: If the supply or percentage table is malformed
    """
    if isinstance(total_supply, bool) or not isinstance(total_supply, int):
        raise InvalidAllocationError("Total supply must be an integer number of base units")
    if total_supply <= 0:
        raise InvalidAllocationError(
            "Total supply must be positive", details={"total_supply": total_supply}
        )

    shares = _normalize_buckets(buckets)
    if not shares:
        raise InvalidAllocationError("At least one bucket is required")

    seen: set[str] = set()
    for share in shares:
        if not isinstance(share.name, str) or not share.name.strip():
            raise InvalidAllocationError(f"Bucket name must be a non-empty string: {share.name!r}")
        if share.name in seen:
            raise InvalidAllocationError(
                f"Duplicate bucket name {share.name!r}", details={"bucket": share.name}
            )
        seen.add(share.name)
        if isinstance(share.percentage, bool) or not isinstance(share.percentage, int):
            raise InvalidAllocationError(
                f"Percentage for {share.name!r} must be an integer",
                details={"bucket": share.name, "percentage": share.percentage},
            )
        if share.percentage < 0:
            raise InvalidAllocationError(
                f"Percentage for {share.name!r} cannot be negative",
                details={"bucket": share.name, "percentage": share.percentage},
            )

    total_pct = sum(share.percentage for share in shares)
    if total_pct != PERCENT_DENOMINATOR:
        raise InvalidAllocationError(
            f"Percentages must sum to exactly {PERCENT_DENOMINATOR}, got {total_pct}",
            details={"sum": total_pct},
        )

    amounts = {
        share.name: total_supply * share.percentage // PERCENT_DENOMINATOR for share in shares
    }
    remainder = total_supply - sum(amounts.values())

    logger.debug(
        "Planned %d buckets for supply %d (remainder %d)",
        len(shares),
        total_supply,
        remainder,
    )
    return AllocationPlan(
        total_supply=total_supply,
        buckets=tuple(shares),
        amounts=amounts,
        remainder=remainder,
    )
