"""
Exception hierarchy for tokengen.

Every failure raised by the allocation, vesting and distribution modules
derives from ``TokenGenesisError`` so callers can catch the whole family,
while the ``recoverable`` flag tells the distribution run whether retrying
the same step later can succeed.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TokenGenesisError(Exception):
    """Base exception for all token genesis errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# ==================== Configuration Errors ====================


class ConfigurationError(TokenGenesisError):
    """Raised when the genesis configuration is missing or invalid."""
    pass


class PlanMismatchError(ConfigurationError):
    """Raised when a resumed run computes a plan that differs from the recorded one."""
    pass


# ==================== Allocation Errors ====================


class InvalidAllocationError(TokenGenesisError):
    """Raised when a percentage table or total supply is malformed.

    Examples: percentages not summing to 100, negative percentage,
    duplicate bucket name, zero total supply.
    """
    pass


# ==================== Vesting Errors ====================


class VestingError(TokenGenesisError):
    """Base class for vesting schedule errors."""
    pass


class InvalidScheduleError(VestingError):
    """Raised when schedule parameters fail validation."""
    pass


class InvalidTimestampError(VestingError):
    """Raised when a timestamp is not a non-negative integer."""
    pass


class InsufficientFundingError(VestingError):
    """Raised when the vesting pool is not funded enough for a new schedule.

    Recoverable: succeeds once the funding step for the pool has completed.
    """

    def __init__(
        self,
        message: str,
        requested: int = 0,
        available: int = 0,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("recoverable", True)
        details = kwargs.pop("details", None) or {}
        details.update({"requested": requested, "available": available})
        super().__init__(message, details=details, **kwargs)
        self.requested = requested
        self.available = available


class ScheduleConflictError(VestingError):
    """Raised when an idempotency key is reused with different parameters."""
    pass


class ScheduleNotFoundError(VestingError):
    """Raised when no schedule matches the requested beneficiary and id."""
    pass


class ScheduleNotRevocableError(VestingError):
    """Raised when revoking a schedule that is irrevocable or already revoked."""
    pass


class NothingToReleaseError(VestingError):
    """Raised by release when the releasable amount is zero.

    Not a failure: the schedule is untouched and the caller has nothing to
    transfer.
    """
    pass


# ==================== Ledger Errors ====================


class TransferError(TokenGenesisError):
    """Base class for ledger transfer and confirmation failures."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.tx_hash = tx_hash


class TransientTransferError(TransferError):
    """Network or confirmation issue; the same step can be retried."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, tx_hash=tx_hash, **kwargs)


class PermanentTransferError(TransferError):
    """Transfer rejected by the ledger's policy; the run must abort."""
    pass


# ==================== Distribution Errors ====================


class DistributionError(TokenGenesisError):
    """Raised when a distribution step cannot be executed."""

    def __init__(self, message: str, step_key: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.step_key = step_key
