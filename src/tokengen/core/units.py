"""
Token unit and duration helpers.

Amounts are handled as integer base units (10**decimals per whole token)
without relying on floats. Durations expressed in months use one shared
approximation: a month is exactly 30 days (``SECONDS_PER_MONTH``). This is a
deliberate business simplification, not a calendar computation.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Any

from tokengen.core.constants import (
    MAX_TOKEN_DECIMALS,
    SECONDS_PER_MONTH,
    TOKEN_DECIMALS,
)

_WORKING_PRECISION = 96


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ValueError("Decimals must be an int")
    if decimals < 0 or decimals > MAX_TOKEN_DECIMALS:
        raise ValueError(f"Decimals must be between 0 and {MAX_TOKEN_DECIMALS}")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("Amount must be int, str, or Decimal")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise ValueError("Amount must be int, str, or Decimal")


def to_base_units(value: Any, decimals: int = TOKEN_DECIMALS) -> int:
    """Convert a whole-token amount to integer base units.

    Fractions finer than the token precision are rejected rather than
    truncated, so a configuration typo cannot silently lose units.
    """
    _check_decimals(decimals)
    try:
        dec = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Invalid amount value: {value}") from exc

    if dec.is_nan() or dec.is_infinite():
        raise ValueError("Amount must be finite")
    if dec < 0:
        raise ValueError("Amount cannot be negative")

    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        scaled = dec.scaleb(decimals)
        if scaled != scaled.to_integral_value(rounding=ROUND_DOWN):
            raise ValueError(f"Amount {value} has more than {decimals} decimal places")
        return int(scaled)


def from_base_units(value: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Convert integer base units to a Decimal whole-token amount."""
    _check_decimals(decimals)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("Base units must be an int")
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return Decimal(value).scaleb(-decimals)


def format_units(value: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Format base units as a plain decimal string (``1500000000000000000`` -> ``1.5``)."""
    text = f"{from_base_units(value, decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def months_to_seconds(months: int) -> int:
    """Convert a month count to seconds using the 30-day month."""
    if isinstance(months, bool) or not isinstance(months, int):
        raise ValueError("Months must be an int")
    if months < 0:
        raise ValueError("Months cannot be negative")
    return months * SECONDS_PER_MONTH

