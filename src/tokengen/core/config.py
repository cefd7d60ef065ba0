"""
tokengen Configuration

Genesis parameters (supply, percentages, destinations, vesting terms) come
from a YAML file validated by the pydantic models below. Runtime defaults
(state directory, logging, retry policy) come from environment variables.

Nothing here is mutable process state: ``load_config`` returns a new
validated ``GenesisConfig`` that is passed explicitly to the planner and the
distribution orchestrator.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, conint, constr, model_validator

from tokengen.core.address_checksum import is_zero_address, validate_address
from tokengen.core.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    PERCENT_DENOMINATOR,
    REMAINDER_STRATEGY_BUCKET,
    REMAINDER_STRATEGY_LARGEST,
    REMAINDER_STRATEGY_SINK,
    TOKEN_DECIMALS,
)
from tokengen.core.exceptions import ConfigurationError
from tokengen.core.units import months_to_seconds, to_base_units

logger = logging.getLogger(__name__)

STATE_DIR = os.getenv("TOKENGEN_STATE_DIR", os.path.join(os.getcwd(), "genesis_state"))
LOG_LEVEL = os.getenv("TOKENGEN_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("TOKENGEN_LOG_FILE", "").strip()
MAX_RETRIES = int(os.getenv("TOKENGEN_MAX_RETRIES", str(DEFAULT_MAX_RETRIES)))
RETRY_BASE_DELAY = float(os.getenv("TOKENGEN_RETRY_BASE_DELAY", str(DEFAULT_RETRY_BASE_DELAY)))

BUCKET_KIND_UNLOCKED = "unlocked"
BUCKET_KIND_VESTED = "vested"
BUCKET_KIND_LIQUIDITY = "liquidity"

RESERVED_BUCKET_NAME = "remainder"


def _checked_address(value: Optional[str], field_name: str, allow_zero: bool) -> Optional[str]:
    if value is None:
        return None
    valid, result = validate_address(value, allow_zero=allow_zero)
    if not valid:
        raise ValueError(f"{field_name}: {result}")
    return result


def _pick_duration(months: Optional[int], seconds: Optional[int], name: str) -> Optional[int]:
    if months is not None and seconds is not None:
        raise ValueError(f"Specify either {name}_months or {name}_seconds, not both")
    if months is not None:
        return months_to_seconds(months)
    return seconds


class TokenConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    symbol: constr(min_length=1) = "TOKEN"
    decimals: conint(ge=0, le=36) = TOKEN_DECIMALS
    # Whole tokens; a string keeps large or fractional values exact.
    total_supply: int | str

    @property
    def total_supply_units(self) -> int:
        return to_base_units(self.total_supply, self.decimals)

    @model_validator(mode="after")
    def _check_supply(self) -> "TokenConfig":
        try:
            units = self.total_supply_units
        except ValueError as exc:
            raise ValueError(f"total_supply: {exc}") from exc
        if units <= 0:
            raise ValueError("total_supply must be positive")
        return self


class BucketConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1)
    percentage: conint(ge=0)
    kind: Literal["unlocked", "vested", "liquidity"] = BUCKET_KIND_UNLOCKED
    # None or the zero address defers the bucket until an address is known.
    destination: Optional[str] = None
    tge_unlock_percent: conint(ge=0, le=100) = 0
    cliff_months: Optional[conint(ge=0)] = None
    cliff_seconds: Optional[conint(ge=0)] = None
    vesting_months: Optional[conint(gt=0)] = None
    vesting_seconds: Optional[conint(gt=0)] = None
    revocable: bool = False
    lock_months: Optional[conint(gt=0)] = None
    lock_seconds: Optional[conint(gt=0)] = None

    @property
    def cliff_duration(self) -> int:
        return _pick_duration(self.cliff_months, self.cliff_seconds, "cliff") or 0

    @property
    def vesting_duration(self) -> Optional[int]:
        return _pick_duration(self.vesting_months, self.vesting_seconds, "vesting")

    @property
    def lock_duration(self) -> Optional[int]:
        return _pick_duration(self.lock_months, self.lock_seconds, "lock")

    @property
    def is_deferred(self) -> bool:
        return is_zero_address(self.destination)

    @model_validator(mode="after")
    def _check_terms(self) -> "BucketConfig":
        self.destination = _checked_address(self.destination, "destination", allow_zero=True)

        vesting_fields = (
            self.cliff_months,
            self.cliff_seconds,
            self.vesting_months,
            self.vesting_seconds,
        )
        if self.kind == BUCKET_KIND_VESTED:
            vesting_duration = self.vesting_duration
            if vesting_duration is None:
                raise ValueError(f"Vested bucket {self.name} needs vesting_months or vesting_seconds")
            if self.cliff_duration > vesting_duration:
                raise ValueError(
                    f"Bucket {self.name}: cliff cannot exceed the vesting duration "
                    "(the duration is measured from TGE and includes the cliff)"
                )
            if self.tge_unlock_percent >= 100:
                raise ValueError(f"Bucket {self.name}: tge_unlock_percent must leave something to vest")
        else:
            if any(value is not None for value in vesting_fields) or self.revocable:
                raise ValueError(f"Bucket {self.name}: vesting terms require kind 'vested'")
            if self.tge_unlock_percent:
                raise ValueError(f"Bucket {self.name}: tge_unlock_percent requires kind 'vested'")

        if self.kind != BUCKET_KIND_LIQUIDITY and (
            self.lock_months is not None or self.lock_seconds is not None
        ):
            raise ValueError(f"Bucket {self.name}: lock terms require kind 'liquidity'")
        _pick_duration(self.lock_months, self.lock_seconds, "lock")
        return self


class RemainderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    strategy: Literal["largest", "bucket", "sink"] = REMAINDER_STRATEGY_LARGEST
    bucket: Optional[str] = None
    sink: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> "RemainderConfig":
        if self.strategy == REMAINDER_STRATEGY_BUCKET and not self.bucket:
            raise ValueError("Remainder strategy 'bucket' needs a bucket name")
        if self.strategy == REMAINDER_STRATEGY_SINK:
            if not self.sink:
                raise ValueError("Remainder strategy 'sink' needs a sink address")
            self.sink = _checked_address(self.sink, "sink", allow_zero=False)
        return self


class GenesisConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: TokenConfig
    tge: conint(ge=0)
    source: str
    vesting_pool: str
    remainder: RemainderConfig = Field(default_factory=RemainderConfig)
    buckets: list[BucketConfig] = Field(min_length=1)

    @property
    def total_supply_units(self) -> int:
        return self.token.total_supply_units

    def bucket(self, name: str) -> BucketConfig:
        for bucket in self.buckets:
            if bucket.name == name:
                return bucket
        raise KeyError(f"Unknown bucket: {name}")

    @model_validator(mode="after")
    def _check_references(self) -> "GenesisConfig":
        self.source = _checked_address(self.source, "source", allow_zero=False)
        self.vesting_pool = _checked_address(self.vesting_pool, "vesting_pool", allow_zero=False)
        names = [bucket.name for bucket in self.buckets]
        if len(set(names)) != len(names):
            raise ValueError("Bucket names must be unique")
        if RESERVED_BUCKET_NAME in names:
            raise ValueError(f"Bucket name '{RESERVED_BUCKET_NAME}' is reserved for the remainder transfer")
        total_pct = sum(bucket.percentage for bucket in self.buckets)
        if total_pct != PERCENT_DENOMINATOR:
            raise ValueError(f"Bucket percentages must sum to {PERCENT_DENOMINATOR}, got {total_pct}")
        if self.remainder.strategy == REMAINDER_STRATEGY_BUCKET and self.remainder.bucket not in names:
            raise ValueError(f"Remainder bucket {self.remainder.bucket} is not a configured bucket")
        return self


def config_from_dict(data: Any) -> GenesisConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("Genesis configuration must be a mapping")
    try:
        return GenesisConfig.model_validate(data)
    except ValidationError as exc:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        raise ConfigurationError(
            f"Invalid genesis configuration ({len(errors)} errors)",
            details={"errors": errors},
        ) from exc


def load_config(path: str | Path) -> GenesisConfig:
    """Load and validate a YAML genesis configuration file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file {path} does not exist")
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file {path} is not valid YAML: {exc}") from exc
    config = config_from_dict(data)
    logger.info(
        "Loaded genesis configuration %s (%d buckets, TGE %d)",
        path,
        len(config.buckets),
        config.tge,
    )
    return config
