"""Resumable genesis distribution: step list, step log and orchestrator."""

from tokengen.distribution.orchestrator import DistributionOrchestrator, DistributionReport
from tokengen.distribution.retry import RetryStrategy
from tokengen.distribution.step_log import StepLog, StepRecord, StepStatus
from tokengen.distribution.steps import DistributionStep, build_steps, resolve_plan

__all__ = [
    "DistributionOrchestrator",
    "DistributionReport",
    "DistributionStep",
    "RetryStrategy",
    "StepLog",
    "StepRecord",
    "StepStatus",
    "build_steps",
    "resolve_plan",
]
