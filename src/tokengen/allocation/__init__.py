"""Percentage-based allocation of the genesis supply."""

from tokengen.allocation.planner import AllocationPlan, BucketShare, plan

__all__ = ["AllocationPlan", "BucketShare", "plan"]
