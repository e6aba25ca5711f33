"""
Plan execution package.
"""

from typing import Optional

from ..instructions import ExecutionPlan
from ..invocation import InvocationBuilder
from .base import Executor
from .concurrent import ConcurrentExecutor, RunningProcess, StdinFanout
from .result import CommandOutcome, ExecutionStatus, RunResult
from .serial import SerialExecutor


def create_executor(
    plan: ExecutionPlan, builder: Optional[InvocationBuilder] = None
) -> Executor:
    """Pick the executor selected by the plan's ``jobs`` value."""
    if plan.concurrent:
        return ConcurrentExecutor(plan, builder)
    return SerialExecutor(plan, builder)


def run_plan(
    plan: ExecutionPlan, builder: Optional[InvocationBuilder] = None
) -> RunResult:
    """Run a plan with the executor it selects."""
    return create_executor(plan, builder).run()


__all__ = [
    "CommandOutcome",
    "ConcurrentExecutor",
    "ExecutionStatus",
    "Executor",
    "RunResult",
    "RunningProcess",
    "SerialExecutor",
    "StdinFanout",
    "create_executor",
    "run_plan",
]
