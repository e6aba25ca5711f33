"""
Shared executor plumbing: process spawning and tag output.
"""

import subprocess
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import click

from ..exceptions import LaunchError, MultirunError
from ..instructions import Command, ExecutionPlan
from ..invocation import InvocationBuilder
from ..logging import MultirunLogger
from .result import CommandOutcome, ExecutionStatus, RunResult


class Executor(ABC):
    """Runs every command of a plan and folds the outcomes."""

    def __init__(
        self, plan: ExecutionPlan, builder: Optional[InvocationBuilder] = None
    ):
        self.plan = plan
        self.builder = builder or InvocationBuilder.for_host()
        self.logger = MultirunLogger().get_context_logger(
            executor_class=self.__class__.__name__
        )

    @abstractmethod
    def run(self) -> RunResult:
        """Execute the plan."""
        raise NotImplementedError("Subclasses must implement run()")

    def emit_tag(self, command: Command) -> None:
        if self.plan.print_command:
            click.echo(command.tag)

    def spawn(
        self, command: Command, outcome: CommandOutcome, **popen_kwargs: Any
    ) -> subprocess.Popen:
        """Start a command.

        Raises:
            MultirunError: If no invocation can be built or the OS refuses
                to start the process
        """
        invocation = self.builder.build(command)
        self.logger.debug("Starting %s", command.tag, extra={"argv": invocation.argv})
        outcome.start_time = time.time()
        try:
            process = subprocess.Popen(
                invocation.argv, env=invocation.env, **popen_kwargs
            )
        except (OSError, ValueError) as e:
            raise LaunchError(command.tag, invocation.argv, e) from e
        outcome.status = ExecutionStatus.RUNNING
        return process

    def record_failure(self, outcome: CommandOutcome, error: MultirunError) -> None:
        outcome.fail(error, time.time())
        self.logger.error(
            "Cannot run '%s': %s",
            outcome.tag,
            error.message,
            extra={"tag": outcome.tag},
        )
