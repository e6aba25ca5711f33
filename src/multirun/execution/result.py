"""
Per-command outcomes and the aggregate run result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from ..exceptions import ExitError, MultirunError


class ExecutionStatus(Enum):
    """Status of one command."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CommandOutcome:
    """What happened to one command."""

    tag: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    exit_code: Optional[int] = None
    output: bytes = b""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    error: Optional[MultirunError] = None

    @property
    def succeeded(self) -> bool:
        # A zero exit reached through an error path is still a failure.
        return (
            self.status is ExecutionStatus.COMPLETED
            and self.exit_code == 0
            and self.error is None
        )

    @property
    def duration(self) -> Optional[float]:
        """Get execution duration in seconds."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return None

    def finish(self, exit_code: int, end_time: float) -> "CommandOutcome":
        """Record the exit status of a started command."""
        self.exit_code = exit_code
        self.end_time = end_time
        if exit_code == 0:
            self.status = ExecutionStatus.COMPLETED
        else:
            self.status = ExecutionStatus.FAILED
            self.error = ExitError(self.tag, exit_code)
        return self

    def fail(self, error: MultirunError, end_time: float) -> "CommandOutcome":
        """Record a command that could not be started."""
        self.status = ExecutionStatus.FAILED
        self.error = error
        self.end_time = end_time
        return self


@dataclass
class RunResult:
    """Aggregate of every attempted command, in declared order."""

    outcomes: List[CommandOutcome] = field(default_factory=list)

    @classmethod
    def fold(cls, outcomes: Iterable[CommandOutcome]) -> "RunResult":
        return cls(outcomes=list(outcomes))

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def failures(self) -> List[CommandOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1
