"""
Serial execution: one command at a time, in declared order.
"""

import time
from typing import List

from ..exceptions import MultirunError
from .base import Executor
from .result import CommandOutcome, RunResult


class SerialExecutor(Executor):
    """Runs commands one after another.

    Children share the parent's stdin, stdout and stderr. A Ctrl-C reaches
    the running child directly through the terminal's process group, so no
    signal forwarding is done here.
    """

    def run(self) -> RunResult:
        outcomes: List[CommandOutcome] = []
        for index, command in enumerate(self.plan.commands):
            outcome = CommandOutcome(tag=command.tag)
            outcomes.append(outcome)
            self.emit_tag(command)

            try:
                process = self.spawn(command, outcome)
            except MultirunError as e:
                self.record_failure(outcome, e)
            else:
                with process:
                    outcome.finish(process.wait(), time.time())
                if outcome.error is not None:
                    self.logger.error(
                        "%s", outcome.error.message, extra={"tag": command.tag}
                    )

            if outcome.succeeded:
                continue
            if not self.plan.keep_going:
                skipped = len(self.plan.commands) - index - 1
                if skipped:
                    self.logger.debug(
                        "Stopping after %s, %d command(s) not run",
                        command.tag,
                        skipped,
                    )
                break

        return RunResult.fold(outcomes)
