"""
Concurrent execution: every command runs at once as its own process.

Output is either passed straight through (children may interleave) or
captured per child and written as one contiguous block once the child has
exited. Stdin lines can be fanned out to every child, and interrupts sent to
the engine are forwarded to the children.
"""

import os
import signal
import subprocess
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO, Iterator, List, Optional

import click

from ..exceptions import MultirunError
from ..instructions import Command, ExecutionPlan
from ..invocation import InvocationBuilder
from ..logging import MultirunLogger
from .base import Executor
from .result import CommandOutcome, RunResult

FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

READ_SIZE = 64 * 1024


@dataclass
class RunningProcess:
    """A started child, owned by its join thread until it exits."""

    command: Command
    process: subprocess.Popen
    outcome: CommandOutcome
    stdin: Optional[IO[bytes]] = None


class StdinFanout:
    """Copies each line of the parent's stdin to every registered child pipe.

    The source is read in raw chunks rather than through a buffered reader,
    so a pump still blocked on an open terminal or pipe never holds a stream
    lock the interpreter needs at shutdown.
    """

    def __init__(self, source: Optional[IO[bytes]], owned: bool = False):
        self.source = source
        self.owned = owned
        self.logger = MultirunLogger().get_context_logger(
            component=self.__class__.__name__
        )
        self._pipes: List[IO[bytes]] = []
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(
            target=self._pump, name="multirun-stdin", daemon=True
        )

    def register(self, pipe: IO[bytes]) -> None:
        with self._lock:
            if not self._closed:
                self._pipes.append(pipe)
                return
        self._close(pipe)

    def detach(self, pipe: IO[bytes]) -> None:
        """Stop feeding a pipe and close it."""
        with self._lock:
            if pipe in self._pipes:
                self._pipes.remove(pipe)
        self._close(pipe)

    def start(self) -> None:
        self._thread.start()

    def close_all(self) -> None:
        with self._lock:
            self._closed = True
            pipes, self._pipes = self._pipes, []
        for pipe in pipes:
            self._close(pipe)

    def _snapshot(self) -> List[IO[bytes]]:
        with self._lock:
            return list(self._pipes)

    def _lines(self) -> Iterator[bytes]:
        """Yield the source line by line, newline included, bytes untouched."""
        pending = b""
        while True:
            chunk = self.source.read(READ_SIZE)
            if not chunk:
                break
            lines = (pending + chunk).split(b"\n")
            pending = lines.pop()
            for line in lines:
                yield line + b"\n"
        if pending:
            yield pending

    def _pump(self) -> None:
        try:
            if self.source is None:
                return
            for line in self._lines():
                for pipe in self._snapshot():
                    self._write(pipe, line)
        except (OSError, ValueError) as e:
            self.logger.warning("Stopped reading stdin: %s", e)
        finally:
            self.close_all()
            if self.owned and self.source is not None:
                self._close(self.source)

    def _write(self, pipe: IO[bytes], line: bytes) -> None:
        try:
            pipe.write(line)
            pipe.flush()
        except (OSError, ValueError):
            # The child is gone; drop its pipe and keep feeding the others.
            self.detach(pipe)

    def _close(self, pipe: IO[bytes]) -> None:
        try:
            pipe.close()
        except (OSError, ValueError):
            pass


class ConcurrentExecutor(Executor):
    """Starts every command before waiting on any of them."""

    def __init__(
        self,
        plan: ExecutionPlan,
        builder: Optional[InvocationBuilder] = None,
        stdin: Optional[IO[bytes]] = None,
    ):
        super().__init__(plan, builder)
        self.stdin = stdin
        self.fanout: Optional[StdinFanout] = None
        self.running: List[RunningProcess] = []
        self._output_lock = threading.Lock()
        self._open_line = False

    def run(self) -> RunResult:
        outcomes = [CommandOutcome(tag=command.tag) for command in self.plan.commands]
        if self.plan.forward_stdin:
            if self.stdin is not None:
                self.fanout = StdinFanout(self.stdin)
            else:
                self.fanout = StdinFanout(self.open_stdin(), owned=True)

        with self.forward_signals():
            for command, outcome in zip(self.plan.commands, outcomes):
                self.launch(command, outcome)

            if self.fanout is not None:
                self.fanout.start()

            threads = [
                threading.Thread(
                    target=self.join_process,
                    args=(running,),
                    name=f"multirun-join-{index}",
                )
                for index, running in enumerate(self.running)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        if self.fanout is not None:
            self.fanout.close_all()

        result = RunResult.fold(outcomes)
        self.logger.debug(
            "%d of %d command(s) failed",
            len(result.failures),
            len(result.outcomes),
        )
        return result

    def open_stdin(self) -> Optional[IO[bytes]]:
        """Duplicate the parent's stdin as an unbuffered binary stream."""
        try:
            return os.fdopen(os.dup(0), "rb", buffering=0)
        except OSError as e:
            self.logger.warning("Cannot forward stdin: %s", e)
            return None

    def launch(self, command: Command, outcome: CommandOutcome) -> None:
        """Start one command; a launch failure only affects that command."""
        buffered = self.plan.buffer_output
        forwarding = self.fanout is not None
        if not buffered:
            self.emit_tag(command)
        try:
            process = self.spawn(
                command,
                outcome,
                stdin=subprocess.PIPE if forwarding else subprocess.DEVNULL,
                stdout=subprocess.PIPE if buffered else None,
                stderr=subprocess.STDOUT if buffered else None,
            )
        except MultirunError as e:
            self.record_failure(outcome, e)
            return

        running = RunningProcess(command, process, outcome)
        if self.fanout is not None:
            running.stdin = process.stdin
            self.fanout.register(process.stdin)
        self.running.append(running)

    def join_process(self, running: RunningProcess) -> None:
        """Drain and wait for one child, then publish its output."""
        process = running.process
        output = b""
        try:
            if process.stdout is not None:
                output = process.stdout.read()
            exit_code = process.wait()
        finally:
            if running.stdin is not None and self.fanout is not None:
                self.fanout.detach(running.stdin)
            if process.stdout is not None:
                process.stdout.close()

        outcome = running.outcome
        outcome.output = output
        outcome.finish(exit_code, time.time())
        if self.plan.buffer_output:
            self.emit_block(running.command, output)
        if outcome.error is not None:
            self.logger.error(
                "%s", outcome.error.message, extra={"tag": running.command.tag}
            )

    def emit_block(self, command: Command, output: bytes) -> None:
        """Write a finished child's output as one uninterrupted block.

        A tag always starts on its own line: if the previous block ended
        mid-line, a newline is written before the tag. The child's own bytes
        are never altered.
        """
        with self._output_lock:
            block = output
            if self.plan.print_command:
                tag_line = command.tag.encode() + b"\n"
                if self._open_line:
                    tag_line = b"\n" + tag_line
                block = tag_line + output
            if not block:
                return
            click.echo(block, nl=False)
            self._open_line = not block.endswith(b"\n")

    def _forward(self, signum: int, frame) -> None:
        self.logger.warning(
            "Received signal %d, forwarding to running commands", signum
        )
        for running in self.running:
            try:
                running.process.send_signal(signum)
            except (ProcessLookupError, ValueError) as e:
                self.logger.debug(
                    "Could not signal %s: %s", running.command.tag, e
                )

    @contextmanager
    def forward_signals(self) -> Iterator[None]:
        """Forward interrupts to every child for the duration of the run."""
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        previous = {}
        for signum in FORWARDED_SIGNALS:
            previous[signum] = signal.signal(signum, self._forward)
        try:
            yield
        finally:
            for signum, handler in previous.items():
                signal.signal(
                    signum, handler if handler is not None else signal.SIG_DFL
                )
