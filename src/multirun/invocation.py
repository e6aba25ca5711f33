"""
Invocation building: turns a command into the argv and environment to spawn.

Hosts that can execute the target directly get a plain argv. Windows cannot
run the shell scripts Bazel produces, so commands there are wrapped through
a bash interpreter.
"""

import os
import shutil
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .config import SHELL_ENV_VAR
from .exceptions import InterpreterNotFoundError
from .instructions import Command


@dataclass(frozen=True)
class Invocation:
    """Everything needed to start one command."""

    tag: str
    argv: List[str]
    env: Dict[str, str] = field(repr=False)


class LaunchStrategy(ABC):
    """How a resolved command path becomes an argv."""

    @abstractmethod
    def argv(self, command: Command, environ: Mapping[str, str]) -> List[str]:
        """Build the argv for a command."""
        raise NotImplementedError("Subclasses must implement argv()")


class DirectLaunch(LaunchStrategy):
    """Execute the resolved path directly."""

    def argv(self, command: Command, environ: Mapping[str, str]) -> List[str]:
        return [command.path, *command.args]


class ShellShimLaunch(LaunchStrategy):
    """Run the resolved path through a bash interpreter."""

    def __init__(self, shell_env_var: str = SHELL_ENV_VAR):
        self.shell_env_var = shell_env_var

    def find_shell(self, environ: Mapping[str, str]) -> str:
        """Locate the interpreter: the override variable first, then PATH.

        Raises:
            InterpreterNotFoundError: If neither yields an interpreter
        """
        if shell := environ.get(self.shell_env_var):
            return shell
        if shell := shutil.which("bash.exe", path=environ.get("PATH")):
            return shell
        raise InterpreterNotFoundError(self.shell_env_var)

    def argv(self, command: Command, environ: Mapping[str, str]) -> List[str]:
        shell = self.find_shell(environ)
        # "--" fills $0 so the command's own args start at $1
        return [shell, "-c", f'{command.path} "$@"', "--", *command.args]


class InvocationBuilder:
    """Builds invocations for one host; has no side effects."""

    def __init__(
        self, strategy: LaunchStrategy, environ: Optional[Mapping[str, str]] = None
    ):
        self.strategy = strategy
        self.environ = dict(os.environ if environ is None else environ)

    @classmethod
    def for_host(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
        shell_env_var: str = SHELL_ENV_VAR,
    ) -> "InvocationBuilder":
        """Pick the launch strategy for the current (or given) platform."""
        platform = platform or sys.platform
        if platform == "win32":
            strategy: LaunchStrategy = ShellShimLaunch(shell_env_var)
        else:
            strategy = DirectLaunch()
        return cls(strategy, environ)

    def environment(self, command: Command) -> Dict[str, str]:
        """Parent environment overlaid with the command's own variables."""
        env = self.environ.copy()
        env.update(command.env)
        return env

    def build(self, command: Command) -> Invocation:
        """Build the invocation for a command.

        Raises:
            InterpreterNotFoundError: If the host needs a shell and has none
        """
        return Invocation(
            tag=command.tag,
            argv=self.strategy.argv(command, self.environ),
            env=self.environment(command),
        )
