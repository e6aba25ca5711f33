"""
multirun - run a declared set of executables serially or concurrently.

The engine reads a JSON instructions file written by a build rule, resolves
each command against the binary's runfiles, runs the commands and exits with
an aggregate status.
"""

from importlib import metadata as importlib_metadata
from importlib.metadata import PackageNotFoundError

from .exceptions import (
    ConfigError,
    ExitError,
    InterpreterNotFoundError,
    LaunchError,
    MultirunError,
    ResolutionError,
)
from .execution import RunResult, run_plan
from .instructions import Command, ExecutionPlan, load_plan

try:
    __version__ = importlib_metadata.version("multirun")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Command",
    "ConfigError",
    "ExecutionPlan",
    "ExitError",
    "InterpreterNotFoundError",
    "LaunchError",
    "MultirunError",
    "ResolutionError",
    "RunResult",
    "load_plan",
    "run_plan",
]
