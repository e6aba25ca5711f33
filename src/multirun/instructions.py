"""
Instruction document models and loader.

The document is JSON written by the build rule; field names match the keys
the rule emits.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError
from .logging import MultirunLogger
from .runfiles import Runfiles, create_runfiles, rlocation, runfiles_location

logger = MultirunLogger().get_context_logger(component="instructions")


class Command(BaseModel):
    """One executable invocation."""

    path: str = Field(..., min_length=1)
    tag: str = ""
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ExecutionPlan(BaseModel):
    """The full instruction document for one run."""

    commands: List[Command] = Field(default_factory=list)
    jobs: int = 0
    print_command: bool = False
    keep_going: bool = False
    buffer_output: bool = False
    forward_stdin: bool = False
    workspace_name: str = ""

    model_config = {"frozen": True, "extra": "ignore"}

    @property
    def concurrent(self) -> bool:
        return self.jobs == 0


def parse_plan(raw: Union[str, bytes], source: Optional[str] = None) -> ExecutionPlan:
    """Parse and validate a serialized instruction document.

    Raises:
        ConfigError: If the document is not valid JSON or fails validation
    """
    try:
        return ExecutionPlan.model_validate_json(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(
            f"Invalid instructions file: {problems}", config_path=source
        ) from e


def read_plan(path: Union[str, Path]) -> ExecutionPlan:
    """Read an instruction document from disk.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(
            f"Instructions file not found: {config_path}", config_path=str(path)
        )
    try:
        raw = config_path.read_bytes()
    except OSError as e:
        raise ConfigError(
            f"Failed to read instructions file: {e}", config_path=str(path)
        ) from e
    return parse_plan(raw, source=str(path))


def prepare_plan(
    plan: ExecutionPlan, extra_args: Sequence[str], runfiles: Optional[Runfiles]
) -> ExecutionPlan:
    """Resolve every command path and append the run-time arguments.

    Every path is resolved before the new plan is returned, so a single
    unresolvable command aborts the whole run.

    Raises:
        ResolutionError: If any command path cannot be resolved
    """
    extra = list(extra_args)
    commands = []
    for command in plan.commands:
        location = runfiles_location(plan.workspace_name, command.path)
        resolved = rlocation(runfiles, location)
        logger.debug("Resolved %s to %s", command.path, resolved)
        commands.append(
            command.model_copy(
                update={"path": resolved, "args": list(command.args) + extra}
            )
        )
    return plan.model_copy(update={"commands": commands})


def load_plan(
    path: Union[str, Path],
    extra_args: Sequence[str] = (),
    runfiles: Optional[Runfiles] = None,
) -> ExecutionPlan:
    """Load an instruction document into a ready-to-run plan.

    Args:
        path: Path to the JSON instructions file
        extra_args: Arguments appended to every command
        runfiles: Runfiles used for path resolution; discovered when omitted

    Returns:
        ExecutionPlan with absolute command paths

    Raises:
        ConfigError: If the document is missing, unreadable or malformed
        ResolutionError: If any command path cannot be resolved
    """
    plan = read_plan(path)
    if runfiles is None and plan.commands:
        runfiles = create_runfiles()
    plan = prepare_plan(plan, extra_args, runfiles)
    logger.debug(
        "Loaded %d command(s) from %s",
        len(plan.commands),
        path,
        extra={"jobs": plan.jobs, "workspace_name": plan.workspace_name},
    )
    return plan
