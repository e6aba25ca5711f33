"""
Custom exceptions for the multirun engine.

Fatal errors (``ConfigError``, ``ResolutionError``) stop the run before any
process starts. Per-command errors (``InterpreterNotFoundError``,
``LaunchError``, ``ExitError``) are recorded against a single command and
folded into the aggregate result.
"""

from typing import Optional, Any, Dict, Sequence


class MultirunError(Exception):
    """Base exception for all multirun errors."""

    def __init__(
        self,
        message: str,
        *args: Any,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "MULTIRUN_ERROR"
        self.context = context or {}
        super().__init__(message, *args)

    def __str__(self) -> str:
        error_msg = f"[{self.error_code}] {self.message}"
        if self.context:
            error_msg += f"\nContext: {self.context}"
        return error_msg


class ConfigError(MultirunError):
    """Raised when the instructions file is missing, unreadable or malformed."""

    def __init__(self, message: str, *args: Any, config_path: Optional[str] = None):
        super().__init__(
            message,
            *args,
            error_code="CONFIG_ERROR",
            context={"config_path": config_path} if config_path else None,
        )


class ResolutionError(MultirunError):
    """Raised when a command path cannot be resolved to a runnable location."""

    def __init__(self, path: str, reason: str, *args: Any):
        self.path = path
        super().__init__(
            f"Cannot resolve '{path}': {reason}",
            *args,
            error_code="RESOLUTION_ERROR",
            context={"path": path},
        )


class InterpreterNotFoundError(MultirunError):
    """Raised when the shell needed to launch a command is not available."""

    def __init__(self, env_var: str, *args: Any):
        super().__init__(
            f"Shell interpreter not found (set {env_var})",
            *args,
            error_code="ENVIRONMENT_ERROR",
            context={"env_var": env_var},
        )


class LaunchError(MultirunError):
    """Raised when the OS refuses to start a command."""

    def __init__(self, tag: str, argv: Sequence[str], cause: Exception):
        self.tag = tag
        self.argv = list(argv)
        self.cause = cause
        super().__init__(
            f"Process could not be started: {cause}",
            error_code="LAUNCH_ERROR",
            context={"tag": tag, "argv": self.argv},
        )


class ExitError(MultirunError):
    """Error recorded when a started command exits with a nonzero status."""

    def __init__(self, tag: str, exit_code: int):
        """Initialize with command details.

        Args:
            tag: Tag of the command that failed
            exit_code: The exit code from the command; negative for a signal
        """
        self.tag = tag
        self.exit_code = exit_code

        super().__init__(
            f"'{tag}' failed with exit code {exit_code}",
            error_code="EXIT_ERROR",
            context={"tag": tag, "exit_code": exit_code},
        )
