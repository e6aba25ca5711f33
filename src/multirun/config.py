"""Engine settings loaded from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .exceptions import ConfigError

ENV_PREFIX = "MULTIRUN_"

# Override for the shell used to wrap commands on hosts without direct exec.
SHELL_ENV_VAR = "BAZEL_SH"


@dataclass
class EngineSettings:
    """Settings that control the engine itself, not the commands it runs.

    Each field can be set through a ``MULTIRUN_<FIELD>`` environment variable;
    explicit CLI flags are applied on top by ``with_overrides``.
    """

    debug: bool = field(default=False)
    log_dir: Optional[Path] = field(default=None)
    shell_env_var: str = field(default=SHELL_ENV_VAR)

    environ: Optional[Mapping[str, str]] = field(default=None, repr=False)

    def __post_init__(self):
        self._load_from_env(os.environ if self.environ is None else self.environ)

    def _load_from_env(self, environ: Mapping[str, str]) -> None:
        """Load configuration from environment variables.

        Raises:
            ConfigError: If a variable holds a value of the wrong type
        """
        raw_debug = environ.get(f"{ENV_PREFIX}DEBUG")
        if raw_debug is not None:
            value = raw_debug.strip().lower()
            if value in ("true", "1", "yes", "on"):
                self.debug = True
            elif value in ("false", "0", "no", "off", ""):
                self.debug = False
            else:
                raise ConfigError(
                    f"Invalid value for {ENV_PREFIX}DEBUG: {raw_debug!r}"
                )

        raw_log_dir = environ.get(f"{ENV_PREFIX}LOG_DIR")
        if raw_log_dir:
            self.log_dir = Path(os.path.expanduser(raw_log_dir))

    def with_overrides(
        self, debug: bool = False, log_dir: Optional[str] = None
    ) -> "EngineSettings":
        """Apply CLI flags on top of the environment values."""
        if debug:
            self.debug = True
        if log_dir:
            self.log_dir = Path(log_dir)
        return self
