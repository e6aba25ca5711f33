"""
Logging configuration for the multirun engine.

Engine diagnostics go to stderr; stdout is reserved for command output.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any

LOGGER_NAME = "multirun"

# ANSI color codes for console output
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",  # Reset
}


class ColoredFormatter(logging.Formatter):
    """Formatter adding colors to the level name."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with color."""
        orig_levelname = record.levelname
        if record.levelname in COLORS:
            record.levelname = (
                f"{COLORS[record.levelname]}{record.levelname}{COLORS['RESET']}"
            )
        result = super().format(record)
        record.levelname = orig_levelname
        return result


class MultirunLogger:
    """Logger for the multirun engine."""

    def __init__(self):
        """Initialize the logger."""
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

    @property
    def is_configured(self) -> bool:
        return getattr(self.logger, "_multirun_configured", False)

    def setup(self, debug: bool = False, log_dir: Optional[str] = None) -> None:
        """Set up logging handlers.

        Handlers are attached once per process; later calls are no-ops.

        Args:
            debug: Enable debug logging on the console
            log_dir: Directory for log files
        """
        if self.is_configured:
            return

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
        fmt = "multirun %(levelname)s %(message)s%(context)s"
        if sys.stderr.isatty():
            console_handler.setFormatter(ColoredFormatter(fmt))
        else:
            console_handler.setFormatter(logging.Formatter(fmt))
        self.logger.addHandler(console_handler)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            log_file = os.path.join(log_dir, f"multirun-{timestamp}.log")

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(message)s%(context)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            self.logger.addHandler(file_handler)
            self.logger.debug("Log file created at: %s", log_file, extra={"context": ""})

        self.logger._multirun_configured = True

    def reset(self) -> None:
        """Detach every handler so ``setup`` can run again."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
        self.logger._multirun_configured = False

    def get_context_logger(self, **context) -> "ContextLogger":
        """Get a logger with context.

        Args:
            **context: Context key-value pairs

        Returns:
            ContextLogger instance
        """
        return ContextLogger(self.logger, context)


class ContextLogger:
    """Logger that includes context with each log message."""

    def __init__(self, logger: logging.Logger, context: Dict[str, Any]):
        self.logger = logger
        self.context = context

    def _format_context(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Render the logger's context and per-call extras as one suffix.

        Args:
            extra: Additional context for this record only

        Returns:
            ``extra`` mapping for the standard logging call
        """
        context = self.context.copy()
        if extra:
            context.update(extra)
        pairs = ", ".join(f"{k}={v}" for k, v in context.items())
        return {"context": f" [{pairs}]" if pairs else ""}

    def debug(self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs):
        """Log a debug message with context."""
        self.logger.debug(msg, *args, extra=self._format_context(extra), **kwargs)

    def warning(
        self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs
    ):
        """Log a warning message with context."""
        self.logger.warning(msg, *args, extra=self._format_context(extra), **kwargs)

    def error(self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs):
        """Log an error message with context."""
        self.logger.error(msg, *args, extra=self._format_context(extra), **kwargs)
