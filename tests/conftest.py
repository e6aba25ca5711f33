"""Shared fixtures for multirun tests."""

# Standard library imports
import json
import os
import stat
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

# Third-party imports
import pytest

# Local/package imports
from multirun.instructions import ExecutionPlan, load_plan
from multirun.logging import MultirunLogger
from multirun.runfiles import create_runfiles

SRC_DIR = Path(__file__).resolve().parent.parent / "src"


class Workspace:
    """A throwaway runfiles tree holding executable test scripts."""

    name = "main"

    def __init__(self, root: Path):
        self.root = root
        self.runfiles_dir = root / "runfiles"
        self.package_dir = self.runfiles_dir / self.name
        self.package_dir.mkdir(parents=True)
        self.markers = root / "markers"
        self.markers.mkdir()

    def script(self, name: str, body: str, executable: bool = True) -> str:
        """Write a shell script into the workspace and return its short path."""
        path = self.package_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!/bin/sh\n{body}\n")
        mode = 0o755 if executable else 0o644
        path.chmod(mode)
        return name

    def external_script(self, repo: str, name: str, body: str) -> str:
        path = self.runfiles_dir / repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return f"../{repo}/{name}"

    def marker_script(self, name: str, exit_code: int = 0) -> str:
        """A script that leaves a marker file behind and exits with a status."""
        return self.script(
            name,
            f'echo "{name} ran"\ntouch "$MARKER_DIR/{name}"\nexit {exit_code}',
        )

    def command(
        self,
        path: str,
        tag: Optional[str] = None,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        merged_env = {"MARKER_DIR": str(self.markers)}
        merged_env.update(env or {})
        return {
            "path": path,
            "tag": tag or path,
            "args": args or [],
            "env": merged_env,
        }

    def ran(self, name: str) -> bool:
        return (self.markers / name).exists()

    def write_plan(self, commands: List[Dict[str, Any]], **options: Any) -> Path:
        document = {"commands": commands, "workspace_name": self.name}
        document.update(options)
        path = self.root / "instructions.json"
        path.write_text(json.dumps(document))
        return path

    def runfiles(self):
        return create_runfiles(environ={"RUNFILES_DIR": str(self.runfiles_dir)})

    def plan(
        self,
        commands: List[Dict[str, Any]],
        extra_args: Optional[List[str]] = None,
        **options: Any,
    ) -> ExecutionPlan:
        path = self.write_plan(commands, **options)
        return load_plan(path, extra_args or [], self.runfiles())

    def engine_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["RUNFILES_DIR"] = str(self.runfiles_dir)
        env.pop("RUNFILES_MANIFEST_FILE", None)
        env["PYTHONPATH"] = os.pathsep.join(
            filter(None, [str(SRC_DIR), env.get("PYTHONPATH")])
        )
        return env

    def run(
        self, plan_path: Path, *extra_args: str, input: Optional[bytes] = None
    ) -> subprocess.CompletedProcess:
        """Run the engine as a separate process, like the build rule does."""
        return subprocess.run(
            [sys.executable, "-m", "multirun", str(plan_path), *extra_args],
            input=input if input is not None else b"",
            capture_output=True,
            env=self.engine_env(),
            timeout=60,
        )

    def start(self, plan_path: Path, **popen_kwargs: Any) -> subprocess.Popen:
        """Start the engine without waiting for it."""
        return subprocess.Popen(
            [sys.executable, "-m", "multirun", str(plan_path)],
            env=self.engine_env(),
            **popen_kwargs,
        )

    def wait_for(self, name: str, timeout: float = 30) -> None:
        """Block until a marker script has left its marker behind."""
        deadline = time.monotonic() + timeout
        while not self.ran(name):
            if time.monotonic() > deadline:
                raise AssertionError(f"{name} never started")
            time.sleep(0.05)


@pytest.fixture
def workspace(tmp_path):
    """Create a runfiles tree for a test."""
    yield Workspace(tmp_path)


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers bound to streams of earlier tests."""
    logger = MultirunLogger()
    logger.reset()
    yield
    logger.reset()
