"""Runfiles discovery and location lookup.

Bazel ships an executable's data files either as a ``<binary>.runfiles``
directory tree or as a manifest mapping runfiles locations to absolute paths.
Lookups go through Bazel's own runfiles library; this module adds the
command path convention and discovery from ``argv[0]`` when Bazel exported
no runfiles variables.
"""

import os
import posixpath
import sys
from pathlib import Path
from typing import Mapping, Optional

from runfiles import runfiles as bazel_runfiles

from .exceptions import ResolutionError

DIRECTORY_ENV_VAR = "RUNFILES_DIR"

EXTERNAL_PREFIX = "../"

# Runfiles paths in instruction documents are written from the main repository.
MAIN_REPOSITORY = ""

Runfiles = bazel_runfiles.Runfiles


def create_runfiles(
    environ: Optional[Mapping[str, str]] = None, argv0: Optional[str] = None
) -> Runfiles:
    """Locate the runfiles of the running binary.

    Raises:
        ResolutionError: If no runfiles tree or manifest can be found
    """
    environ = os.environ if environ is None else environ
    binary = Path(argv0 or sys.argv[0]).absolute()
    try:
        found = bazel_runfiles.Create(dict(environ))
        if found is not None:
            return found

        for candidate in (
            binary.with_name(binary.name + ".runfiles_manifest"),
            binary.with_name(binary.name + ".runfiles") / "MANIFEST",
        ):
            if candidate.is_file():
                return bazel_runfiles.CreateManifestBased(str(candidate))
        tree = binary.with_name(binary.name + ".runfiles")
        if tree.is_dir():
            return bazel_runfiles.CreateDirectoryBased(str(tree))
    except OSError as e:
        raise ResolutionError(str(binary), f"cannot read runfiles: {e}") from e

    raise ResolutionError(str(binary), f"no runfiles found (set {DIRECTORY_ENV_VAR})")


def rlocation(runfiles: Runfiles, location: str) -> str:
    """Return the absolute path of a runfiles location.

    Raises:
        ResolutionError: If the location is invalid, unknown to the runfiles
            or missing on disk
    """
    try:
        path = runfiles.Rlocation(location, source_repo=MAIN_REPOSITORY)
    except (TypeError, ValueError) as e:
        raise ResolutionError(location, str(e)) from e
    if not path:
        raise ResolutionError(location, "not listed in runfiles")
    if not os.path.exists(path):
        raise ResolutionError(location, f"no such file: {path}")
    return path


def runfiles_location(workspace_name: str, path: str) -> str:
    """Map a command path to its runfiles location.

    A leading ``../`` marks a file from another repository; everything else
    lives under the main workspace.
    """
    if path.startswith(EXTERNAL_PREFIX):
        return posixpath.normpath(path[len(EXTERNAL_PREFIX):])
    if os.path.isabs(path):
        return path
    return posixpath.normpath(
        "/".join(part for part in (workspace_name, path) if part)
    )
