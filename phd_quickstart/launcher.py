"""Scratch directory bootstrap and runner invocation.

Prepares the scratch directory shared by successive runs, then hands the
rest of the work to ``phd-runner`` with stdio inherited and its exit code
passed straight through.
"""

from __future__ import annotations

import logging
import shlex
import signal
import subprocess
import sys
from pathlib import Path
from typing import Sequence

from phd_quickstart.config import QuickstartConfig

logger = logging.getLogger("phd_quickstart.launcher")

EXIT_CONFLICT = 1
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class QuickstartError(Exception):
    """Base class for launcher failures detected before the runner starts."""


class ScratchConflictError(QuickstartError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"{path} exists and is not a directory")


class ScratchCreationError(QuickstartError):
    """The scratch directory could not be created."""

    def __init__(self, path: Path, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to create {path}: {cause.strerror or cause}")


class InvocationError(QuickstartError):
    """The runner (or its privilege wrapper) could not be started."""

    def __init__(self, command: Sequence[str], cause: OSError, exit_code: int) -> None:
        self.command = list(command)
        self.cause = cause
        self.exit_code = exit_code
        super().__init__(f"Failed to start {command[0]}: {cause.strerror or cause}")


def resolve_scratch_path(config: QuickstartConfig | None = None) -> Path:
    return (config or QuickstartConfig()).scratch_dir


def ensure_scratch_directory(path: Path) -> bool:
    """Make sure ``path`` is a usable directory.

    Returns True if it was created here. Existing contents are left alone.
    Raises ScratchConflictError if something other than a directory sits at
    ``path``; other OSErrors from mkdir propagate.
    """
    if path.is_dir():
        logger.info(f"Reusing scratch directory {path}")
        return False
    # is_dir() follows symlinks; a dangling link still occupies the name
    if path.exists() or path.is_symlink():
        raise ScratchConflictError(path)

    # Single segment only, parent must already exist.
    try:
        path.mkdir()
    except FileExistsError:
        # Lost a race with another launcher, or with something that is not a directory.
        if not path.is_dir():
            raise ScratchConflictError(path) from None
        logger.info(f"Reusing scratch directory {path}")
        return False
    logger.info(f"Created scratch directory {path}")
    return True


def build_argument_vector(
    server_command_path: str,
    scratch_path: Path,
    artifact_toml_path: str = "./artifacts.toml",
) -> list[str]:
    scratch = str(scratch_path)
    return [
        "run",
        "--artifact-toml-path", artifact_toml_path,
        "--tmp-directory", scratch,
        "--artifact-directory", scratch,
        "--propolis-server-cmd", server_command_path,
    ]


def build_command(argv: Sequence[str], config: QuickstartConfig) -> list[str]:
    """Prefix the runner arguments with the privilege wrapper and runner command."""
    return [*config.privilege_wrapper, *config.runner_command, *argv]


def _exit_status(returncode: int) -> int:
    # Popen reports death-by-signal as -N; report it the way a shell would.
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def invoke_runner(command: Sequence[str]) -> int:
    """Run ``command`` to completion with inherited stdio and return its status.

    Raises InvocationError if the process cannot be started at all.
    """
    cmd = list(command)
    if not cmd:
        raise ValueError("empty command")

    logger.info(f"Launching: {shlex.join(cmd)}")
    try:
        returncode = subprocess.call(cmd)
    except FileNotFoundError as e:
        raise InvocationError(cmd, e, EXIT_NOT_FOUND) from e
    except PermissionError as e:
        raise InvocationError(cmd, e, EXIT_NOT_EXECUTABLE) from e
    except OSError as e:
        # ENOEXEC, ENOTDIR and friends: the binary is there but cannot be run.
        raise InvocationError(cmd, e, EXIT_NOT_EXECUTABLE) from e

    status = _exit_status(returncode)
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        logger.warning(f"Runner terminated by {name}")
    logger.info(f"Runner exited with status {status}")
    return status


def run_quickstart(
    server_command_path: str,
    config: QuickstartConfig | None = None,
    dry_run: bool = False,
) -> int:
    """Prepare the scratch directory and run the PHD runner once.

    Returns the process exit status: 1 for a scratch path conflict, 126/127
    if the runner could not be started, otherwise whatever the runner
    returned. Raises ScratchCreationError if the scratch directory cannot be
    made. With ``dry_run`` the command is printed instead of executed.
    """
    config = config or QuickstartConfig()
    scratch = resolve_scratch_path(config)

    try:
        ensure_scratch_directory(scratch)
    except ScratchConflictError as e:
        print(e, file=sys.stderr)
        return EXIT_CONFLICT
    except OSError as e:
        raise ScratchCreationError(scratch, e) from e

    argv = build_argument_vector(server_command_path, scratch, config.artifact_toml_path)
    command = build_command(argv, config)

    if dry_run:
        print(shlex.join(command))
        return 0

    try:
        return invoke_runner(command)
    except InvocationError as e:
        print(e, file=sys.stderr)
        return e.exit_code
