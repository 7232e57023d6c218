"""Bootstrap launcher for the PHD propolis test runner."""

from phd_quickstart.config import ConfigError, QuickstartConfig, load_config
from phd_quickstart.launcher import (
    InvocationError,
    QuickstartError,
    ScratchConflictError,
    ScratchCreationError,
    build_argument_vector,
    build_command,
    ensure_scratch_directory,
    invoke_runner,
    resolve_scratch_path,
    run_quickstart,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "QuickstartConfig",
    "InvocationError",
    "QuickstartError",
    "ScratchConflictError",
    "ScratchCreationError",
    "build_argument_vector",
    "build_command",
    "ensure_scratch_directory",
    "invoke_runner",
    "load_config",
    "resolve_scratch_path",
    "run_quickstart",
]
