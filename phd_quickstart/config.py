"""Launcher configuration and override resolution."""

from __future__ import annotations

import dataclasses
import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger("phd_quickstart.config")

DEFAULT_SCRATCH_DIR = Path("/tmp/propolis-phd")
DEFAULT_ARTIFACT_TOML = "./artifacts.toml"
DEFAULT_PRIVILEGE_WRAPPER = ["pfexec"]
DEFAULT_RUNNER_COMMAND = ["cargo", "run", "--profile=phd", "-p", "phd-runner", "--"]

CONFIG_ENV = "PHD_QUICKSTART_CONFIG"

# Environment variable -> config field
ENV_OVERRIDES = {
    "PHD_QUICKSTART_DIR": "scratch_dir",
    "PHD_ARTIFACT_TOML": "artifact_toml_path",
    "PHD_PRIVILEGE_WRAPPER": "privilege_wrapper",
    "PHD_RUNNER_CMD": "runner_command",
}

_LIST_FIELDS = ("privilege_wrapper", "runner_command")


class ConfigError(ValueError):
    """Raised when a configuration source cannot be applied."""


@dataclass(frozen=True)
class QuickstartConfig:
    """Immutable launcher settings.

    ``artifact_toml_path`` is forwarded as-is and resolved by the runner
    relative to its working directory. An empty ``privilege_wrapper`` runs
    the runner without escalation.
    """

    scratch_dir: Path = DEFAULT_SCRATCH_DIR
    artifact_toml_path: str = DEFAULT_ARTIFACT_TOML
    privilege_wrapper: list[str] = field(default_factory=lambda: list(DEFAULT_PRIVILEGE_WRAPPER))
    runner_command: list[str] = field(default_factory=lambda: list(DEFAULT_RUNNER_COMMAND))

    def with_overrides(self, overrides: Mapping[str, Any]) -> QuickstartConfig:
        """Return a copy with ``overrides`` applied; ``None`` values are skipped."""
        known = {f.name for f in dataclasses.fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown config key: {key}")
            if value is None:
                continue
            changes[key] = _coerce(key, value)
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_file(cls, path: Path) -> QuickstartConfig:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at top level")
        logger.debug(f"Loaded config file {path}: {sorted(data)}")
        return cls().with_overrides(data)


def _coerce(key: str, value: Any) -> Any:
    if key == "scratch_dir":
        text = str(value)
        if not text:
            raise ConfigError("scratch_dir must not be empty")
        return Path(text)
    if key in _LIST_FIELDS:
        if isinstance(value, str):
            return shlex.split(value)
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        raise ConfigError(f"{key} must be a list or a command string")
    return str(value)


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    out = {}
    for var, key in ENV_OVERRIDES.items():
        if var in environ:
            out[key] = environ[var]
    return out


def load_config(
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> QuickstartConfig:
    """Resolve the effective config.

    Precedence, lowest first: defaults, YAML file (``config_path`` or
    ``$PHD_QUICKSTART_CONFIG``), environment variables, ``overrides``.
    """
    environ = os.environ if environ is None else environ
    if config_path is None:
        config_path = environ.get(CONFIG_ENV) or None

    if config_path is not None:
        cfg = QuickstartConfig.from_file(Path(config_path))
    else:
        cfg = QuickstartConfig()

    from_env = env_overrides(environ)
    if from_env:
        logger.debug(f"Environment overrides: {sorted(from_env)}")
        cfg = cfg.with_overrides(from_env)
    if overrides:
        cfg = cfg.with_overrides(overrides)
    return cfg
