from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest

from phd_quickstart.config import QuickstartConfig


def _fake_runner_command(exit_code: int = 0, record: Path | None = None) -> list[str]:
    """A runner command that records its argv as JSON and exits with ``exit_code``."""
    code = textwrap.dedent(f"""\
        import json, sys
        record = {str(record) if record else None!r}
        if record:
            with open(record, "w") as f:
                json.dump(sys.argv[1:], f)
        sys.exit({exit_code})
    """)
    return [sys.executable, "-c", code]


@pytest.fixture
def fake_runner():
    return _fake_runner_command


@pytest.fixture
def scratch(tmp_path):
    return tmp_path / "propolis-phd"


@pytest.fixture
def make_config(scratch):
    def _make(exit_code: int = 0, record: Path | None = None, **kwargs) -> QuickstartConfig:
        kwargs.setdefault("scratch_dir", scratch)
        kwargs.setdefault("privilege_wrapper", [])
        kwargs.setdefault("runner_command", _fake_runner_command(exit_code, record))
        return QuickstartConfig(**kwargs)
    return _make
