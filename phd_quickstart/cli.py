"""CLI entrypoint for the PHD quickstart launcher.

Usage:
    phd-quickstart <propolis-server-cmd>
    phd-quickstart --scratch-dir /var/tmp/phd --privilege-wrapper "" ./target/debug/propolis-server
    phd-quickstart --config quickstart.yaml --dry-run ./propolis-server
    python -m phd_quickstart.cli --help
"""

from __future__ import annotations

import logging
import sys

import click

from phd_quickstart import __version__
from phd_quickstart.config import ConfigError, load_config
from phd_quickstart.launcher import ScratchCreationError, run_quickstart

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def _non_empty(ctx: click.Context, param: click.Parameter, value: str) -> str:
    if not value.strip():
        raise click.BadParameter("must not be empty")
    return value


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="phd-quickstart")
@click.argument("server_cmd", callback=_non_empty)
@click.option("--scratch-dir", type=click.Path(), default=None,
              help="Scratch directory used for both tmp and artifact files [default: /tmp/propolis-phd]")
@click.option("--artifact-toml", default=None,
              help="Artifact manifest path passed to the runner [default: ./artifacts.toml]")
@click.option("--privilege-wrapper", default=None,
              help='Command used to elevate privileges; "" runs the runner directly [default: pfexec]')
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML file with launcher settings")
@click.option("--dry-run", is_flag=True, help="Prepare the scratch directory and print the command only")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v, -vv)")
def main(server_cmd: str, scratch_dir: str | None, artifact_toml: str | None,
         privilege_wrapper: str | None, config_path: str | None, dry_run: bool,
         verbose: int) -> None:
    """Prepare the PHD scratch directory and run phd-runner against SERVER_CMD."""
    _configure_logging(verbose)

    try:
        cfg = load_config(config_path, overrides={
            "scratch_dir": scratch_dir,
            "artifact_toml_path": artifact_toml,
            "privilege_wrapper": privilege_wrapper,
        })
    except (ConfigError, OSError) as e:
        raise click.UsageError(str(e)) from e

    try:
        code = run_quickstart(server_cmd, cfg, dry_run=dry_run)
    except ScratchCreationError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
