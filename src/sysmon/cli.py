"""Command line entry point for sysmon."""

from pathlib import Path

import click

from sysmon import __version__
from sysmon.config import Config, ConfigError


@click.command()
@click.option(
    "--interval",
    "-d",
    type=float,
    default=None,
    help="Seconds between refreshes (default 2.0).",
)
@click.option(
    "--procfs",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Root of the process pseudo-file tree.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default ~/.config/sysmon/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log file verbosity.",
)
@click.option(
    "--write-config",
    is_flag=True,
    help="Save the effective settings to the config file and exit.",
)
@click.version_option(__version__)
def main(
    interval: float | None,
    procfs: Path | None,
    config_path: Path | None,
    log_level: str | None,
    write_config: bool,
) -> None:
    """Live process monitor.

    Keys: q quit, c/m/p sort by CPU/memory/pid, k kill a process by pid.
    """
    from sysmon.app import SysmonApp
    from sysmon.logging import configure

    try:
        config = Config.load(config_path)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="--config") from e

    if interval is not None:
        if interval <= 0:
            raise click.BadParameter("must be positive", param_hint="--interval")
        config.sampling.interval = interval
    if procfs is not None:
        config.sampling.procfs_root = str(procfs)
    if log_level is not None:
        config.logging.level = log_level.upper()

    try:
        config.validate()
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    if write_config:
        path = config_path or config.config_path
        config.save(path)
        click.echo(f"Wrote config to {path}")
        return

    configure(config)

    app = SysmonApp(config)
    app.run()
    raise SystemExit(app.return_code or 0)
