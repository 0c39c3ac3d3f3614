"""CLI for port reservations: reserve, reserve-all, probe."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import click
import yaml

from .config import get_config, get_default_address, get_default_port, get_log_level
from .errors import PortManagementError
from .probe import port_available
from .reservation import Reservation, get_manager
from .reservation_file import get_reservation_targets, load_reservation_file, reserve_all

logger = logging.getLogger(__name__)


def _config_callback(ctx: click.Context, _param: click.Parameter, value: str | None) -> str | None:
    if value:
        path = Path(value)
        if not path.exists():
            raise click.BadParameter(f"Properties file not found: {path}")
        ctx.ensure_object(dict)
        ctx.obj["properties_path"] = path
    return value


def _hold_until_interrupted() -> None:
    click.echo("Holding reservation(s); press Ctrl-C to release.", err=True)
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        logger.debug("interrupted, releasing")


def _release_all(reservations: dict[str, Reservation]) -> None:
    for reservation in reservations.values():
        if reservation.active:
            reservation.release()


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    envvar="PORT_MANAGEMENT_PROPERTIES",
    help="Path to a properties file (env-style key=value). Env vars override.",
    callback=_config_callback,
)
@click.option(
    "--log-level",
    default=None,
    help="Log level (DEBUG, INFO, WARNING, ...). Default: PORT_MANAGEMENT_LOG_LEVEL or WARNING.",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """Reserve ports with a placeholder socket so nothing else can take them first."""
    ctx.ensure_object(dict)
    config = get_config(ctx.obj.get("properties_path"))
    if log_level:
        config["PORT_MANAGEMENT_LOG_LEVEL"] = log_level
    try:
        level = get_log_level(config)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.obj["config"] = config


@main.command(short_help="Reserve one address/port and print it.")
@click.option("--address", default=None, help="Address to bind (default: PORT_MANAGEMENT_ADDRESS or ::).")
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to bind; 0 lets the OS pick (default: PORT_MANAGEMENT_PORT or 0).",
)
@click.option(
    "--hold/--no-hold",
    default=True,
    show_default=True,
    help="Keep the reservation until Ctrl-C instead of releasing right after printing.",
)
@click.pass_context
def reserve(ctx: click.Context, address: str | None, port: int | None, hold: bool) -> None:
    """Reserve ADDRESS:PORT and print "address port".

    With --hold the placeholder stays bound until interrupted.
    """
    config = ctx.obj["config"]
    try:
        if address is None:
            address = get_default_address(config)
        if port is None:
            port = get_default_port(config)
        reservation = get_manager().reserve(address, port)
    except (PortManagementError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    with reservation:
        click.echo(f"{reservation.address} {reservation.port}")
        if hold:
            _hold_until_interrupted()


@main.command("reserve-all", short_help="Reserve every entry of a reservations YAML file.")
@click.argument("file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--hold/--no-hold", default=True, show_default=True, help="Keep reservations until Ctrl-C.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "yaml"]),
    default="text",
    show_default=True,
    help="text: one 'name address port' line per entry; yaml: mapping of name to address/port.",
)
def reserve_all_cmd(file: Path, hold: bool, output_format: str) -> None:
    """Reserve all entries of FILE (defaults + reservations mapping) and print what was bound."""
    try:
        targets = get_reservation_targets(load_reservation_file(file))
        reservations = reserve_all(targets)
    except (PortManagementError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    try:
        if output_format == "yaml":
            bound = {name: {"address": r.address, "port": r.port} for name, r in reservations.items()}
            click.echo(yaml.safe_dump(bound, sort_keys=False), nl=False)
        else:
            for name, r in reservations.items():
                click.echo(f"{name} {r.address} {r.port}")
        if hold:
            _hold_until_interrupted()
    finally:
        _release_all(reservations)


@main.command(short_help="Check whether ADDRESS PORT can be bound right now.")
@click.argument("address")
@click.argument("port", type=click.IntRange(1, 65535))
@click.pass_context
def probe(ctx: click.Context, address: str, port: int) -> None:
    """Print "available" (exit 0) or "in-use" (exit 1)."""
    try:
        available = port_available(address, port)
    except OSError as e:
        raise click.ClickException(f"Cannot probe [{address}]:{port}: {e}") from e
    click.echo("available" if available else "in-use")
    if not available:
        ctx.exit(1)
