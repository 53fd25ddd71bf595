"""
Command line interface.

Usage:
    psk-exchange server LISTEN_ADDR PORT SCRIPT [--algorithms NAME ...] [--request-max-size N]
    psk-exchange client --server HOST --port PORT [--algorithms NAME ...]
"""

from pathlib import Path
from typing import Optional, Tuple

import click

from .config import ClientSettings, ServerSettings, parse_algorithms
from .types import ALGORITHM_NAMES
from .error import ConfigError, PskExchangeError
from .logger import configure_logging, get_logger

logger = get_logger(__name__)

ALGORITHM_CHOICE = click.Choice(sorted(ALGORITHM_NAMES))


@click.group()
@click.version_option(package_name="psk-exchange", prog_name="psk-exchange")
def cli():
    """Establish quantum-safe WireGuard pre-shared keys."""


@cli.command("server")
@click.argument("listen_addr", required=False)
@click.argument("port", type=int, required=False)
@click.argument("script", type=click.Path(dir_okay=False), required=False)
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False),
              help="TOML file with a [server] table")
@click.option("--request-max-size", type=click.IntRange(min=0), metavar="SIZE",
              help="Max size in bytes of incoming request")
@click.option("--request-max-algorithms", type=click.IntRange(min=0), metavar="COUNT",
              help="Max number of key exchanges per request")
@click.option("--request-max-alg-occurrences", type=click.IntRange(min=0), metavar="COUNT",
              help="Max number of times a single algorithm may occur per request")
@click.option("--algorithms", multiple=True, type=ALGORITHM_CHOICE,
              help="Algorithm to enable, repeat for more; all are allowed if omitted")
@click.option("--interface", help="WireGuard interface to look peers up on")
@click.option("--log-level", help="DEBUG, INFO, WARNING or ERROR")
def server_cmd(
    listen_addr: Optional[str],
    port: Optional[int],
    script: Optional[str],
    config_file: Optional[str],
    request_max_size: Optional[int],
    request_max_algorithms: Optional[int],
    request_max_alg_occurrences: Optional[int],
    algorithms: Tuple[str, ...],
    interface: Optional[str],
    log_level: Optional[str],
):
    """Run the key exchange server, calling SCRIPT with each new PSK."""
    from .provider import KemProvider
    from .dispatcher import Dispatcher
    from .server import create_app, run_server
    from .sink import ScriptSink
    from .wg import WireguardPeerExtractor

    try:
        settings = ServerSettings.from_file(config_file) if config_file else ServerSettings()
        settings.apply_env()
    except ConfigError as e:
        raise click.ClickException(str(e))

    overrides = {
        "listen_addr": listen_addr,
        "port": port,
        "script": Path(script) if script else None,
        "request_max_size": request_max_size,
        "request_max_algorithms": request_max_algorithms,
        "request_max_alg_occurrences": request_max_alg_occurrences,
        "interface": interface,
        "log_level": log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(settings, key, value)
    if algorithms:
        settings.algorithms = parse_algorithms(list(algorithms))
    if settings.script is None:
        raise click.UsageError("Missing SCRIPT to run on each successful key exchange")

    configure_logging(settings.log_level)

    provider = KemProvider()
    for algorithm in settings.algorithms or []:
        if not provider.supports(algorithm):
            logger.warning("Algorithm %s is enabled but has no backend, requests using it will fail", algorithm)

    dispatcher = Dispatcher(provider, ScriptSink(settings.script), settings.policy())
    app = create_app(dispatcher, WireguardPeerExtractor(settings.interface))
    run_server(app, settings.listen_addr, settings.port)


@cli.command("client")
@click.option("--server", "-s", help="Specifies the WireGuard server to connect to")
@click.option("--port", "-p", type=click.IntRange(1, 65535), help="Specifies the port to connect to")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False),
              help="TOML file with a [client] table")
@click.option("--algorithms", multiple=True, type=ALGORITHM_CHOICE,
              help="Algorithm to use, repeat for more")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="RPC timeout in seconds")
@click.option("--log-level", default="WARNING", show_default=True)
def client_cmd(
    server: Optional[str],
    port: Optional[int],
    config_file: Optional[str],
    algorithms: Tuple[str, ...],
    timeout: Optional[float],
    log_level: str,
):
    """Negotiate a PSK with a server and print it."""
    from .client import establish_psk, format_server_uri

    configure_logging(log_level)
    try:
        settings = ClientSettings.from_file(config_file) if config_file else ClientSettings()
        settings.apply_env()
    except ConfigError as e:
        raise click.ClickException(str(e))

    if server is not None:
        settings.server = server
    if port is not None:
        settings.port = port
    if algorithms:
        settings.algorithms = parse_algorithms(list(algorithms))
    if timeout is not None:
        settings.timeout = timeout
    if settings.server is None:
        raise click.UsageError("Missing option '--server'")

    try:
        psk = establish_psk(
            format_server_uri(settings.server, settings.port),
            settings.algorithms,
            timeout=settings.timeout,
        )
    except PskExchangeError as e:
        raise click.ClickException(f"Key exchange failed: {e}")
    click.echo(psk)


def main():
    cli()


if __name__ == "__main__":
    main()
