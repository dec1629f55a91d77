"""
Olaf CLI Commands

``olaf proxy`` runs the secret-holding proxy; ``olaf login`` runs one
handshake against a proxy and prints the received secret.
"""

import sys
from typing import Optional

import click

from olaf import __version__
from olaf._logging import _turn_on_debug, _turn_on_json, verbose_logger
from olaf.client.orchestrator import DEFAULT_TIMEOUT, ClientOrchestrator
from olaf.codec import JsonCodec, StringCodec
from olaf.exceptions import (
    BindFailure,
    ConfigError,
    CsrfMismatch,
    HandshakeTimeout,
    NetworkFailure,
    OlafError,
    ProxyFailure,
)
from olaf.proxy.config import ProxyConfig
from olaf.proxy.proxy_server import run
from olaf.proxy.session_handler import GithubLoginHandler, TokenPassthroughHandler

HANDLERS = {
    "token": TokenPassthroughHandler,
    "github-login": GithubLoginHandler,
}


@click.group()
@click.version_option(__version__, prog_name="olaf")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
def cli(verbose: bool, json_logs: bool):
    """OAuth 2.0 authentication for command-line applications."""
    if verbose:
        _turn_on_debug()
    if json_logs:
        _turn_on_json()
    verbose_logger.debug(f"olaf {__version__}")


@cli.command()
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Proxy configuration file (.json or .toml); OLAF_* variables override it"
)
@click.option("-p", "--port", type=int, help="Override the configured port")
@click.option(
    "--handler",
    type=click.Choice(sorted(HANDLERS)),
    default="token",
    show_default=True,
    help="What the proxy delivers to the client"
)
def proxy(config_path: Optional[str], port: Optional[int], handler: str):
    """Run the OAuth proxy server."""
    try:
        config = ProxyConfig.from_file(config_path) if config_path else ProxyConfig.from_env()
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if port:
        config = config.model_copy(update={"port": port})

    click.echo(f"🚀 Starting olaf proxy on {config.host}:{config.port}...")
    click.echo(f"   Redirect route: {config.proxy_base_url}/oauth-cli/finish")
    click.echo("Press Ctrl+C to stop\n")
    run(config, HANDLERS[handler]())


@cli.command()
@click.argument("proxy_url")
@click.option("--no-browser", is_flag=True, help="Don't automatically open browser")
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Seconds to wait for the browser to come back"
)
@click.option("--json", "as_json", is_flag=True, help="Decode the result as JSON")
def login(proxy_url: str, no_browser: bool, timeout: float, as_json: bool):
    """
    Authenticate against PROXY_URL.

    This command will:
    1. Start a local callback listener
    2. Ask the proxy for an authorization URL
    3. Open it in your browser (unless --no-browser)
    4. Wait for the proxy to send the result back

    The result is printed to stdout; progress goes to stderr.
    """
    codec = JsonCodec() if as_json else StringCodec()
    orchestrator = ClientOrchestrator(
        proxy_url,
        codec=codec,
        timeout=timeout,
        open_browser=not no_browser,
    )

    click.echo("🔐 Starting OAuth authentication...", err=True)

    try:
        result = orchestrator.run()
    except BindFailure as e:
        click.echo(f"❌ Could not start local listener: {e}", err=True)
        sys.exit(1)
    except NetworkFailure as e:
        click.echo(f"❌ Could not reach proxy: {e}", err=True)
        sys.exit(1)
    except CsrfMismatch:
        click.echo("❌ Authentication failed: callback did not match this login attempt", err=True)
        sys.exit(1)
    except ProxyFailure as e:
        click.echo(f"❌ Authentication failed: {e.marker}", err=True)
        sys.exit(1)
    except HandshakeTimeout:
        click.echo(f"❌ Timed out after {timeout:.0f} seconds waiting for the browser", err=True)
        sys.exit(1)
    except OlafError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    click.echo("✅ Authentication successful!", err=True)
    if as_json:
        click.echo(JsonCodec().encode(result))
    else:
        click.echo(result)


def main():
    cli()


if __name__ == "__main__":
    main()
