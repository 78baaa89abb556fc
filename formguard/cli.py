"""CLI commands for formguard."""

import logging
import sys

import click

from formguard.config import get_settings
from formguard.forms.csrf import CsrfTokenEngine, window_base


@click.group()
@click.version_option(package_name="formguard")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level (defaults to the configured log_level)",
)
def cli(log_level):
    """formguard - CSRF-protected server-rendered forms."""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@cli.group()
def token():
    """Mint and check CSRF tokens by hand."""
    pass


def _timeout_option(f):
    return click.option(
        "--timeout",
        default=None,
        type=click.IntRange(min=1),
        help="Window width in seconds (defaults to forms.token_timeout)",
    )(f)


def _engine(session_id: str, timeout: int | None) -> CsrfTokenEngine:
    return CsrfTokenEngine(lambda: session_id, timeout or get_settings().forms.token_timeout)


@token.command()
@click.option("--session-id", required=True, help="Session id the token is bound to")
@_timeout_option
def generate(session_id, timeout):
    """Print a token valid for SESSION_ID in the current window."""
    click.echo(_engine(session_id, timeout).generate_string())


@token.command()
@click.argument("value")
@click.option("--session-id", required=True, help="Session id the token is bound to")
@_timeout_option
def verify(value, session_id, timeout):
    """Check VALUE against SESSION_ID in the current window. Exits 1 when invalid."""
    engine = _engine(session_id, timeout)
    if engine.verify(value):
        click.echo("valid")
        return

    base = window_base(engine.clock(), engine.timeout)
    click.echo(f"invalid (current window starts at {base})", err=True)
    sys.exit(1)
