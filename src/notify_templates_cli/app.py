"""Main Typer application for the notify-templates CLI."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from notify_templates_cli.commands.check import check
from notify_templates_cli.commands.render import render
from notify_templates_cli.commands.validate import validate

app = typer.Typer(
    name="notify-templates",
    help="Notify email templates -- validate, preview and render.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def configure_logging(verbose: bool) -> None:
    """Route library logging to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        from notify_templates_cli.ui.banner import show_banner

        show_banner()
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(  # noqa: B008
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(  # noqa: B008
        False,
        "--verbose",
        "-v",
        help="Log fetch and fallback decisions.",
    ),
) -> None:
    """Notify email templates -- validate, preview and render."""
    configure_logging(verbose)


app.command(name="validate")(validate)
app.command(name="render")(render)
app.command(name="check")(check)
