"""CLI entry point (Typer).

Why Typer:
- Sub-commands per console area with type-checked options.
- Rich integration for tables, progress bars and logging.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from cli import doctor, partner, training, utilities
from cli.common import console
from cli.ui_components import print_banner

app = typer.Typer(
    no_args_is_help=True,
    help="Skytap Cloud management console: training, partners, billing and utilities.",
)

app.add_typer(training.app, name="training")
app.add_typer(partner.app, name="partner")
app.add_typer(utilities.projects_app, name="projects")
app.add_typer(utilities.ips_app, name="ips")
app.add_typer(utilities.billing_app, name="billing")
app.add_typer(utilities.cost_app, name="cost")
app.add_typer(utilities.usage_app, name="usage")
app.add_typer(utilities.users_app, name="users")
app.add_typer(utilities.running_app, name="running")
app.add_typer(doctor.app, name="doctor")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    banner: bool = typer.Option(False, "--banner", help="Show the welcome banner."),
) -> None:
    configure_logging(verbose)
    if banner:
        print_banner(console)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
