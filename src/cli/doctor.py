"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from adapters.report_exporter import export_billing_pdf
from adapters.skytap_api import build_skytap_client
from core.config import AppSettings, get_user_env_file, write_user_env_vars
from core.domain.models import BillingReport

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_api(settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_skytap_client(settings) as api:
            users = await api.get_users(count=1)
        return True, f"Authenticated ({len(users)} user record(s) visible)"
    except Exception as exc:
        return False, str(exc)


def _check_pdf() -> tuple[bool, str]:
    """Attempt to generate a minimal PDF to detect WeasyPrint issues."""

    report = BillingReport(
        period="doctor",
        customer_id="doctor",
        x86_ram_hours=0,
        x86_ram_rate=0,
        x86_ram_cost=0,
        storage_hours=0,
        storage_rate=0,
        storage_cost=0,
        total_cost=0,
    )
    try:
        with tempfile.TemporaryDirectory() as tmp:
            export_billing_pdf(report=report, output_path=Path(tmp) / "_doctor_test.pdf")
        return True, "OK"
    except Exception as exc:
        return False, str(exc)


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="Skytap Console Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    if settings.has_credentials:
        table.add_row("Credentials", "OK", f"User {settings.user}")
    else:
        table.add_row("Credentials", "MISSING", "Run `skytap-console doctor setup`")
    table.add_row("Base URL", "OK", settings.base_url)
    table.add_row("Config file", "OK" if get_user_env_file().exists() else "NONE", str(get_user_env_file()))
    table.add_row("Customer ID", "OK" if settings.customer_id else "OPTIONAL", settings.customer_id or "-")
    missing_templates = [
        name
        for name, value in (
            ("US-Central", settings.partner_template_us_central),
            ("EMEA", settings.partner_template_emea),
            ("APAC", settings.partner_template_apac),
        )
        if not value
    ]
    table.add_row(
        "Partner templates",
        "OK" if not missing_templates else "OPTIONAL",
        "All regions set" if not missing_templates else f"Missing: {', '.join(missing_templates)}",
    )

    # Connectivity
    if settings.has_credentials:
        ok_api, detail_api = asyncio.run(_check_api(settings))
        table.add_row("Skytap API", "OK" if ok_api else "FAIL", detail_api)
    else:
        table.add_row("Skytap API", "SKIPPED", "No credentials")

    # PDF
    ok_pdf, detail_pdf = _check_pdf()
    table.add_row("WeasyPrint PDF", "OK" if ok_pdf else "FAIL", detail_pdf)

    _console.print(table)

    if not ok_pdf:
        _console.print(
            "\n[yellow]Note:[/yellow] When PDF export fails, `--export-pdf` automatically falls back to HTML."
        )


@app.command()
def setup(
    customer_id: Optional[str] = typer.Option(None, "--customer-id", help="Default billing customer id."),
) -> None:
    """Interactive credential setup (stores config in the user config .env).

    No manual .env editing required.
    """

    user = typer.prompt("Skytap login name").strip()
    token = typer.prompt("Skytap API token", hide_input=True, confirmation_prompt=False).strip()
    if not user or not token:
        raise typer.BadParameter("login name and token are required")

    values = {"SKYTAP_USER": user, "SKYTAP_TOKEN": token}
    if customer_id:
        values["SKYTAP_CUSTOMER_ID"] = customer_id.strip()

    env_path = write_user_env_vars(values)
    _console.print(f"[green]Saved Skytap config to:[/green] {env_path}")
