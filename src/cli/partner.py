"""`partner` commands: deploy partner environments and manage their portals."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from adapters.report_exporter import export_partner_details_html, export_partner_details_pdf
from cli.common import (
    console,
    load_settings,
    open_api,
    parse_region,
    resolve_project,
    run_async,
    workflow_progress,
)
from cli.ui_components import build_portals_table
from core.domain.regions import Region
from core.services.hooks import WorkflowHooks
from core.services.partner import (
    DeploymentRequest,
    PartnerDetails,
    build_details_text,
    deploy_partner_environment,
    deployment_log_filename,
    filter_portals,
    flatten_portals,
    format_deployment_log,
    list_sharing_portals,
    update_portal_runtime,
)

app = typer.Typer(no_args_is_help=True, help="Partner environments and sharing portals.")


class DetailsFormat(str, Enum):
    text = "text"
    html = "html"
    pdf = "pdf"


_LOG_STYLES = {"success": "green", "error": "red", "warning": "yellow", "info": "white"}


@app.command()
def deploy(
    partner_name: str = typer.Argument(..., help="Partner name (used in environment and portal names)."),
    region: Region = typer.Option(Region.default().value, "--region", "-r", parser=parse_region),
    project_id: Optional[str] = typer.Option(None, "--project", "-p", help="Overrides SKYTAP_PARTNER_PROJECT_ID."),
    template_id: Optional[str] = typer.Option(None, "--template", help="Overrides the region's template."),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Also write the deployment log here."),
    details: DetailsFormat = typer.Option(DetailsFormat.text, "--details", help="Partner details format."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Details output file (html/pdf)."),
) -> None:
    """Deploy a partner environment from the regional template."""

    settings = load_settings()
    request = DeploymentRequest.from_settings(settings, partner_name, region)
    request.project_id = resolve_project(project_id, request.project_id, what="Partner project ID")
    if template_id:
        request.template_id = template_id

    async def _run(hooks: WorkflowHooks):
        async with open_api(settings) as api:
            return await deploy_partner_environment(api, request, hooks)

    with workflow_progress(f"Deploying {partner_name}", show_logs=False) as hooks:
        run = run_async(_run(hooks))

    for entry in run.logs:
        style = _LOG_STYLES[entry.type]
        console.print(f"[dim][{entry.timestamp}][/dim] [{style}]{entry.message}[/{style}]", highlight=False)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / deployment_log_filename()
        log_path.write_text(format_deployment_log(run.logs) + "\n", encoding="utf-8")
        console.print(f"[dim]Deployment log written to {log_path}[/dim]")

    if not run.success or run.result is None:
        console.print(f"[red]Deployment failed:[/red] {run.error}")
        raise typer.Exit(code=1)

    partner_details = PartnerDetails.from_settings(settings, partner_name, run.result)
    if details is DetailsFormat.text:
        console.print()
        console.print(build_details_text(partner_details), markup=False, highlight=False)
        return

    slug = partner_name.strip().replace(" ", "_") or "partner"
    target = output or Path("reports") / f"partner_{slug}.{details.value}"
    if details is DetailsFormat.html:
        path = export_partner_details_html(details=partner_details, output_path=target)
        console.print(f"[green]Details written:[/green] {path}")
        return

    try:
        path = export_partner_details_pdf(details=partner_details, output_path=target)
        console.print(f"[green]Details written:[/green] {path}")
    except Exception as exc:  # noqa: BLE001 - WeasyPrint raises OSError/ImportError variants
        fallback = target.with_suffix(".html")
        path = export_partner_details_html(details=partner_details, output_path=fallback)
        console.print(f"[yellow]PDF export failed ({exc}); HTML written instead:[/yellow] {path}")


@app.command()
def portals(
    project_id: Optional[str] = typer.Option(None, "--project", "-p"),
    search: str = typer.Option("", "--search", "-s", help="Case-insensitive portal name filter."),
) -> None:
    """List the sharing portals of every environment in a project."""

    settings = load_settings()
    project = resolve_project(project_id, settings.partner_project_id)

    async def _run():
        async with open_api(settings) as api:
            return await list_sharing_portals(api, project)

    data = run_async(_run())
    entries = filter_portals(flatten_portals(data), search)
    console.print(build_portals_table(entries))
    console.print(
        f"[dim]{len(entries)} portal(s) shown across {data.total_configurations} configuration(s)[/dim]"
    )
    for failed in (c for c in data.configurations if c.error):
        console.print(f"[red]{failed.configuration_name} ({failed.configuration_id}):[/red] {failed.error}")


@app.command("set-runtime")
def set_runtime(
    configuration_id: str = typer.Argument(..., help="Configuration that owns the portal."),
    portal_id: str = typer.Argument(..., help="Publish set ID."),
    hours: float = typer.Argument(..., help="New runtime in hours."),
) -> None:
    """Update the runtime limit of a sharing portal."""

    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            return await update_portal_runtime(api, configuration_id, portal_id, hours)

    run_async(_run())
    console.print(f"[green]Portal {portal_id} runtime updated to {hours:g} hours[/green]")
