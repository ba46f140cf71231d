"""General utilities: projects, IPs, billing, cost, usage, users, running-now."""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.live import Live

from adapters.json_exporter import export_model_json
from adapters.report_exporter import export_billing_html, export_billing_pdf
from cli.common import console, load_settings, open_api, parse_region, run_async, workflow_progress
from cli.ui_components import (
    build_billing_panel,
    build_cost_panel,
    build_ips_table,
    build_projects_table,
    build_running_table,
    build_usage_table,
    build_users_table,
    print_batch_result,
)
from core.config import AppSettings
from core.domain.models import BillingRates
from core.domain.regions import Region
from core.errors import SkytapError
from core.services import billing as billing_service
from core.services import cost as cost_service
from core.services import ips as ips_service
from core.services import projects as projects_service
from core.services import running as running_service
from core.services import usage as usage_service
from core.services import users as users_service
from core.services.hooks import WorkflowHooks

_DATE_FORMATS = ["%Y-%m-%d"]


def _rates(settings: AppSettings, ram_rate: Optional[float], storage_rate: Optional[float]) -> BillingRates:
    return BillingRates(
        ram_rate=settings.ram_rate if ram_rate is None else ram_rate,
        storage_rate=settings.storage_rate if storage_rate is None else storage_rate,
    )


# --- projects ----------------------------------------------------------------

projects_app = typer.Typer(no_args_is_help=True, help="Find and delete empty projects.")


class ProjectSort(str, Enum):
    configurations = "configurations"
    templates = "templates"


_PROJECT_SORT_FIELDS = {
    ProjectSort.configurations: "configuration_count",
    ProjectSort.templates: "template_count",
}


@projects_app.command("empty")
def projects_empty(
    count: int = typer.Option(200, "--count", min=1, help="Projects to inspect."),
    sort: ProjectSort = typer.Option(ProjectSort.configurations, "--sort"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending."),
) -> None:
    """List projects without environments."""

    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            return await projects_service.find_empty_projects(api, count)

    empty = projects_service.sort_projects(run_async(_run()), _PROJECT_SORT_FIELDS[sort], descending=desc)
    console.print(build_projects_table(empty, title=f"Empty projects ({len(empty)})"))


@projects_app.command("delete")
def projects_delete(
    project_ids: List[str] = typer.Argument(..., help="Project IDs to delete."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete the selected projects."""

    if not yes:
        typer.confirm(f"Delete {len(project_ids)} project(s)? This cannot be undone", abort=True)
    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            return await projects_service.delete_projects(api, project_ids)

    print_batch_result(console, run_async(_run()), noun="project", verb="Deleted")


@projects_app.command("clean")
def projects_clean(
    count: int = typer.Option(200, "--count", min=1),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    """Delete every empty project."""

    settings = load_settings()

    async def _find():
        async with open_api(settings) as api:
            return await projects_service.find_empty_projects(api, count)

    empty = run_async(_find())
    if not empty:
        console.print("[green]No empty projects found.[/green]")
        return
    console.print(build_projects_table(empty, title=f"Empty projects ({len(empty)})"))
    if not yes:
        typer.confirm(f"Delete all {len(empty)} empty project(s)?", abort=True)

    async def _delete():
        async with open_api(settings) as api:
            return await projects_service.delete_projects(api, [p.id for p in empty])

    print_batch_result(console, run_async(_delete()), noun="project", verb="Deleted")


# --- ips ---------------------------------------------------------------------

ips_app = typer.Typer(no_args_is_help=True, help="Public IP addresses per region.")


@ips_app.command("list")
def ips_list(
    region: Region = typer.Option(Region.default().value, "--region", "-r", parser=parse_region),
    unattached: bool = typer.Option(False, "--unattached", help="Only IPs without a network interface."),
) -> None:
    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            return await ips_service.list_ips(api, region, unattached_only=unattached)

    ips = run_async(_run())
    console.print(build_ips_table(ips, title=f"Public IPs in {region.label()} ({len(ips)})"))


@ips_app.command("release")
def ips_release(
    ip_id: str = typer.Argument(..., help="IP ID to release."),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    if not yes:
        typer.confirm(f"Release IP {ip_id}?", abort=True)
    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            await ips_service.release_ip(api, ip_id)

    run_async(_run())
    console.print(f"[green]Released IP {ip_id}.[/green]")


@ips_app.command("release-all")
def ips_release_all(
    region: Region = typer.Option(Region.default().value, "--region", "-r", parser=parse_region),
    unattached: bool = typer.Option(True, "--unattached/--all", help="Release only unattached IPs."),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    """Release every listed IP in the region."""

    settings = load_settings()

    async def _list():
        async with open_api(settings) as api:
            return await ips_service.list_ips(api, region, unattached_only=unattached)

    ips = run_async(_list())
    if not ips:
        console.print("[green]No IPs to release.[/green]")
        return
    console.print(build_ips_table(ips))
    if not yes:
        typer.confirm(f"Release {len(ips)} IP(s)?", abort=True)

    async def _release():
        async with open_api(settings) as api:
            return await ips_service.release_ips(api, ips)

    print_batch_result(console, run_async(_release()), noun="IP", verb="Released")


# --- billing -----------------------------------------------------------------

billing_app = typer.Typer(no_args_is_help=True, help="Usage-based billing reports.")


@billing_app.command("report")
def billing_report(
    start: datetime = typer.Option(..., "--start", formats=_DATE_FORMATS),
    end: datetime = typer.Option(..., "--end", formats=_DATE_FORMATS),
    customer_id: Optional[str] = typer.Option(None, "--customer", "-c", help="Defaults to SKYTAP_CUSTOMER_ID."),
    export_pdf: Optional[Path] = typer.Option(None, "--export-pdf"),
    export_html: Optional[Path] = typer.Option(None, "--export-html"),
    export_json: Optional[Path] = typer.Option(None, "--export-json"),
) -> None:
    """Generate the x86 RAM and storage billing report for a period."""

    settings = load_settings()
    request = billing_service.BillingRequest(
        start_date=start.date(),
        end_date=end.date(),
        customer_id=customer_id or settings.customer_id or "",
        rates=_rates(settings, None, None),
        poll_attempts=settings.report_poll_attempts,
        poll_interval_seconds=settings.report_poll_interval_seconds,
    )

    async def _run():
        async with open_api(settings) as api:
            return await billing_service.generate_billing_report(api, request)

    with console.status("Waiting for usage reports..."):
        report = run_async(_run())
    console.print(build_billing_panel(report))

    if export_json:
        console.print(f"[green]JSON written:[/green] {export_model_json(model=report, output_path=export_json)}")
    if export_html:
        console.print(f"[green]HTML written:[/green] {export_billing_html(report=report, output_path=export_html)}")
    if export_pdf:
        try:
            path = export_billing_pdf(report=report, output_path=export_pdf)
            console.print(f"[green]PDF written:[/green] {path}")
        except Exception as exc:  # noqa: BLE001 - WeasyPrint raises OSError/ImportError variants
            path = export_billing_html(report=report, output_path=export_pdf.with_suffix(".html"))
            console.print(f"[yellow]PDF export failed ({exc}); HTML written instead:[/yellow] {path}")


# --- cost --------------------------------------------------------------------

cost_app = typer.Typer(no_args_is_help=True, help="Cost calculators.")


class StorageUnit(str, Enum):
    GB = "GB"
    TB = "TB"


@cost_app.command("instance")
def cost_instance(
    start: datetime = typer.Option(..., "--start", formats=_DATE_FORMATS),
    end: datetime = typer.Option(..., "--end", formats=_DATE_FORMATS),
    ram: float = typer.Option(..., "--ram", help="RAM per instance (GB)."),
    storage: float = typer.Option(..., "--storage", help="Storage per instance (GB)."),
    instances: int = typer.Option(..., "--instances", min=1),
    hours: float = typer.Option(..., "--hours", help="Running hours per day (0-24)."),
    ram_rate: Optional[float] = typer.Option(None, "--ram-rate"),
    storage_rate: Optional[float] = typer.Option(None, "--storage-rate"),
) -> None:
    """Estimate the cost of N identical instances."""

    settings = load_settings()
    request = cost_service.InstanceCostRequest(
        start_date=start.date(),
        end_date=end.date(),
        ram_per_instance=ram,
        storage_per_instance=storage,
        number_of_instances=instances,
        running_hours_per_day=hours,
    )
    try:
        result = cost_service.calculate_instance_cost(request, _rates(settings, ram_rate, storage_rate))
    except SkytapError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(build_cost_panel(result))


@cost_app.command("storage")
def cost_storage(
    amount: float = typer.Argument(..., help="Storage amount."),
    unit: StorageUnit = typer.Option(StorageUnit.GB, "--unit"),
    storage_rate: Optional[float] = typer.Option(None, "--storage-rate"),
) -> None:
    """Daily cost of keeping an amount of storage."""

    settings = load_settings()
    try:
        daily = cost_service.calculate_storage_cost(amount, unit.value, _rates(settings, None, storage_rate))
    except SkytapError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"Daily storage cost: [bold green]${daily:,.2f}[/bold green]")


# --- usage -------------------------------------------------------------------

usage_app = typer.Typer(no_args_is_help=True, help="Usage by billing category label.")


def _usage_request(settings: AppSettings, count: int, batch_size: Optional[int], delay: Optional[float]):
    return usage_service.UsageRequest(
        count=count,
        batch_size=batch_size or settings.usage_batch_size,
        delay_seconds=settings.usage_batch_delay_seconds if delay is None else delay,
        base_url=settings.base_url,
    )


def _print_unlabeled(urls: list[str], noun: str) -> None:
    if not urls:
        return
    console.print(f"\n[yellow]{len(urls)} {noun} without a billing category:[/yellow]")
    for url in urls:
        console.print(f"  {url}", highlight=False)


@usage_app.command("environments")
def usage_environments(
    count: int = typer.Option(10, "--count", min=1),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, max=50),
    delay: Optional[float] = typer.Option(None, "--delay", min=0, help="Seconds between label batches."),
    tsv: bool = typer.Option(False, "--tsv", help="Print the table as TSV."),
) -> None:
    settings = load_settings()
    request = _usage_request(settings, count, batch_size, delay)

    async def _run(hooks: WorkflowHooks):
        async with open_api(settings) as api:
            return await usage_service.analyze_environments(api, request, hooks)

    with workflow_progress("Fetching labels") as hooks:
        summary = run_async(_run(hooks))

    if tsv:
        console.print(usage_service.environments_tsv(summary), markup=False, highlight=False)
        return
    console.print(f"Analyzed {summary.analyzed} environment(s)")
    console.print(f"Total metered RAM: [bold]{summary.total_ram:g}[/bold]")
    console.print(f"Total storage: [bold]{summary.total_storage:.2f} GB[/bold]")
    console.print(build_usage_table(summary))
    _print_unlabeled(summary.unlabeled, "environment(s)")


@usage_app.command("templates")
def usage_templates(
    count: int = typer.Option(3, "--count", min=1),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, max=50),
    delay: Optional[float] = typer.Option(None, "--delay", min=0),
    tsv: bool = typer.Option(False, "--tsv"),
) -> None:
    settings = load_settings()
    request = _usage_request(settings, count, batch_size, delay)

    async def _run(hooks: WorkflowHooks):
        async with open_api(settings) as api:
            return await usage_service.analyze_templates(api, request, hooks)

    with workflow_progress("Fetching labels") as hooks:
        summary = run_async(_run(hooks))

    if tsv:
        console.print(usage_service.templates_tsv(summary), markup=False, highlight=False)
        return
    console.print(f"Analyzed {summary.analyzed} template(s) with an owner")
    console.print(build_usage_table(summary, templates=True))
    _print_unlabeled(summary.unlabeled, "template(s)")


# --- users -------------------------------------------------------------------

users_app = typer.Typer(no_args_is_help=True, help="Account users.")


class UserSort(str, Enum):
    id = "id"
    last_name = "last_name"
    first_name = "first_name"
    activated = "activated"
    last_login = "last_login"


@users_app.command("list")
def users_list(
    count: int = typer.Option(50, "--count", min=1, max=1000),
    sort: UserSort = typer.Option(UserSort.last_name, "--sort"),
    desc: bool = typer.Option(False, "--desc"),
    not_activated: bool = typer.Option(False, "--not-activated", help="Only users who never activated."),
) -> None:
    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            return await users_service.fetch_users(api, count)

    users = users_service.sort_users(run_async(_run()), sort.value, descending=desc)
    if not_activated:
        users = users_service.filter_not_activated(users)
    console.print(build_users_table(users))
    console.print(f"[dim]Users Found ({len(users)} users)[/dim]")


# --- running -----------------------------------------------------------------

running_app = typer.Typer(no_args_is_help=True, help="Environments running right now.")


class RunningSort(str, Enum):
    id = "id"
    name = "name"
    runstate = "runstate"
    last_run = "last_run"
    suspend_on_idle = "suspend_on_idle"
    region = "region"


@running_app.command("show")
def running_show(
    sort: RunningSort = typer.Option(RunningSort.last_run, "--sort"),
    asc: bool = typer.Option(False, "--asc", help="Sort ascending (default descending)."),
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep refreshing."),
    interval: Optional[int] = typer.Option(None, "--interval", min=1, help="Refresh seconds."),
) -> None:
    """Show running environments with uptime and idle-suspend hours."""

    settings = load_settings()

    async def _fetch(api):
        configs = await running_service.fetch_running(api)
        return running_service.sort_running(configs, sort.value, descending=not asc)

    if not watch:

        async def _once():
            async with open_api(settings) as api:
                return await _fetch(api)

        console.print(build_running_table(run_async(_once())))
        return

    refresh = interval or settings.running_refresh_seconds

    async def _loop():
        async with open_api(settings) as api:
            with Live(build_running_table(await _fetch(api)), console=console) as live:
                while True:
                    await asyncio.sleep(refresh)
                    live.update(build_running_table(await _fetch(api)))

    try:
        run_async(_loop())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
