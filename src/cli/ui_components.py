"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Lets several commands reuse the same tables/panels.
"""

from __future__ import annotations

from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import (
    BatchResult,
    BillingReport,
    Configuration,
    InstanceCostResult,
    IPAddress,
    PortalEntry,
    PowerStatus,
    Project,
    UsageSummary,
    User,
)
from core.services.partner import format_runtime
from core.services.running import seconds_to_hours, uptime_hours
from core.services.users import format_last_login


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Why here:
    - Avoids circular imports (main <-> sub-apps).
    - Can be skipped in non-interactive modes (pipes, JSON output).
    """

    title = Text("SKYTAP CONSOLE", style="bold cyan")
    subtitle = Text("Training • Partners • Billing • Utilities", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _runstate_style(runstate: str | None) -> str:
    return {
        "running": "green",
        "suspended": "yellow",
        "stopped": "red",
        "busy": "blue",
    }.get((runstate or "").lower(), "white")


def build_projects_table(projects: Iterable[Project], *, title: str = "Projects") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Configurations", justify="right")
    table.add_column("Templates", justify="right")
    table.add_column("Owner", style="dim")
    for p in projects:
        table.add_row(p.id, p.name, str(p.configuration_count), str(p.template_count), p.owner_name or "")
    return table


def build_ips_table(ips: Iterable[IPAddress], *, title: str = "Public IPs") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Address", style="white")
    table.add_column("Region")
    table.add_column("Attached", justify="center")
    table.add_column("DNS", style="dim")
    for ip in ips:
        attached = "[green]yes[/green]" if ip.nic_count else "[red]no[/red]"
        table.add_row(ip.id, ip.address, ip.region or "", attached, ip.dns_name or "")
    return table


def build_users_table(users: Iterable[User]) -> Table:
    table = Table(title="Users")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("First Name")
    table.add_column("Last Name")
    table.add_column("Email", style="magenta")
    table.add_column("Activated", justify="center")
    table.add_column("Last Login", style="dim")
    for u in users:
        activated = "[green]Yes[/green]" if u.activated else "[red]No[/red]"
        table.add_row(u.id, u.first_name, u.last_name, u.email, activated, format_last_login(u.last_login))
    return table


def build_running_table(configurations: Iterable[Configuration]) -> Table:
    table = Table(title="Running Now")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Uptime (Hours)", justify="right")
    table.add_column("Suspend Idle (Hours)", justify="right")
    table.add_column("Region", style="dim")
    for c in configurations:
        style = _runstate_style(c.runstate)
        table.add_row(
            c.id,
            c.name,
            f"[{style}]{c.runstate}[/{style}]",
            f"{uptime_hours(c.last_run)}h",
            f"{seconds_to_hours(c.suspend_on_idle)}h",
            c.region or "",
        )
    return table


def build_power_table(statuses: Iterable[PowerStatus]) -> Table:
    table = Table(title="Power Status")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Auto-Shutdown")
    for s in statuses:
        style = _runstate_style(s.status)
        shutdown = f"[green]{s.auto_shutdown_status}[/green]" if s.auto_shutdown_disabled else s.auto_shutdown_status
        table.add_row(s.id, s.name, f"[{style}]{s.status}[/{style}]", shutdown)
    return table


def build_portals_table(entries: Iterable[PortalEntry]) -> Table:
    table = Table(title="Sharing Portals")
    table.add_column("Portal ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Configuration", style="dim")
    table.add_column("State")
    table.add_column("Runtime Left", justify="right")
    table.add_column("URL", style="magenta")
    for e in entries:
        style = _runstate_style(e.configuration_runstate)
        table.add_row(
            e.publish_set.id,
            e.publish_set.name,
            e.configuration_id,
            f"[{style}]{e.configuration_runstate}[/{style}]",
            format_runtime(e.publish_set.runtime_left_in_seconds),
            e.publish_set.desktops_url or "",
        )
    return table


def build_usage_table(summary: UsageSummary, *, templates: bool = False) -> Table:
    table = Table(title="Template Usage" if templates else "Environment Usage")
    table.add_column("Billing Category", style="cyan")
    table.add_column("Template Count" if templates else "Environment Count", justify="right")
    if not templates:
        table.add_column("Metered RAM", justify="right")
        table.add_column("Storage (GB)", justify="right")
    for c in summary.categories:
        if templates:
            table.add_row(c.name, str(c.count))
        else:
            table.add_row(c.name, str(c.count), f"{c.metered_ram:g}", f"{c.storage:.2f}")
    return table


def build_billing_panel(report: BillingReport) -> Panel:
    table = Table(show_header=True, box=None)
    table.add_column("Resource", style="bold")
    table.add_column("Hours", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Cost", justify="right", style="green")
    table.add_row("x86 RAM", f"{report.x86_ram_hours:,.2f}", f"${report.x86_ram_rate}", f"${report.x86_ram_cost:,.2f}")
    table.add_row("Storage", f"{report.storage_hours:,.2f}", f"${report.storage_rate}", f"${report.storage_cost:,.2f}")
    table.add_row("Total", "", "", f"[bold]${report.total_cost:,.2f}[/bold]")

    for month in report.monthly_breakdown:
        table.add_row(
            Text(f"  {month.period}", style="dim"),
            f"{month.x86_ram_hours:,.2f} / {month.storage_hours:,.2f}",
            "",
            f"${month.total_cost:,.2f}",
        )

    title = Text(f"Billing {report.period} (customer {report.customer_id})", style="bold yellow")
    return Panel(table, title=title, border_style="yellow")


def build_cost_panel(result: InstanceCostResult) -> Panel:
    body = Text()
    body.append(f"Days: {result.number_of_days}\n")
    body.append(f"RAM GB-hours per instance: {result.ram_hours_per_instance:,.2f}\n")
    body.append(f"Storage GB-hours per instance: {result.storage_hours_per_instance:,.2f}\n\n")
    body.append(f"RAM cost per instance: ${result.ram_cost_per_instance:,.2f}\n")
    body.append(f"Storage cost per instance: ${result.storage_cost_per_instance:,.2f}\n")
    body.append(f"Total RAM cost: ${result.total_ram_cost:,.2f}\n")
    body.append(f"Total storage cost: ${result.total_storage_cost:,.2f}\n\n")
    body.append(f"Total estimated cost: ${result.total_cost:,.2f}", style="bold green")
    return Panel(body, title="Instance Cost", border_style="green")


def print_batch_result(console: Console, result: BatchResult, *, noun: str, verb: str) -> None:
    console.print(f"[green]{verb} {len(result.success)} {noun}(s).[/green]")
    if result.failed:
        console.print(f"[red]{len(result.failed)} {noun}(s) failed:[/red]")
        for item in result.failed:
            console.print(f"  [red]-[/red] {item.id}: {item.error}")
