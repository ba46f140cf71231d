"""`training` commands: the four-step training environment workflow."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.markup import escape
from rich.table import Table

from cli.common import console, load_settings, open_api, resolve_project, run_async, workflow_progress
from cli.ui_components import build_power_table
from core.config import AppSettings, write_user_env_vars
from core.domain.models import StepResult
from core.services.hooks import STEP_ERRORS, WorkflowHooks
from core.services.training import (
    TIMEZONE_OPTIONS,
    CopyRequest,
    ScheduleRequest,
    TrainingWizard,
    check_power_status,
    copy_environments,
    create_schedulers,
    disable_autoshutdown,
    lookup_portal_urls,
    portal_urls_csv,
    portal_urls_filename,
    portal_urls_text,
    validate_project,
)

app = typer.Typer(no_args_is_help=True, help="Training environments: copy, schedule, power, URLs.")
power_app = typer.Typer(no_args_is_help=True, help="Power options (auto-shutdown).")
app.add_typer(power_app, name="power")

_DATE_FORMATS = ["%Y-%m-%d"]
_TIME_FORMATS = ["%H:%M"]


def _project(project_id: Optional[str], settings: AppSettings) -> str:
    return resolve_project(project_id, settings.training_project_id)


def _print_logs_on_failure(result: StepResult) -> None:
    if not result.success:
        console.print(f"[red]Step failed:[/red] {result.error}")
        raise typer.Exit(code=1)


@app.command()
def validate(
    project_id: str = typer.Argument(..., help="Training project ID."),
    save: bool = typer.Option(True, "--save/--no-save", help="Remember the project for later commands."),
) -> None:
    """Check that a project exists and is reachable."""

    settings = load_settings()

    async def _run():
        async with open_api(settings) as api:
            return await validate_project(api, project_id)

    outcome = run_async(_run())
    if not outcome.valid:
        console.print(f"[red]{outcome.error}[/red]")
        raise typer.Exit(code=1)

    name = f" ({outcome.project_name})" if outcome.project_name else ""
    console.print(f"[green]Project {outcome.project_id}{name} is valid.[/green]")
    if save:
        env_path = write_user_env_vars({"SKYTAP_TRAINING_PROJECT_ID": outcome.project_id})
        console.print(f"[dim]Saved project to {env_path}[/dim]")


async def _copy(settings: AppSettings, request: CopyRequest, hooks: WorkflowHooks):
    async with open_api(settings) as api:
        return await copy_environments(api, request, hooks)


@app.command()
def copy(
    master: str = typer.Option(..., "--master", "-m", help="Master environment (configuration) ID."),
    copies: int = typer.Option(..., "--copies", "-n", min=1, max=50, help="Number of copies."),
    prefix: str = typer.Option(..., "--prefix", help="Name prefix (copies are named '<prefix> - 01', ...)."),
    project_id: Optional[str] = typer.Option(None, "--project", "-p", help="Training project ID."),
    delay: Optional[float] = typer.Option(None, "--delay", min=0, help="Seconds between copies."),
) -> None:
    """Copy a master environment N times, rename the copies and add them to the project."""

    settings = load_settings()
    request = CopyRequest(
        project_id=_project(project_id, settings),
        master_environment_id=master,
        copies=copies,
        name_prefix=prefix,
        delay_seconds=settings.copy_delay_seconds if delay is None else delay,
    )
    with workflow_progress("Copying environments") as hooks:
        result = run_async(_copy(settings, request, hooks))
    _print_logs_on_failure(result)

    table = Table(title=f"Created {result.total_copies} environment(s)")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    for item in result.results:
        table.add_row(item.copy_id, item.name)
    console.print(table)


@app.command()
def schedule(
    title: str = typer.Option(..., "--title", help="Scheduler title prefix."),
    start_date: datetime = typer.Option(..., "--start-date", formats=_DATE_FORMATS),
    start_time: datetime = typer.Option(..., "--start-time", formats=_TIME_FORMATS),
    end_date: datetime = typer.Option(..., "--end-date", formats=_DATE_FORMATS),
    end_time: datetime = typer.Option(..., "--end-time", formats=_TIME_FORMATS),
    hours: int = typer.Option(..., "--hours", min=1, max=24, help="Running hours per day."),
    days: List[str] = typer.Option(..., "--day", "-d", help="Recurring day (repeatable), e.g. --day monday."),
    time_zone: str = typer.Option("Central Time (US & Canada)", "--time-zone", "--tz"),
    stagger: int = typer.Option(10, "--stagger", help="Minutes between environment start times."),
    project_id: Optional[str] = typer.Option(None, "--project", "-p"),
) -> None:
    """Create staggered schedulers for every environment in the project."""

    if time_zone not in TIMEZONE_OPTIONS:
        console.print(f"[yellow]Unknown time zone '{time_zone}', offsets default to +00:00.[/yellow]")

    settings = load_settings()
    request = ScheduleRequest(
        project_id=_project(project_id, settings),
        title=title,
        time_zone=time_zone,
        start_date=start_date.date(),
        start_time=start_time.time(),
        end_date=end_date.date(),
        end_time=end_time.time(),
        hours_per_day=hours,
        recurring_days=days,
        stagger_minutes=stagger,
    )

    async def _run(hooks: WorkflowHooks):
        async with open_api(settings) as api:
            return await create_schedulers(api, request, hooks)

    with workflow_progress("Creating schedulers") as hooks:
        result = run_async(_run(hooks))
    _print_logs_on_failure(result)

    table = Table(title=f"Created {len(result.results)} scheduler(s)")
    table.add_column("Scheduler", style="cyan")
    table.add_column("Configuration")
    table.add_column("Start")
    table.add_column("End", style="dim")
    for item in result.results:
        table.add_row(item.scheduler_id, item.configuration_name, item.start_time, item.end_time)
    console.print(table)


@power_app.command("status")
def power_status(project_id: Optional[str] = typer.Option(None, "--project", "-p")) -> None:
    """Show run state and auto-shutdown status of every environment."""

    settings = load_settings()
    project = _project(project_id, settings)

    async def _run():
        async with open_api(settings) as api:
            return await check_power_status(api, project)

    result = run_async(_run())
    _print_logs_on_failure(result)
    console.print(build_power_table(result.results))


@power_app.command("disable")
def power_disable(project_id: Optional[str] = typer.Option(None, "--project", "-p")) -> None:
    """Disable auto-shutdown on every environment in the project."""

    settings = load_settings()
    project = _project(project_id, settings)

    async def _run(hooks: WorkflowHooks):
        async with open_api(settings) as api:
            return await disable_autoshutdown(api, project, hooks)

    with workflow_progress("Disabling auto-shutdown") as hooks:
        result = run_async(_run(hooks))
    _print_logs_on_failure(result)
    console.print(f"[green]{result.message}[/green]")
    console.print(build_power_table(result.results))


@app.command()
def urls(
    project_id: Optional[str] = typer.Option(None, "--project", "-p"),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Write a CSV (default name when a directory)."),
    text: bool = typer.Option(False, "--text", help="Print clipboard-friendly 'name/url' blocks."),
) -> None:
    """Look up the sharing portal URL of every environment."""

    settings = load_settings()
    project = _project(project_id, settings)

    async def _run():
        async with open_api(settings) as api:
            return await lookup_portal_urls(api, project)

    result = run_async(_run())
    _print_logs_on_failure(result)
    if not result.results:
        console.print("[yellow]No sharing portals found in the specified project[/yellow]")
        return

    if text:
        console.print(portal_urls_text(result.results), markup=False, highlight=False)
    else:
        table = Table(title=f"Sharing portal URLs ({len(result.results)})")
        table.add_column("Configuration Name", style="cyan")
        table.add_column("Desktop URL", style="magenta")
        for entry in result.results:
            table.add_row(entry.configuration_name, entry.desktop_url)
        console.print(table)

    if csv_path is not None:
        if csv_path.is_dir():
            csv_path = csv_path / portal_urls_filename(project)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        csv_path.write_text(portal_urls_csv(result.results), encoding="utf-8")
        console.print(f"[green]CSV written:[/green] {csv_path}")


@app.command()
def wizard(project_id: Optional[str] = typer.Option(None, "--project", "-p")) -> None:
    """Interactive walk through the four training steps."""

    settings = load_settings()
    project = (project_id or settings.training_project_id or "").strip()
    if not project:
        project = typer.prompt("Project ID", default="").strip()

    async def _validate():
        async with open_api(settings) as api:
            return await validate_project(api, project)

    outcome = run_async(_validate())
    if not outcome.valid:
        console.print(f"[red]{outcome.error}[/red]")
        raise typer.Exit(code=1)
    write_user_env_vars({"SKYTAP_TRAINING_PROJECT_ID": outcome.project_id})

    state = TrainingWizard(project_id=outcome.project_id)
    while True:
        step = state.current_step
        marks = " ".join(
            f"[{'green' if s.completed else ('bold' if i == state.current else 'dim')}]{i + 1}. {s.title}[/]"
            for i, s in enumerate(state.steps)
        )
        console.print(f"\n{marks}")
        console.print(f"[bold cyan]Step {state.current + 1}: {step.title}[/bold cyan] [dim]{step.description}[/dim]")

        action = typer.prompt("[r]un, [n]ext, [b]ack, [j]ump, [q]uit", default="r").strip().lower()[:1]
        if action == "q":
            break
        if action == "n":
            state.next()
            continue
        if action == "b":
            state.previous()
            continue
        if action == "j":
            target = typer.prompt("Step number", type=int) - 1
            if not state.jump_to(target):
                console.print("[yellow]Complete the previous step first.[/yellow]")
            continue

        result = _run_wizard_step(settings, state)
        if result is not None and state.complete(step.id, result) and not state.is_last:
            state.next()


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d %H:%M")
    except ValueError:
        raise typer.BadParameter("expected YYYY-MM-DD HH:MM") from None


def _run_wizard_step(settings: AppSettings, state: TrainingWizard) -> StepResult | None:
    """Run the current step; failures are reported and the wizard stays on the step."""

    try:
        return _execute_wizard_step(settings, state)
    except STEP_ERRORS as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return None


def _execute_wizard_step(settings: AppSettings, state: TrainingWizard) -> StepResult:
    step_id = state.current_step.id
    project = state.project_id

    if step_id == "copy-environment":
        request = CopyRequest(
            project_id=project,
            master_environment_id=typer.prompt("Master environment ID"),
            copies=typer.prompt("Desired copies", type=int),
            name_prefix=typer.prompt("Name prefix"),
            delay_seconds=settings.copy_delay_seconds,
        )
        with workflow_progress("Copying environments") as hooks:
            result = asyncio.run(_copy(settings, request, hooks))
        if result.success:
            console.print(f"[green]Created {result.total_copies} environment(s).[/green]")
        else:
            console.print(f"[red]{result.error}[/red]")
        return result

    if step_id == "create-schedulers":
        start = typer.prompt("Start (YYYY-MM-DD HH:MM)", value_proc=_parse_datetime)
        end = typer.prompt("End (YYYY-MM-DD HH:MM)", value_proc=_parse_datetime)
        request = ScheduleRequest(
            project_id=project,
            title=typer.prompt("Scheduler title"),
            time_zone=typer.prompt("Time zone", default="Central Time (US & Canada)"),
            start_date=start.date(),
            start_time=start.time(),
            end_date=end.date(),
            end_time=end.time(),
            hours_per_day=typer.prompt("Hours per day", type=int),
            recurring_days=typer.prompt("Recurring days (comma separated)").split(","),
            stagger_minutes=typer.prompt("Stagger minutes", type=int, default=10),
        )

        async def _schedule(hooks: WorkflowHooks):
            async with open_api(settings) as api:
                return await create_schedulers(api, request, hooks)

        with workflow_progress("Creating schedulers") as hooks:
            result = asyncio.run(_schedule(hooks))
        if result.success:
            console.print(f"[green]Created {len(result.results)} scheduler(s).[/green]")
        else:
            console.print(f"[red]{result.error}[/red]")
        return result

    if step_id == "power-options":

        async def _power():
            async with open_api(settings) as api:
                return await disable_autoshutdown(api, project)

        result = asyncio.run(_power())
        if result.success:
            console.print(f"[green]{result.message}[/green]")
            console.print(build_power_table(result.results))
        else:
            console.print(f"[red]{result.error}[/red]")
        return result

    async def _urls():
        async with open_api(settings) as api:
            return await lookup_portal_urls(api, project)

    result = asyncio.run(_urls())
    if result.results:
        path = Path(portal_urls_filename(project))
        path.write_text(portal_urls_csv(result.results), encoding="utf-8")
        console.print(portal_urls_text(result.results), markup=False, highlight=False)
        console.print(f"[green]CSV written:[/green] {path}")
    elif result.success:
        console.print("[yellow]No sharing portals found in the specified project[/yellow]")
    return result
