"""Shared CLI plumbing: settings, API client, error handling, progress."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Coroutine, Iterator, TypeVar

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from adapters.skytap_api import SkytapClient, build_skytap_client
from core.config import AppSettings
from core.domain.regions import Region
from core.errors import SkytapError
from core.services.hooks import WorkflowHooks

T = TypeVar("T")

console = Console()


def load_settings() -> AppSettings:
    return AppSettings()


def open_api(settings: AppSettings) -> SkytapClient:
    if not settings.has_credentials:
        console.print(
            "[yellow]Warning:[/yellow] SKYTAP_USER/SKYTAP_TOKEN are not set; run `skytap-console doctor setup`."
        )
    return build_skytap_client(settings)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine and turn API/validation failures into exit code 1."""

    try:
        return asyncio.run(coro)
    except SkytapError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except httpx.HTTPError as exc:
        console.print(f"[red]Network error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except ValidationError as exc:
        console.print(f"[red]Unexpected response from Skytap:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


@contextmanager
def workflow_progress(description: str, *, show_logs: bool = True) -> Iterator[WorkflowHooks]:
    """Progress bar plus live step messages for a workflow run."""

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=100)

        def _log(message: str) -> None:
            if show_logs:
                progress.console.print(f"[dim]{message}[/dim]")

        def _progress(percent: float) -> None:
            progress.update(task, completed=percent)

        yield WorkflowHooks(log=_log, progress=_progress)


def resolve_project(project_id: str | None, fallback: str | None, *, what: str = "Project ID") -> str:
    value = (project_id or fallback or "").strip()
    if not value:
        raise typer.BadParameter(f"{what} is required (pass --project or save one first)")
    return value


def parse_region(value: str) -> Region:
    """Typer parser accepting `US-Central`, `emea`, `apac`, `APAC-2`, ..."""

    try:
        return Region.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
