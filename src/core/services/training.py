"""Training environment workflow.

Four sequential steps run against one validated project:

1. copy a master environment N times (paced, named, added to the project),
2. create staggered schedulers for every environment in the project,
3. inspect power state and disable auto-shutdown,
4. look up the sharing portal URLs handed out to students.

Every step logs and skips per-environment failures; the step result carries
the successes plus the collected log lines. `TrainingWizard` tracks which
step is current and which ones are complete.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Sequence

from core.domain.models import (
    Configuration,
    CopyResult,
    CopyStepResult,
    PortalUrl,
    PowerStatus,
    PowerStepResult,
    SchedulerResult,
    SchedulerStepResult,
    StepResult,
    UrlStepResult,
)
from core.errors import InputValidationError
from core.interfaces.api import SkytapAPI
from core.services.hooks import STEP_ERRORS, StepLog, WorkflowHooks

logger = logging.getLogger(__name__)

NO_CONFIGURATIONS = "No configurations found in the specified project"
AUTO_SHUTDOWN_DISABLED = "Auto-Shutdown is Disabled"

TIMEZONE_OPTIONS: dict[str, str] = {
    "Central Time (US & Canada)": "-06:00",
    "Eastern Time (US & Canada)": "-05:00",
    "London": "+00:00",
    "Mountain Time (US & Canada)": "-07:00",
    "Mumbai": "+05:30",
    "Pacific Time (US & Canada)": "-08:00",
    "Rome": "+01:00",
    "Stockholm": "+01:00",
}

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


# --- Project validation ------------------------------------------------------


@dataclass
class ProjectValidation:
    project_id: str
    valid: bool
    error: str | None = None
    project_name: str | None = None


async def validate_project(api: SkytapAPI, project_id: str) -> ProjectValidation:
    """A project is usable when its configuration list can be fetched."""

    project_id = project_id.strip()
    if not project_id:
        return ProjectValidation(project_id="", valid=False, error="Please enter a project ID")

    try:
        await api.get_project_configurations(project_id)
    except STEP_ERRORS as exc:
        return ProjectValidation(project_id=project_id, valid=False, error=f"Invalid project ID: {exc}")

    project_name = None
    try:
        project_name = (await api.get_project(project_id)).name or None
    except STEP_ERRORS as exc:
        logger.debug("Project %s name lookup failed: %s", project_id, exc)

    return ProjectValidation(project_id=project_id, valid=True, project_name=project_name)


# --- Step 1: copy environment ------------------------------------------------


@dataclass
class CopyRequest:
    project_id: str
    master_environment_id: str
    copies: int
    name_prefix: str
    delay_seconds: float = 10.0


def validate_copy_request(request: CopyRequest) -> None:
    if not request.project_id.strip():
        raise InputValidationError("Project ID is required")
    if not request.master_environment_id.strip():
        raise InputValidationError("Master Environment ID is required")
    if not request.name_prefix.strip():
        raise InputValidationError("Name Prefix is required")
    if request.copies < 1:
        raise InputValidationError("Desired copies must be at least 1")


def copy_name(prefix: str, index: int) -> str:
    """Name of the copy at zero-based `index` (`Training - 01`, ...)."""

    return f"{prefix} - {index + 1:02d}"


async def copy_environments(
    api: SkytapAPI,
    request: CopyRequest,
    hooks: WorkflowHooks | None = None,
) -> CopyStepResult:
    validate_copy_request(request)
    log = StepLog(logger, hooks or WorkflowHooks())

    project_id = request.project_id.strip()
    master_id = request.master_environment_id.strip()
    prefix = request.name_prefix.strip()
    copies = request.copies

    log(f"Starting copy process for {copies} environment(s)")
    log(f"Master Environment ID: {master_id}")
    log(f"Project ID: {project_id}")
    log(f"Name Prefix: {prefix}")

    total_steps = copies * 3
    done = 0
    copy_ids: list[str] = []

    log("Step 1: Creating environment copies...")
    for i in range(copies):
        try:
            log(f"Creating copy {i + 1} of {copies}...")
            created = await api.copy_configuration(master_id)
            copy_ids.append(created.id)
            log(f"Successfully created copy {i + 1} with ID {created.id}")
            done += 1
            log.progress(done, total_steps)

            if i < copies - 1:
                log(f"Waiting {request.delay_seconds:g} seconds before creating next copy...")
                await asyncio.sleep(request.delay_seconds)
        except STEP_ERRORS as exc:
            log(f"Failed to create copy {i + 1}: {exc}", level=logging.WARNING)

    results: list[CopyResult] = []
    log("Step 2: Updating environment names...")
    for i, copy_id in enumerate(copy_ids):
        name = copy_name(prefix, i)
        try:
            log(f'Updating name for copy {i + 1} (ID: {copy_id}) to "{name}"')
            await api.rename_configuration(copy_id, name)
            log(f'Successfully updated name for copy {copy_id} to "{name}"')
            results.append(CopyResult(copy_id=copy_id, name=name, project_id=project_id))
            done += 1
            log.progress(done, total_steps)
        except STEP_ERRORS as exc:
            log(f"Failed to update name for copy {copy_id}: {exc}", level=logging.WARNING)

    log("Step 3: Adding copies to project...")
    for i, copy_id in enumerate(copy_ids):
        try:
            log(f"Adding copy {i + 1} (ID: {copy_id}) to project {project_id}")
            await api.add_environment_to_project(copy_id, project_id)
            log(f"Successfully added copy {copy_id} to project {project_id}")
            done += 1
            log.progress(done, total_steps)
        except STEP_ERRORS as exc:
            log(f"Failed to add copy {copy_id} to project: {exc}", level=logging.WARNING)

    if hooks and hooks.progress:
        hooks.progress(100.0)
    log(f"Copy process completed! Created {len(results)} environment(s)")
    return CopyStepResult(success=True, results=results, logs=log.lines)


# --- Step 2: create schedulers -----------------------------------------------


@dataclass
class ScheduleRequest:
    project_id: str
    title: str
    time_zone: str
    start_date: date | None
    start_time: time | None
    end_date: date | None
    end_time: time | None
    hours_per_day: int | None
    recurring_days: Sequence[str] = ()
    stagger_minutes: int = 10


def normalize_recurring_days(days: Sequence[str]) -> list[str]:
    """Upper-case weekday names in Monday..Sunday order, deduplicated."""

    selected = {d.strip().lower() for d in days if d.strip()}
    unknown = selected - set(WEEKDAYS)
    if unknown:
        raise InputValidationError(f"Unknown recurring day(s): {', '.join(sorted(unknown))}")
    return [day.upper() for day in WEEKDAYS if day in selected]


def validate_schedule_request(request: ScheduleRequest) -> None:
    if not request.stagger_minutes or request.stagger_minutes < 1:
        raise InputValidationError("Stagger Minutes must be at least 1")
    if not request.time_zone:
        raise InputValidationError("Time Zone is required")
    if request.start_date is None:
        raise InputValidationError("Start Date is required")
    if request.start_time is None:
        raise InputValidationError("Start Time is required")
    if request.end_date is None:
        raise InputValidationError("End Date is required")
    if request.end_time is None:
        raise InputValidationError("End Time is required")
    if not request.hours_per_day:
        raise InputValidationError("Hours Per Day is required")
    if not request.project_id.strip():
        raise InputValidationError("Project ID is required")
    if not request.title.strip():
        raise InputValidationError("Scheduler Title is required")
    if not normalize_recurring_days(request.recurring_days):
        raise InputValidationError("At least one recurring day must be selected")


def format_schedule_time(moment: datetime, time_zone: str) -> str:
    """`YYYY/MM/DD HH:MM:SS <offset>` with the fixed offset of `time_zone`."""

    offset = TIMEZONE_OPTIONS.get(time_zone, "+00:00")
    return f"{moment:%Y/%m/%d %H:%M:%S} {offset}"


def schedule_window(request: ScheduleRequest, index: int) -> tuple[datetime, datetime]:
    """Start/end of the scheduler for the `index`-th configuration.

    Starts are staggered by `index * stagger_minutes` and roll over into the
    next day past midnight.
    """

    if None in (request.start_date, request.start_time, request.end_date, request.end_time):
        raise InputValidationError("Start and end date/time are required")
    base_minutes = request.start_time.hour * 60 + request.start_time.minute
    start = datetime.combine(request.start_date, time()) + timedelta(
        minutes=base_minutes + index * request.stagger_minutes
    )
    end = datetime.combine(request.end_date, time(request.end_time.hour, request.end_time.minute))
    return start, end


def build_schedule_payload(request: ScheduleRequest, configuration: Configuration, index: int) -> dict[str, Any]:
    start, end = schedule_window(request, index)
    start_at = format_schedule_time(start, request.time_zone)
    hours = int(request.hours_per_day or 0)
    return {
        "title": f"{request.title} - {configuration.name}",
        "configuration_id": configuration.id,
        "actions": [
            {"type": "run", "offset": 0},
            {"type": "suspend", "offset": hours * 3600},
        ],
        "next_action_name": "run",
        "next_action_time": start_at,
        "start_at": start_at,
        "end_at": format_schedule_time(end, request.time_zone),
        "notify_user": True,
        "delete_at_end": False,
        "executions": [],
        "recurring_days": normalize_recurring_days(request.recurring_days),
        "time_zone": request.time_zone,
    }


async def create_schedulers(
    api: SkytapAPI,
    request: ScheduleRequest,
    hooks: WorkflowHooks | None = None,
) -> SchedulerStepResult:
    validate_schedule_request(request)
    log = StepLog(logger, hooks or WorkflowHooks())
    project_id = request.project_id.strip()

    log(f"Starting scheduler creation for project {project_id}")
    log(f"Stagger Minutes: {request.stagger_minutes}")
    log(f"Time Zone: {request.time_zone}")
    log(f"Hours Per Day: {request.hours_per_day}")

    try:
        log("Fetching project configurations...")
        configurations = await api.get_project_configurations(project_id)
        if not configurations:
            raise InputValidationError(NO_CONFIGURATIONS)
    except STEP_ERRORS as exc:
        log(f"Scheduler creation failed: {exc}", level=logging.ERROR)
        return SchedulerStepResult(success=False, error=str(exc), logs=log.lines)

    log(f"Found {len(configurations)} configuration(s) in project")
    log(f"Recurring days: {', '.join(normalize_recurring_days(request.recurring_days))}")

    results: list[SchedulerResult] = []
    for i, config in enumerate(configurations):
        payload = build_schedule_payload(request, config, i)
        start, _ = schedule_window(request, i)
        try:
            log(
                f"Creating scheduler for {config.name} (staggered start: "
                f"{start:%H:%M} - {request.stagger_minutes}min delay)"
            )
            logger.debug("Scheduler payload: %s", payload)
            response = await api.create_schedule(payload)
            scheduler_id = str(response.get("id", ""))
            log(f"Successfully created scheduler for {config.name} (ID: {scheduler_id})")
            results.append(
                SchedulerResult(
                    configuration_id=config.id,
                    configuration_name=config.name,
                    scheduler_id=scheduler_id,
                    title=payload["title"],
                    start_time=payload["start_at"],
                    end_time=payload["end_at"],
                )
            )
        except STEP_ERRORS as exc:
            log(f"Failed to create scheduler for {config.name}: {exc}", level=logging.WARNING)
        log.progress(i + 1, len(configurations))

    log(f"Scheduler creation completed! Created {len(results)} scheduler(s)")
    return SchedulerStepResult(success=True, results=results, logs=log.lines)


# --- Step 3: power options ---------------------------------------------------


def _require_project(project_id: str) -> str:
    project_id = project_id.strip()
    if not project_id:
        raise InputValidationError("Project ID is required")
    return project_id


async def check_power_status(
    api: SkytapAPI,
    project_id: str,
    hooks: WorkflowHooks | None = None,
) -> PowerStepResult:
    project_id = _require_project(project_id)
    log = StepLog(logger, hooks or WorkflowHooks())

    log(f"Starting status check for project {project_id}")
    try:
        configurations = await api.get_project_configurations(project_id)
    except STEP_ERRORS as exc:
        log(f"Status check failed: {exc}", level=logging.ERROR)
        return PowerStepResult(success=False, error=str(exc), logs=log.lines)

    log(f"Found {len(configurations)} configuration(s) in project")
    if not configurations:
        log(NO_CONFIGURATIONS, level=logging.WARNING)
        return PowerStepResult(success=False, error=NO_CONFIGURATIONS, logs=log.lines)

    results: list[PowerStatus] = []
    for config in configurations:
        try:
            log(f"Checking status for configuration {config.id} ({config.name})")
            status = await api.get_configuration(config.id)
            auto_shutdown = status.auto_suspend_description or AUTO_SHUTDOWN_DISABLED
            log(f"Configuration {config.id}: {status.runstate}, Auto-shutdown: {auto_shutdown}")
            results.append(
                PowerStatus(
                    id=status.id,
                    name=status.name,
                    status=status.runstate,
                    auto_shutdown_status=auto_shutdown,
                )
            )
        except STEP_ERRORS as exc:
            log(f"Error getting status for configuration {config.id}: {exc}", level=logging.WARNING)
            results.append(
                PowerStatus(
                    id=config.id,
                    name=config.name,
                    status="Unknown",
                    auto_shutdown_status="Error retrieving status",
                )
            )

    log(f"Status check completed. Retrieved status for {len(results)} environment(s)")
    return PowerStepResult(
        success=True,
        results=results,
        total_environments=len(configurations),
        logs=log.lines,
    )


async def disable_autoshutdown(
    api: SkytapAPI,
    project_id: str,
    hooks: WorkflowHooks | None = None,
) -> PowerStepResult:
    """Disable auto-shutdown on every environment, then refresh the status."""

    project_id = _require_project(project_id)
    log = StepLog(logger, hooks or WorkflowHooks())

    log(f"Starting auto-shutdown disable for project {project_id}")
    try:
        configurations = await api.get_project_configurations(project_id)
    except STEP_ERRORS as exc:
        log(f"Auto-shutdown disable failed: {exc}", level=logging.ERROR)
        return PowerStepResult(success=False, error=str(exc), logs=log.lines)

    log(f"Found {len(configurations)} configuration(s) in project")
    if not configurations:
        log(NO_CONFIGURATIONS, level=logging.WARNING)
        return PowerStepResult(success=False, error=NO_CONFIGURATIONS, logs=log.lines)

    disabled = 0
    for config in configurations:
        try:
            log(f"Disabling auto-shutdown for configuration {config.id} ({config.name})")
            await api.disable_autoshutdown(config.id)
            disabled += 1
            log(f"Successfully disabled auto-shutdown for configuration {config.id}")
        except STEP_ERRORS as exc:
            log(f"Error disabling auto-shutdown for configuration {config.id}: {exc}", level=logging.WARNING)

    message = f"Successfully disabled autoshutdown for {disabled} environment(s) in the project"
    log(message)

    log("Refreshing status after auto-shutdown changes...")
    refreshed = await check_power_status(api, project_id, hooks)

    return PowerStepResult(
        success=True,
        results=refreshed.results,
        disabled_count=disabled,
        total_environments=len(configurations),
        message=message,
        logs=log.lines + refreshed.logs,
    )


# --- Step 4: lookup URLs -----------------------------------------------------


async def lookup_portal_urls(
    api: SkytapAPI,
    project_id: str,
    hooks: WorkflowHooks | None = None,
) -> UrlStepResult:
    """First sharing portal URL of every environment in the project."""

    project_id = _require_project(project_id)
    log = StepLog(logger, hooks or WorkflowHooks())

    log(f"Starting URL lookup for project {project_id}")
    try:
        configurations = await api.get_project_configurations(project_id)
    except STEP_ERRORS as exc:
        log(f"URL lookup failed: {exc}", level=logging.ERROR)
        return UrlStepResult(success=False, error=str(exc), logs=log.lines)

    log(f"Found {len(configurations)} configuration(s) in project")
    if not configurations:
        log(NO_CONFIGURATIONS, level=logging.WARNING)
        return UrlStepResult(success=False, error=NO_CONFIGURATIONS, logs=log.lines)

    results: list[PortalUrl] = []
    for config in configurations:
        try:
            log(f"Checking publish sets for configuration {config.id} ({config.name})")
            publish_sets = await api.get_publish_sets(config.id)
        except STEP_ERRORS as exc:
            log(f"Error fetching publish sets for configuration {config.id}: {exc}", level=logging.WARNING)
            continue

        if not publish_sets:
            log(f"No sharing portals found for configuration {config.id}")
            continue

        first = publish_sets[0]
        entry = PortalUrl(
            configuration_name=first.configuration_name or config.name,
            desktop_url=first.desktops_url or "",
        )
        results.append(entry)
        log(f"Found sharing portal for {entry.configuration_name}: {entry.desktop_url}")

    log(f"URL lookup completed. Found {len(results)} sharing portal URL(s)")
    if not results:
        log("No sharing portals found in the specified project", level=logging.WARNING)
    return UrlStepResult(success=True, results=results, logs=log.lines)


def portal_urls_csv(results: Sequence[PortalUrl]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Configuration Name", "Desktop URL"])
    for entry in results:
        writer.writerow([entry.configuration_name, entry.desktop_url])
    return buffer.getvalue()


def portal_urls_text(results: Sequence[PortalUrl]) -> str:
    """Clipboard-friendly `name\\nurl` blocks separated by blank lines."""

    return "\n\n".join(f"{entry.configuration_name}\n{entry.desktop_url}" for entry in results)


def portal_urls_filename(project_id: str) -> str:
    return f"skytap_urls_{project_id}.csv"


# --- Wizard ------------------------------------------------------------------


@dataclass
class WizardStep:
    id: str
    title: str
    description: str
    completed: bool = False


def default_training_steps() -> list[WizardStep]:
    return [
        WizardStep(
            "copy-environment",
            "Copy Environment",
            "Create multiple copies of a master environment with automated naming",
        ),
        WizardStep(
            "create-schedulers",
            "Create Schedulers",
            "Set up staggered schedulers for all environments",
        ),
        WizardStep(
            "power-options",
            "Power Options",
            "Disable auto-shutdown to prevent unexpected suspensions",
        ),
        WizardStep(
            "lookup-urls",
            "Lookup URLs",
            "Generate and export student access URLs",
        ),
    ]


@dataclass
class TrainingWizard:
    """Linear step navigation over a validated project."""

    project_id: str
    steps: list[WizardStep] = field(default_factory=default_training_steps)
    current: int = 0
    results: dict[str, StepResult] = field(default_factory=dict)

    @property
    def current_step(self) -> WizardStep:
        return self.steps[self.current]

    @property
    def progress(self) -> float:
        return (self.current + 1) / len(self.steps) * 100

    @property
    def is_last(self) -> bool:
        return self.current == len(self.steps) - 1

    def complete(self, step_id: str, result: StepResult) -> bool:
        """Record a step result; failed runs leave the step incomplete."""

        if not result.success:
            return False
        self.results[step_id] = result
        for step in self.steps:
            if step.id == step_id:
                step.completed = True
        return True

    def next(self) -> bool:
        if self.current < len(self.steps) - 1:
            self.current += 1
            return True
        return False

    def previous(self) -> bool:
        if self.current > 0:
            self.current -= 1
            return True
        return False

    def can_jump_to(self, index: int) -> bool:
        if index < 0 or index >= len(self.steps):
            return False
        return index <= self.current or self.steps[index - 1].completed

    def jump_to(self, index: int) -> bool:
        if not self.can_jump_to(index):
            return False
        self.current = index
        return True
