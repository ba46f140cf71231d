from datetime import date, time

import pytest

from core.domain.models import Configuration, PublishSet, StepResult
from core.errors import InputValidationError
from core.services.hooks import WorkflowHooks
from core.services.training import (
    AUTO_SHUTDOWN_DISABLED,
    NO_CONFIGURATIONS,
    CopyRequest,
    ScheduleRequest,
    TrainingWizard,
    build_schedule_payload,
    check_power_status,
    copy_environments,
    copy_name,
    create_schedulers,
    disable_autoshutdown,
    format_schedule_time,
    lookup_portal_urls,
    normalize_recurring_days,
    portal_urls_csv,
    portal_urls_filename,
    portal_urls_text,
    schedule_window,
    validate_project,
)


def _schedule_request(**overrides) -> ScheduleRequest:
    values = dict(
        project_id="p-1",
        title="Class",
        time_zone="Eastern Time (US & Canada)",
        start_date=date(2024, 3, 4),
        start_time=time(8, 30),
        end_date=date(2024, 3, 8),
        end_time=time(17, 0),
        hours_per_day=8,
        recurring_days=["friday", "Monday"],
        stagger_minutes=10,
    )
    values.update(overrides)
    return ScheduleRequest(**values)


# --- validate_project ---------------------------------------------------------


@pytest.mark.asyncio
async def test_validate_project_rejects_blank_id(fake_api):
    outcome = await validate_project(fake_api, "   ")
    assert not outcome.valid
    assert outcome.error == "Please enter a project ID"
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_validate_project_reports_api_failure(fake_api):
    outcome = await validate_project(fake_api, "missing")
    assert not outcome.valid
    assert outcome.error.startswith("Invalid project ID: API request failed: 404")


@pytest.mark.asyncio
async def test_validate_project_accepts_reachable_project(fake_api):
    fake_api.project_configurations["p-1"] = []
    outcome = await validate_project(fake_api, " p-1 ")
    assert outcome.valid
    assert outcome.project_id == "p-1"
    assert outcome.project_name is None


# --- copy ---------------------------------------------------------------------


@pytest.mark.asyncio
async def test_copy_environments_creates_renames_and_adds(fake_api):
    progress = []
    request = CopyRequest(
        project_id="p-1", master_environment_id="master", copies=3, name_prefix="Training", delay_seconds=0
    )

    result = await copy_environments(fake_api, request, WorkflowHooks(progress=progress.append))

    assert result.success
    assert result.total_copies == 3
    assert [r.name for r in result.results] == ["Training - 01", "Training - 02", "Training - 03"]
    assert fake_api.called("rename_configuration") == [
        ("copy-1", "Training - 01"),
        ("copy-2", "Training - 02"),
        ("copy-3", "Training - 03"),
    ]
    assert fake_api.called("add_environment_to_project") == [
        ("copy-1", "p-1"),
        ("copy-2", "p-1"),
        ("copy-3", "p-1"),
    ]
    assert progress[-1] == 100.0
    assert progress == sorted(progress)


@pytest.mark.asyncio
async def test_copy_environments_skips_failed_copy_and_failed_rename(fake_api):
    fake_api.fail["copy_configuration"] = {"2"}
    fake_api.fail["rename_configuration"] = {"copy-3"}
    request = CopyRequest(
        project_id="p-1", master_environment_id="master", copies=3, name_prefix="Lab", delay_seconds=0
    )

    result = await copy_environments(fake_api, request)

    # Copies 1 and 3 exist; names follow the position among successful copies.
    assert [r.copy_id for r in result.results] == ["copy-1"]
    assert fake_api.called("rename_configuration") == [("copy-1", "Lab - 01"), ("copy-3", "Lab - 02")]
    # A failed rename still gets added to the project.
    assert [args[0] for args in fake_api.called("add_environment_to_project")] == ["copy-1", "copy-3"]
    assert any("Failed to create copy 2" in line for line in result.logs)


@pytest.mark.asyncio
async def test_copy_environments_waits_between_successful_copies_only(fake_api, monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("core.services.training.asyncio.sleep", fake_sleep)
    request = CopyRequest(
        project_id="p-1", master_environment_id="m", copies=3, name_prefix="X", delay_seconds=10
    )

    await copy_environments(fake_api, request)

    assert sleeps == [10, 10]


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"project_id": ""}, "Project ID is required"),
        ({"master_environment_id": " "}, "Master Environment ID is required"),
        ({"name_prefix": ""}, "Name Prefix is required"),
        ({"copies": 0}, "Desired copies must be at least 1"),
    ],
)
@pytest.mark.asyncio
async def test_copy_environments_validation(fake_api, overrides, message):
    values = dict(project_id="p", master_environment_id="m", copies=1, name_prefix="n", delay_seconds=0)
    values.update(overrides)
    with pytest.raises(InputValidationError, match=message):
        await copy_environments(fake_api, CopyRequest(**values))


def test_copy_name_is_zero_padded():
    assert copy_name("Training", 0) == "Training - 01"
    assert copy_name("Training", 11) == "Training - 12"


# --- schedulers ---------------------------------------------------------------


def test_format_schedule_time_uses_fixed_offsets():
    start, _ = schedule_window(_schedule_request(), 0)
    assert format_schedule_time(start, "Eastern Time (US & Canada)") == "2024/03/04 08:30:00 -05:00"
    assert format_schedule_time(start, "Mumbai") == "2024/03/04 08:30:00 +05:30"
    assert format_schedule_time(start, "Atlantis") == "2024/03/04 08:30:00 +00:00"


def test_schedule_window_staggers_and_rolls_past_midnight():
    request = _schedule_request(start_time=time(23, 50), stagger_minutes=15)
    start, end = schedule_window(request, 2)
    assert start.isoformat() == "2024-03-05T00:20:00"
    assert end.isoformat() == "2024-03-08T17:00:00"


def test_schedule_window_requires_dates():
    with pytest.raises(InputValidationError, match="Start and end date/time are required"):
        schedule_window(_schedule_request(end_time=None), 0)


def test_build_schedule_payload():
    config = Configuration(id="c-2", name="Student 2")
    payload = build_schedule_payload(_schedule_request(), config, 1)

    assert payload["title"] == "Class - Student 2"
    assert payload["configuration_id"] == "c-2"
    assert payload["actions"] == [{"type": "run", "offset": 0}, {"type": "suspend", "offset": 8 * 3600}]
    assert payload["start_at"] == "2024/03/04 08:40:00 -05:00"
    assert payload["next_action_time"] == payload["start_at"]
    assert payload["end_at"] == "2024/03/08 17:00:00 -05:00"
    assert payload["recurring_days"] == ["MONDAY", "FRIDAY"]
    assert payload["notify_user"] is True
    assert payload["delete_at_end"] is False
    assert payload["time_zone"] == "Eastern Time (US & Canada)"


def test_normalize_recurring_days_orders_and_rejects_unknown():
    assert normalize_recurring_days(["sunday", "MONDAY", "monday"]) == ["MONDAY", "SUNDAY"]
    with pytest.raises(InputValidationError, match="funday"):
        normalize_recurring_days(["funday"])


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"stagger_minutes": 0, "time_zone": ""}, "Stagger Minutes must be at least 1"),
        ({"time_zone": "", "start_date": None}, "Time Zone is required"),
        ({"start_date": None, "start_time": None}, "Start Date is required"),
        ({"start_time": None}, "Start Time is required"),
        ({"end_date": None}, "End Date is required"),
        ({"end_time": None}, "End Time is required"),
        ({"hours_per_day": None, "project_id": ""}, "Hours Per Day is required"),
        ({"project_id": "", "title": ""}, "Project ID is required"),
        ({"title": " "}, "Scheduler Title is required"),
        ({"recurring_days": []}, "At least one recurring day must be selected"),
    ],
)
@pytest.mark.asyncio
async def test_create_schedulers_validation_order(fake_api, overrides, message):
    with pytest.raises(InputValidationError, match=message):
        await create_schedulers(fake_api, _schedule_request(**overrides))


@pytest.mark.asyncio
async def test_create_schedulers_creates_one_per_configuration(fake_api):
    fake_api.project_configurations["p-1"] = [
        Configuration(id="c-1", name="One"),
        Configuration(id="c-2", name="Two"),
        Configuration(id="c-3", name="Three"),
    ]
    fake_api.fail["create_schedule"] = {"c-2"}

    result = await create_schedulers(fake_api, _schedule_request())

    assert result.success
    assert [r.configuration_id for r in result.results] == ["c-1", "c-3"]
    assert [r.start_time for r in result.results] == [
        "2024/03/04 08:30:00 -05:00",
        "2024/03/04 08:50:00 -05:00",
    ]
    assert result.results[1].scheduler_id == "sched-2"


@pytest.mark.asyncio
async def test_create_schedulers_without_configurations_fails_step(fake_api):
    fake_api.project_configurations["p-1"] = []
    result = await create_schedulers(fake_api, _schedule_request())
    assert not result.success
    assert result.error == NO_CONFIGURATIONS
    assert fake_api.called("create_schedule") == []


# --- power options ------------------------------------------------------------


def _power_fixture(fake_api):
    configs = [Configuration(id="c-1", name="One"), Configuration(id="c-2", name="Two")]
    fake_api.project_configurations["p-1"] = configs
    fake_api.configurations = {
        "c-1": Configuration(id="c-1", name="One", runstate="running", auto_suspend_description="Suspend after 2h"),
        "c-2": Configuration(id="c-2", name="Two", runstate="stopped"),
    }


@pytest.mark.asyncio
async def test_check_power_status_reports_each_environment(fake_api):
    _power_fixture(fake_api)
    fake_api.fail["get_configuration"] = {"c-2"}

    result = await check_power_status(fake_api, "p-1")

    assert result.success
    assert result.total_environments == 2
    first, second = result.results
    assert (first.status, first.auto_shutdown_status) == ("running", "Suspend after 2h")
    assert not first.auto_shutdown_disabled
    assert (second.status, second.auto_shutdown_status) == ("Unknown", "Error retrieving status")


@pytest.mark.asyncio
async def test_disable_autoshutdown_counts_successes_and_refreshes(fake_api):
    _power_fixture(fake_api)
    fake_api.fail["disable_autoshutdown"] = {"c-2"}

    result = await disable_autoshutdown(fake_api, "p-1")

    assert result.disabled_count == 1
    assert result.message == "Successfully disabled autoshutdown for 1 environment(s) in the project"
    assert result.results[0].auto_shutdown_status == AUTO_SHUTDOWN_DISABLED
    assert result.results[0].auto_shutdown_disabled
    assert len(fake_api.called("get_configuration")) == 2


@pytest.mark.asyncio
async def test_power_status_without_configurations(fake_api):
    fake_api.project_configurations["p-1"] = []
    result = await check_power_status(fake_api, "p-1")
    assert not result.success
    assert result.error == NO_CONFIGURATIONS


@pytest.mark.asyncio
async def test_power_requires_project(fake_api):
    with pytest.raises(InputValidationError, match="Project ID is required"):
        await disable_autoshutdown(fake_api, "")


# --- URLs ---------------------------------------------------------------------


@pytest.mark.asyncio
async def test_lookup_portal_urls_uses_first_publish_set(fake_api):
    fake_api.project_configurations["p-1"] = [
        Configuration(id="c-1", name="One"),
        Configuration(id="c-2", name="Two"),
        Configuration(id="c-3", name="Three"),
    ]
    fake_api.publish_sets = {
        "c-1": [
            PublishSet(id="a", configuration_name="One", desktops_url="https://x/1"),
            PublishSet(id="b", configuration_name="One", desktops_url="https://x/other"),
        ],
        "c-2": [],
    }
    fake_api.fail["get_publish_sets"] = {"c-3"}

    result = await lookup_portal_urls(fake_api, "p-1")

    assert result.success
    assert [(r.configuration_name, r.desktop_url) for r in result.results] == [("One", "https://x/1")]
    assert any("No sharing portals found for configuration c-2" in line for line in result.logs)


def test_portal_url_exports():
    from core.domain.models import PortalUrl

    urls = [PortalUrl(configuration_name="One", desktop_url="https://x/1"),
            PortalUrl(configuration_name="Two, B", desktop_url="https://x/2")]

    assert portal_urls_csv(urls) == 'Configuration Name,Desktop URL\nOne,https://x/1\n"Two, B",https://x/2\n'
    assert portal_urls_text(urls) == "One\nhttps://x/1\n\nTwo, B\nhttps://x/2"
    assert portal_urls_filename("p-9") == "skytap_urls_p-9.csv"


# --- wizard -------------------------------------------------------------------


def test_wizard_navigation_and_completion():
    state = TrainingWizard(project_id="p-1")
    assert state.current_step.id == "copy-environment"
    assert state.progress == 25

    assert not state.can_jump_to(2)
    assert not state.complete("copy-environment", StepResult(success=False, error="boom"))
    assert not state.steps[0].completed

    assert state.complete("copy-environment", StepResult())
    assert state.can_jump_to(1)
    assert not state.can_jump_to(2)
    assert state.jump_to(1)
    assert state.current == 1

    assert state.previous()
    assert not state.previous()
    assert state.jump_to(1)
    assert state.next() and state.next()
    assert state.is_last
    assert not state.next()
    assert not state.can_jump_to(4)
