"""Pytest fixtures: an in-memory Skytap API and zero-delay settings."""

from __future__ import annotations

from typing import Any

import pytest

from core.config import AppSettings
from core.domain.models import (
    Configuration,
    IPAddress,
    Label,
    Project,
    PublishSet,
    Template,
    User,
)
from core.errors import SkytapAPIError


class FakeSkytapAPI:
    """In-memory stand-in for `SkytapClient`.

    `fail` maps a method name to the keys (usually ids) that should raise a
    500; `"*"` fails every call of that method.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail: dict[str, set[str]] = {}

        self.projects: list[Project] = []
        self.project_configurations: dict[str, list[Configuration]] = {}
        self.configurations: dict[str, Configuration] = {}
        self.configuration_list: list[Configuration] = []
        self.running: list[Configuration] = []
        self.templates: list[Template] = []
        self.configuration_labels: dict[str, list[Label]] = {}
        self.template_labels: dict[str, list[Label]] = {}
        self.ips: list[IPAddress] = []
        self.acquirable_ips: list[str] = ["10.0.0.1", "10.0.0.2"]
        self.publish_sets: dict[str, list[PublishSet]] = {}
        self.publish_set_details: dict[str, PublishSet] = {}
        self.users: list[User] = []
        self.reports: dict[str, list[Any]] = {}
        self.deployed: Configuration | None = None
        self.created_publish_sets: list[tuple[str, dict[str, Any]]] = []
        self.schedules: list[dict[str, Any]] = []
        self.updated_publish_sets: list[tuple[str, str, dict[str, Any]]] = []

        self._copies = 0
        self.closed = False

    async def __aenter__(self) -> "FakeSkytapAPI":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def _maybe_fail(self, name: str, key: str) -> None:
        keys = self.fail.get(name, set())
        if key in keys or "*" in keys:
            raise SkytapAPIError(500, "Internal Server Error", f"{name} {key}")

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    # Projects
    async def get_projects(self, count: int = 200, offset: int = 0) -> list[Project]:
        self._record("get_projects", count, offset)
        return self.projects[offset : offset + count]

    async def get_project(self, project_id: str) -> Project:
        self._record("get_project", project_id)
        for project in self.projects:
            if project.id == project_id:
                return project
        raise SkytapAPIError(404, "Not Found", "project")

    async def delete_project(self, project_id: str) -> None:
        self._record("delete_project", project_id)
        self._maybe_fail("delete_project", project_id)
        self.projects = [p for p in self.projects if p.id != project_id]

    async def get_project_configurations(self, project_id: str) -> list[Configuration]:
        self._record("get_project_configurations", project_id)
        self._maybe_fail("get_project_configurations", project_id)
        if project_id not in self.project_configurations:
            raise SkytapAPIError(404, "Not Found", "project")
        return list(self.project_configurations[project_id])

    async def get_project_templates(self, project_id: str) -> list[Template]:
        self._record("get_project_templates", project_id)
        return list(self.templates)

    async def add_environment_to_project(self, configuration_id: str, project_id: str) -> None:
        self._record("add_environment_to_project", configuration_id, project_id)
        self._maybe_fail("add_environment_to_project", configuration_id)

    async def add_configuration_to_project(self, configuration_id: str, project_id: str) -> None:
        self._record("add_configuration_to_project", configuration_id, project_id)
        self._maybe_fail("add_configuration_to_project", configuration_id)

    # Configurations
    async def get_configurations(self, count: int = 200, offset: int = 0) -> list[Configuration]:
        self._record("get_configurations", count, offset)
        return self.configuration_list[offset : offset + count]

    async def get_configuration(self, configuration_id: str) -> Configuration:
        self._record("get_configuration", configuration_id)
        self._maybe_fail("get_configuration", configuration_id)
        return self.configurations[configuration_id]

    async def delete_configuration(self, configuration_id: str) -> None:
        self._record("delete_configuration", configuration_id)
        self._maybe_fail("delete_configuration", configuration_id)
        self.configurations.pop(configuration_id, None)

    async def get_running_configurations(self) -> list[Configuration]:
        self._record("get_running_configurations")
        return list(self.running)

    async def copy_configuration(self, configuration_id: str) -> Configuration:
        self._copies += 1
        self._record("copy_configuration", configuration_id)
        self._maybe_fail("copy_configuration", str(self._copies))
        return Configuration(id=f"copy-{self._copies}", name=f"Copy of {configuration_id}")

    async def rename_configuration(self, configuration_id: str, name: str) -> dict[str, Any]:
        self._record("rename_configuration", configuration_id, name)
        self._maybe_fail("rename_configuration", configuration_id)
        return {"id": configuration_id, "name": name}

    async def disable_autoshutdown(self, configuration_id: str) -> dict[str, Any]:
        self._record("disable_autoshutdown", configuration_id)
        self._maybe_fail("disable_autoshutdown", configuration_id)
        config = self.configurations.get(configuration_id)
        if config is not None:
            self.configurations[configuration_id] = config.model_copy(update={"auto_suspend_description": None})
        return {}

    async def deploy_from_template(self, template_id: str, name: str) -> Configuration:
        self._record("deploy_from_template", template_id, name)
        self._maybe_fail("deploy_from_template", template_id)
        assert self.deployed is not None
        return self.deployed.model_copy(update={"name": name})

    # Templates and labels
    async def get_templates(self, count: int = 200, offset: int = 0) -> list[Template]:
        self._record("get_templates", count, offset)
        return self.templates[offset : offset + count]

    async def get_template(self, template_id: str) -> Template:
        self._record("get_template", template_id)
        for template in self.templates:
            if template.id == template_id:
                return template
        raise SkytapAPIError(404, "Not Found", "template")

    async def get_configuration_labels(self, configuration_id: str) -> list[Label]:
        self._record("get_configuration_labels", configuration_id)
        self._maybe_fail("get_configuration_labels", configuration_id)
        return self.configuration_labels.get(configuration_id, [])

    async def get_template_labels(self, template_id: str) -> list[Label]:
        self._record("get_template_labels", template_id)
        self._maybe_fail("get_template_labels", template_id)
        return self.template_labels.get(template_id, [])

    # IP addresses
    async def get_ips_by_region(self, region: str, count: int = 100, offset: int = 0) -> list[IPAddress]:
        self._record("get_ips_by_region", region, count, offset)
        return [ip for ip in self.ips if ip.region in (None, region)][:count]

    async def acquire_public_ip(self, region: str) -> IPAddress:
        self._record("acquire_public_ip", region)
        self._maybe_fail("acquire_public_ip", region)
        address = self.acquirable_ips.pop(0)
        return IPAddress(id=f"ip-{address}", address=address, region=region)

    async def attach_ip(self, configuration_id: str, vm_id: str, interface_id: str, ip: str) -> None:
        self._record("attach_ip", configuration_id, vm_id, interface_id, ip)

    async def release_ip(self, ip_id: str) -> None:
        self._record("release_ip", ip_id)
        self._maybe_fail("release_ip", ip_id)

    # Reports and schedules
    async def create_report(
        self, *, resource_type: str, start_date: str, end_date: str, customer_id: str
    ) -> dict[str, Any]:
        self._record("create_report", resource_type, start_date, end_date, customer_id)
        return {"id": f"report-{resource_type}"}

    async def get_report(self, report_id: str) -> dict[str, Any]:
        self._record("get_report", report_id)
        queue = self.reports[report_id]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def create_schedule(self, payload: dict[str, Any]) -> dict[str, Any]:
        self._record("create_schedule", payload)
        self._maybe_fail("create_schedule", str(payload.get("configuration_id")))
        self.schedules.append(payload)
        return {"id": f"sched-{len(self.schedules)}"}

    # Publish sets
    async def get_publish_sets(self, configuration_id: str) -> list[PublishSet]:
        self._record("get_publish_sets", configuration_id)
        self._maybe_fail("get_publish_sets", configuration_id)
        return self.publish_sets.get(configuration_id, [])

    async def get_publish_set(self, configuration_id: str, publish_set_id: str) -> PublishSet:
        self._record("get_publish_set", configuration_id, publish_set_id)
        return self.publish_set_details[publish_set_id]

    async def create_publish_set(self, configuration_id: str, payload: dict[str, Any]) -> PublishSet:
        self._record("create_publish_set", configuration_id, payload)
        self._maybe_fail("create_publish_set", configuration_id)
        self.created_publish_sets.append((configuration_id, payload))
        return PublishSet(id="ps-1", name=payload["name"])

    async def update_publish_set(
        self, configuration_id: str, publish_set_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("update_publish_set", configuration_id, publish_set_id, payload)
        self.updated_publish_sets.append((configuration_id, publish_set_id, payload))
        return {"id": publish_set_id, **payload}

    # Users
    async def get_users(self, count: int = 50) -> list[User]:
        self._record("get_users", count)
        return self.users[:count]


@pytest.fixture
def fake_api() -> FakeSkytapAPI:
    return FakeSkytapAPI()


@pytest.fixture
def settings() -> AppSettings:
    """Settings isolated from `.env` files, with every pause disabled."""

    return AppSettings(
        _env_file=None,
        user="trainer",
        token="secret-token",
        customer_id="12345",
        copy_delay_seconds=0,
        report_poll_interval_seconds=0,
        usage_batch_delay_seconds=0,
        training_project_id="p-1",
        partner_project_id="partner-proj",
        partner_template_us_central="tpl-us",
        partner_template_emea="tpl-emea",
    )
