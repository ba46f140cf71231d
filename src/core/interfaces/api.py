"""Skytap API contract.

Why Protocol:
- Defines a structural contract (duck typing) without rigid inheritance.
- The services only see this surface, so the httpx client and the in-memory
  test fake are interchangeable.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from core.domain.models import (
    Configuration,
    IPAddress,
    Label,
    Project,
    PublishSet,
    Template,
    User,
)


@runtime_checkable
class SkytapAPI(Protocol):
    """Minimal surface used by the console workflows.

    Design rules:
    - Every call is asynchronous because it performs HTTP I/O.
    - List endpoints return validated domain records; endpoints whose payload
      the console only forwards (reports, schedules, portals) return dicts.
    """

    # Projects
    async def get_projects(self, count: int = 200, offset: int = 0) -> list[Project]: ...

    async def get_project(self, project_id: str) -> Project: ...

    async def delete_project(self, project_id: str) -> None: ...

    async def get_project_configurations(self, project_id: str) -> list[Configuration]: ...

    async def get_project_templates(self, project_id: str) -> list[Template]: ...

    async def add_environment_to_project(self, configuration_id: str, project_id: str) -> None: ...

    async def add_configuration_to_project(self, configuration_id: str, project_id: str) -> None: ...

    # Configurations
    async def get_configurations(self, count: int = 200, offset: int = 0) -> list[Configuration]: ...

    async def get_configuration(self, configuration_id: str) -> Configuration: ...

    async def delete_configuration(self, configuration_id: str) -> None: ...

    async def get_running_configurations(self) -> list[Configuration]: ...

    async def copy_configuration(self, configuration_id: str) -> Configuration: ...

    async def rename_configuration(self, configuration_id: str, name: str) -> dict[str, Any]: ...

    async def disable_autoshutdown(self, configuration_id: str) -> dict[str, Any]: ...

    async def deploy_from_template(self, template_id: str, name: str) -> Configuration: ...

    # Templates and labels
    async def get_templates(self, count: int = 200, offset: int = 0) -> list[Template]: ...

    async def get_template(self, template_id: str) -> Template: ...

    async def get_configuration_labels(self, configuration_id: str) -> list[Label]: ...

    async def get_template_labels(self, template_id: str) -> list[Label]: ...

    # IP addresses
    async def get_ips_by_region(self, region: str, count: int = 100, offset: int = 0) -> list[IPAddress]: ...

    async def acquire_public_ip(self, region: str) -> IPAddress: ...

    async def attach_ip(self, configuration_id: str, vm_id: str, interface_id: str, ip: str) -> None: ...

    async def release_ip(self, ip_id: str) -> None: ...

    # Reports and schedules
    async def create_report(
        self, *, resource_type: str, start_date: str, end_date: str, customer_id: str
    ) -> dict[str, Any]: ...

    async def get_report(self, report_id: str) -> dict[str, Any]: ...

    async def create_schedule(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    # Publish sets
    async def get_publish_sets(self, configuration_id: str) -> list[PublishSet]: ...

    async def get_publish_set(self, configuration_id: str, publish_set_id: str) -> PublishSet: ...

    async def create_publish_set(self, configuration_id: str, payload: dict[str, Any]) -> PublishSet: ...

    async def update_publish_set(
        self, configuration_id: str, publish_set_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    # Users
    async def get_users(self, count: int = 50) -> list[User]: ...
