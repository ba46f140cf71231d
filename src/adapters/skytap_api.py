"""Skytap Cloud REST client.

Responsibility:
- Map every console operation to its Skytap endpoint (v2 and legacy).
- Turn non-2xx responses into `SkytapAPIError` and empty bodies into `{}`.
- Validate list payloads into domain records.

All paths are relative to `AppSettings.base_url`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from adapters.http_client import build_async_client
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
from core.interfaces.api import SkytapAPI

logger = logging.getLogger(__name__)

_MAX_USERS_PER_REQUEST = 100


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


class SkytapClient(SkytapAPI):
    """Async Skytap API client.

    Use as an async context manager so the underlying connection pool is
    closed when the command finishes:

        async with SkytapClient(settings) as api:
            projects = await api.get_projects()
    """

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._client = client or build_async_client(self._settings)

    async def __aenter__(self) -> "SkytapClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> Any:
        logger.debug("%s %s params=%s", method, path, params)
        response = await self._client.request(method, path, params=params, json=payload)

        if not response.is_success:
            raise SkytapAPIError(response.status_code, response.reason_phrase, response.text)

        # DELETE/POST actions frequently answer 204 or an empty 200.
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    # -- Projects ---------------------------------------------------------

    async def get_projects(self, count: int = 200, offset: int = 0) -> list[Project]:
        data = await self._request("GET", "/v2/projects", params={"count": count, "offset": offset})
        return [Project.model_validate(item) for item in _as_list(data)]

    async def get_project(self, project_id: str) -> Project:
        data = await self._request("GET", f"/v2/projects/{project_id}.json")
        return Project.model_validate(data)

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"/projects/{project_id}")

    async def get_project_configurations(self, project_id: str) -> list[Configuration]:
        data = await self._request("GET", f"/v2/projects/{project_id}/configurations.json")
        return [Configuration.model_validate(item) for item in _as_list(data)]

    async def get_project_templates(self, project_id: str) -> list[Template]:
        data = await self._request("GET", f"/v2/projects/{project_id}/templates.json")
        return [Template.model_validate(item) for item in _as_list(data)]

    async def add_environment_to_project(self, configuration_id: str, project_id: str) -> None:
        await self._request("POST", f"/projects/{project_id}/configurations/{configuration_id}.json")

    async def add_configuration_to_project(self, configuration_id: str, project_id: str) -> None:
        await self._request("POST", f"/v2/projects/{project_id}/configurations/{configuration_id}")

    # -- Configurations ---------------------------------------------------

    async def get_configurations(self, count: int = 200, offset: int = 0) -> list[Configuration]:
        data = await self._request("GET", "/v2/configurations", params={"count": count, "offset": offset})
        return [Configuration.model_validate(item) for item in _as_list(data)]

    async def get_configuration(self, configuration_id: str) -> Configuration:
        data = await self._request("GET", f"/v2/configurations/{configuration_id}")
        return Configuration.model_validate(data)

    async def delete_configuration(self, configuration_id: str) -> None:
        await self._request("DELETE", f"/configurations/{configuration_id}.json")

    async def get_running_configurations(self) -> list[Configuration]:
        data = await self._request("GET", "/v2/configurations", params={"query": "status:running"})
        return [Configuration.model_validate(item) for item in _as_list(data)]

    async def copy_configuration(self, configuration_id: str) -> Configuration:
        data = await self._request("POST", "/configurations.json", payload={"configuration_id": configuration_id})
        return Configuration.model_validate(data)

    async def rename_configuration(self, configuration_id: str, name: str) -> dict[str, Any]:
        return await self._request("PUT", f"/configurations/{configuration_id}.json", payload={"name": name})

    async def disable_autoshutdown(self, configuration_id: str) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/v2/configurations/{configuration_id}.json",
            payload={"suspend_type": ""},
        )

    async def deploy_from_template(self, template_id: str, name: str) -> Configuration:
        data = await self._request(
            "POST",
            "/configurations.json",
            payload={"template_id": template_id, "name": name},
        )
        return Configuration.model_validate(data)

    # -- Templates and labels ---------------------------------------------

    async def get_templates(self, count: int = 200, offset: int = 0) -> list[Template]:
        data = await self._request("GET", "/v2/templates", params={"count": count, "offset": offset})
        return [Template.model_validate(item) for item in _as_list(data)]

    async def get_template(self, template_id: str) -> Template:
        data = await self._request("GET", f"/v2/templates/{template_id}")
        return Template.model_validate(data)

    async def get_configuration_labels(self, configuration_id: str) -> list[Label]:
        data = await self._request("GET", f"/v2/configurations/{configuration_id}/labels.json")
        return [Label.model_validate(item) for item in _as_list(data)]

    async def get_template_labels(self, template_id: str) -> list[Label]:
        data = await self._request("GET", f"/v2/templates/{template_id}/labels.json")
        return [Label.model_validate(item) for item in _as_list(data)]

    # -- IP addresses -----------------------------------------------------

    async def get_ips_by_region(self, region: str, count: int = 100, offset: int = 0) -> list[IPAddress]:
        data = await self._request(
            "GET",
            "/v2/ips.json",
            params={"count": count, "offset": offset, "query": f"region:{region}"},
        )
        return [IPAddress.model_validate(item) for item in _as_list(data)]

    async def acquire_public_ip(self, region: str) -> IPAddress:
        data = await self._request("POST", "/v2/ips/acquire.json", payload={"region": region})
        return IPAddress.model_validate(data)

    async def attach_ip(self, configuration_id: str, vm_id: str, interface_id: str, ip: str) -> None:
        await self._request(
            "POST",
            f"/v2/configurations/{configuration_id}/vms/{vm_id}/interfaces/{interface_id}/ips.json",
            payload={"ip": ip},
        )

    async def release_ip(self, ip_id: str) -> None:
        await self._request("POST", f"/v2/ips/{ip_id}/release.json")

    # -- Reports and schedules --------------------------------------------

    async def create_report(
        self, *, resource_type: str, start_date: str, end_date: str, customer_id: str
    ) -> dict[str, Any]:
        payload = {
            "aggregate_by": "month",
            "customer_id": customer_id,
            "end_date": end_date,
            "federated_account_key": None,
            "group_by": "region",
            "label_type": "none",
            "groupings": [],
            "region": "All Regions",
            "start_date": start_date,
            "utc": True,
            "resource_type": resource_type,
        }
        return await self._request("POST", "/reports.json", payload=payload)

    async def get_report(self, report_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/reports/{report_id}.json")

    async def create_schedule(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/v2/schedules.json", payload=payload)

    # -- Publish sets -----------------------------------------------------

    async def get_publish_sets(self, configuration_id: str) -> list[PublishSet]:
        data = await self._request(
            "GET",
            f"/v2/configurations/{configuration_id}/publish_sets.json",
            params={"count": 20, "offset": 0},
        )
        return [PublishSet.model_validate(item) for item in _as_list(data)]

    async def get_publish_set(self, configuration_id: str, publish_set_id: str) -> PublishSet:
        data = await self._request(
            "GET", f"/v2/configurations/{configuration_id}/publish_sets/{publish_set_id}.json"
        )
        return PublishSet.model_validate(data)

    async def create_publish_set(self, configuration_id: str, payload: dict[str, Any]) -> PublishSet:
        data = await self._request(
            "POST", f"/v2/configurations/{configuration_id}/publish_sets.json", payload=payload
        )
        return PublishSet.model_validate(data)

    async def update_publish_set(
        self, configuration_id: str, publish_set_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/v2/configurations/{configuration_id}/publish_sets/{publish_set_id}.json",
            payload=payload,
        )

    # -- Users ------------------------------------------------------------

    async def get_users(self, count: int = 50) -> list[User]:
        """Page through `/v2/users` until `count` users or the end of data."""

        users: list[User] = []
        offset = 0
        batch_size = min(count, _MAX_USERS_PER_REQUEST)

        while len(users) < count:
            data = await self._request("GET", "/v2/users", params={"count": batch_size, "offset": offset})
            batch = _as_list(data)
            if not batch:
                logger.debug("No more users found at offset %s", offset)
                break

            logger.debug("User batch at offset %s returned %s users", offset, len(batch))
            users.extend(User.model_validate(item) for item in batch)
            offset += batch_size

            if len(batch) < batch_size:
                break

        logger.info("Fetched %s users", len(users))
        return users[:count]


def build_skytap_client(settings: AppSettings | None = None) -> SkytapClient:
    """Factory used by the CLI (patched in tests)."""

    return SkytapClient(settings)
