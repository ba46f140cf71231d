"""Partner environments: deployment from a regional template and portal management.

Why a single module:
- Deploy and portal management share the publish-set vocabulary (runtime
  limits, desktop URLs) and the partner settings.

Deployment is all-or-nothing: the first failing call aborts the run and is
recorded as an `error` entry in the deployment log.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Literal

from core.config import AppSettings
from core.domain.models import (
    ConfigurationPortals,
    DeploymentLog,
    DeploymentResult,
    DeploymentRun,
    PortalEntry,
    SharingPortals,
)
from core.domain.regions import Region
from core.errors import InputValidationError
from core.interfaces.api import SkytapAPI
from core.services.hooks import STEP_ERRORS, WorkflowHooks

logger = logging.getLogger(__name__)

LogType = Literal["info", "success", "error", "warning"]

_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class DeploymentLogger:
    """Timestamped, typed deployment log mirrored to logging and UI hooks."""

    hooks: WorkflowHooks = field(default_factory=WorkflowHooks)
    entries: list[DeploymentLog] = field(default_factory=list)

    def __call__(self, message: str, type: LogType = "info") -> None:
        entry = DeploymentLog(timestamp=datetime.now().strftime("%H:%M:%S"), message=message, type=type)
        self.entries.append(entry)
        logger.log(_LEVELS[type], message)
        if self.hooks.log:
            self.hooks.log(message)

    def progress(self, percent: float) -> None:
        if self.hooks.progress:
            self.hooks.progress(percent)


@dataclass
class DeploymentRequest:
    partner_name: str
    region: Region
    project_id: str
    template_id: str | None
    environment_prefix: str = "HCL Commerce+ Partner"
    portal_runtime_minutes: int = 1200
    base_url: str = "https://cloud.skytap.com"

    @classmethod
    def from_settings(cls, settings: AppSettings, partner_name: str, region: Region) -> "DeploymentRequest":
        return cls(
            partner_name=partner_name,
            region=region,
            project_id=settings.partner_project_id or "",
            template_id=settings.partner_template_for(region),
            environment_prefix=settings.partner_environment_prefix,
            portal_runtime_minutes=settings.partner_portal_runtime_minutes,
            base_url=settings.base_url,
        )

    @property
    def environment_name(self) -> str:
        return f"{self.environment_prefix} - {self.partner_name}"


def validate_deployment_request(request: DeploymentRequest) -> None:
    if not request.partner_name.strip():
        raise InputValidationError("Partner name is required")
    if not request.project_id.strip():
        raise InputValidationError("Project ID is required")


def build_portal_payload(
    partner_name: str,
    configuration_id: str,
    vm_ids: Iterable[str],
    *,
    base_url: str = "https://cloud.skytap.com",
    runtime_minutes: int = 1200,
) -> dict[str, Any]:
    root = base_url.rstrip("/")
    return {
        "name": f"Partner Portal - {partner_name}",
        "runtime_limit": runtime_minutes,
        "publish_set_type": "single_url",
        "vms": [
            {"vm_ref": f"{root}/v2/configurations/{configuration_id}/vms/{vm_id}", "access": "run_and_use"}
            for vm_id in vm_ids
        ],
    }


async def _deploy(api: SkytapAPI, request: DeploymentRequest, log: DeploymentLogger) -> DeploymentResult:
    if not request.template_id:
        raise InputValidationError(f"No template ID found for region: {request.region.value}")

    log(f"Using Project ID: {request.project_id}")
    log(f"Using Template ID: {request.template_id}")

    log("Creating Environment...")
    environment = await api.deploy_from_template(request.template_id, request.environment_name)
    log("Environment Deployed Successfully", "success")
    log(f"Environment ID: {environment.id}", "success")
    log(f"Environment Name: {environment.name}", "success")
    log(f"Environment State: {environment.runstate}", "success")
    log.progress(20)

    log("Adding environment to Partner Project...")
    await api.add_configuration_to_project(environment.id, request.project_id)
    log("Environment added to project successfully", "success")
    log.progress(35)

    log("Acquiring First IP Address...")
    ip1 = (await api.acquire_public_ip(request.region.value)).address
    log(f"IP1 Acquired: {ip1}", "success")
    log("Acquiring Second IP Address...")
    ip2 = (await api.acquire_public_ip(request.region.value)).address
    log(f"IP2 Acquired: {ip2}", "success")
    log.progress(55)

    vms = environment.vms
    if len(vms) >= 2:
        for label, vm, ip in (("1", vms[0], ip1), ("2", vms[1], ip2)):
            if not vm.interfaces:
                log(f"VM{label} has no network interface; skipping IP{label}", "warning")
                continue
            log(f"Attaching IP{label} to VM{label}...")
            await api.attach_ip(environment.id, vm.id, vm.interfaces[0].id, ip)
            log(f"IP{label} attached to VM{label} successfully", "success")
    else:
        log(f"Environment has {len(vms)} VM(s); skipping IP attachment", "warning")
    log.progress(80)

    log(f"Creating sharing portal for configuration {environment.id}...")
    payload = build_portal_payload(
        request.partner_name,
        environment.id,
        [vm.id for vm in vms],
        base_url=request.base_url,
        runtime_minutes=request.portal_runtime_minutes,
    )
    portal = await api.create_publish_set(environment.id, payload)
    log(f"Portal created successfully with ID: {portal.id}", "success")
    log.progress(90)

    log(f"Fetching Sharing Portal Details: (id: {portal.id})")
    details = await api.get_publish_set(environment.id, portal.id)
    if details.desktops_url:
        log(f"Portal Desktop URL: {details.desktops_url}", "success")
    log.progress(100)

    return DeploymentResult(
        project_id=request.project_id,
        template_id=request.template_id,
        environment_id=environment.id,
        environment_name=environment.name,
        environment_state=environment.runstate,
        ip1=ip1 or None,
        ip2=ip2 or None,
        portal_id=portal.id,
        portal_url=details.desktops_url or "",
        granted_hours=request.portal_runtime_minutes // 60,
    )


async def deploy_partner_environment(
    api: SkytapAPI,
    request: DeploymentRequest,
    hooks: WorkflowHooks | None = None,
) -> DeploymentRun:
    validate_deployment_request(request)
    log = DeploymentLogger(hooks or WorkflowHooks())
    run = DeploymentRun(partner_name=request.partner_name)

    try:
        run.result = await _deploy(api, request, log)
        run.success = True
    except STEP_ERRORS as exc:
        log(f"Deployment failed: {exc}", "error")
        run.error = str(exc)

    run.logs = log.entries
    return run


def format_deployment_log(entries: Iterable[DeploymentLog]) -> str:
    return "\n".join(f"[{entry.timestamp}] {entry.message}" for entry in entries)


def deployment_log_filename(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"deployment-log-{now:%Y-%m-%dT%H-%M-%S}.txt"


# --- Partner details (handover message) --------------------------------------


@dataclass
class PartnerDetails:
    """Everything the partner handover message shows."""

    partner_name: str
    result: DeploymentResult
    ip1_hosts: list[str] = field(default_factory=list)
    ip2_hosts: list[str] = field(default_factory=list)
    endpoints: dict[str, str] = field(default_factory=dict)
    username: str | None = None
    password: str | None = None

    @classmethod
    def from_settings(cls, settings: AppSettings, partner_name: str, result: DeploymentResult) -> "PartnerDetails":
        return cls(
            partner_name=partner_name,
            result=result,
            ip1_hosts=list(settings.partner_ip1_hosts),
            ip2_hosts=list(settings.partner_ip2_hosts),
            endpoints=dict(settings.partner_endpoints),
            username=settings.partner_app_username,
            password=settings.partner_app_password,
        )

    @property
    def host_entries(self) -> list[tuple[str, str]]:
        entries: list[tuple[str, str]] = []
        if self.result.ip1:
            entries.extend((self.result.ip1, host) for host in self.ip1_hosts)
        if self.result.ip2:
            entries.extend((self.result.ip2, host) for host in self.ip2_hosts)
        return entries

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)


def _section(lines: list[str], title: str) -> None:
    lines.append(title)
    lines.append("=" * 60)


def build_details_text(details: PartnerDetails) -> str:
    result = details.result
    lines = [
        f"Dear {details.partner_name},",
        "",
        "Below are the specific details for your HCL Commerce+ Partner Environment:",
        "",
    ]

    _section(lines, "CONFIGURATION DETAILS")
    lines.append(f"Configuration Name: {result.environment_name or 'N/A'}")
    lines.append(f"Configuration ID: {result.environment_id or 'N/A'}")
    lines.append("")

    if details.host_entries:
        _section(lines, "HOSTS FILE ENTRIES")
        lines.extend(f"{ip}    {host}" for ip, host in details.host_entries)
        lines.append("")

    if result.portal_url or result.granted_hours is not None:
        _section(lines, "PORTAL INFORMATION")
        if result.portal_url:
            lines.append(f"Your Portal URL: {result.portal_url}")
        if result.granted_hours is not None:
            lines.append(f"Granted Runtime: {result.granted_hours} hours")
        lines.append("")

    if details.endpoints:
        _section(lines, "HCL COMMERCE+ ENDPOINTS")
        width = max(len(label) for label in details.endpoints) + 2
        lines.extend(f"{label + ':':<{width}}{url}" for label, url in details.endpoints.items())
        lines.append("")

    if details.has_credentials:
        _section(lines, "CREDENTIALS")
        lines.append(f"Username: {details.username}")
        lines.append(f"Password: {details.password}")
        lines.append("")

    lines.append("Best regards,")
    lines.append("HCL Commerce+ Team")
    return "\n".join(lines)


# --- Sharing portals ---------------------------------------------------------


async def list_sharing_portals(api: SkytapAPI, project_id: str) -> SharingPortals:
    """Publish sets of every configuration in a project.

    A configuration whose publish sets cannot be listed keeps its error
    instead of failing the whole lookup.
    """

    project_id = project_id.strip()
    if not project_id:
        raise InputValidationError("Please enter a Project ID")

    configurations = await api.get_project_configurations(project_id)
    entries: list[ConfigurationPortals] = []
    for config in configurations:
        try:
            publish_sets = await api.get_publish_sets(config.id)
            entries.append(
                ConfigurationPortals(
                    configuration_id=config.id,
                    configuration_name=config.name,
                    configuration_runstate=config.runstate,
                    publish_sets=publish_sets,
                )
            )
        except STEP_ERRORS as exc:
            logger.warning("Failed to load publish sets for configuration %s: %s", config.id, exc)
            entries.append(
                ConfigurationPortals(
                    configuration_id=config.id,
                    configuration_name=config.name,
                    configuration_runstate=config.runstate,
                    error=str(exc) or "Failed to load publish sets",
                )
            )

    total = sum(len(e.publish_sets) for e in entries)
    logger.info("Found %s sharing portals across %s configurations", total, len(configurations))
    return SharingPortals(project_id=project_id, total_configurations=len(configurations), configurations=entries)


def flatten_portals(portals: SharingPortals) -> list[PortalEntry]:
    return [
        PortalEntry(
            publish_set=publish_set,
            configuration_id=entry.configuration_id,
            configuration_runstate=entry.configuration_runstate,
        )
        for entry in portals.configurations
        if not entry.error
        for publish_set in entry.publish_sets
    ]


def filter_portals(entries: Iterable[PortalEntry], query: str = "") -> list[PortalEntry]:
    needle = query.strip().lower()
    return [e for e in entries if needle in e.publish_set.name.lower()]


def format_runtime(seconds: int | float | None) -> str:
    seconds = int(seconds or 0)
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def runtime_update_payload(hours: float | None) -> dict[str, int]:
    if hours is None or math.isnan(hours) or hours <= 0:
        raise InputValidationError("Please enter a valid number of hours")
    # runtime_limit is expressed in minutes.
    return {
        "runtime_limit": math.floor(hours * 60),
        "runtime_left_in_seconds": math.floor(hours * 3600),
    }


async def update_portal_runtime(
    api: SkytapAPI,
    configuration_id: str,
    publish_set_id: str,
    hours: float | None,
) -> dict[str, Any]:
    payload = runtime_update_payload(hours)
    response = await api.update_publish_set(configuration_id, publish_set_id, payload)
    logger.info("Portal %s runtime updated to %s hours", publish_set_id, hours)
    return response
