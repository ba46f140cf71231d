"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Vendor JSON arrives loosely typed (ids as numbers or strings, optional
  keys); validating it at the edge keeps the services free of defensive code.
- Results serialize straight to JSON/HTML exports.

Note:
- These models describe *what* the data is, not *how* it is fetched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


class SkytapRecord(BaseModel):
    """Base for records mirroring Skytap API responses."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # The API sends `null` for unset counters and names; fall back to the field defaults.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Project(SkytapRecord):
    id: str
    name: str = ""
    configuration_count: int = 0
    template_count: int = 0
    url: str | None = None
    summary: str | None = None
    created_at: str | None = None
    owner_name: str | None = None
    user_count: int | None = None
    asset_count: int | None = None


class Hardware(SkytapRecord):
    cpus: int | None = None
    ram: int | None = None
    storage: int | None = None
    guest_os: str | None = Field(default=None, alias="guestOS")


class NetworkInterface(SkytapRecord):
    id: str


class VM(SkytapRecord):
    id: str
    name: str = ""
    runstate: str | None = None
    hardware: Hardware | None = None
    interfaces: list[NetworkInterface] = Field(default_factory=list)


class Configuration(SkytapRecord):
    """A Skytap environment (running or stopped VM set)."""

    id: str
    name: str = ""
    description: str | None = None
    runstate: str = "unknown"
    vm_count: int = 0
    storage: float = Field(default=0, description="Provisioned storage in MB.")
    svms: float = Field(default=0, description="Metered RAM units.")
    region: str | None = None
    created_at: str | None = None
    last_run: str | None = None
    suspend_on_idle: int | None = Field(default=None, description="Idle suspend timeout in seconds.")
    owner_name: str | None = None
    auto_suspend_description: str | None = None
    vms: list[VM] = Field(default_factory=list)


class Template(SkytapRecord):
    id: str
    name: str = ""
    description: str | None = None
    vm_count: int = 0
    storage: float = 0
    region: str | None = None
    created_at: str | None = None
    owner_name: str | None = None
    vms: list[VM] = Field(default_factory=list)


class Label(SkytapRecord):
    id: str | None = None
    text: str = ""
    type: str = ""


class Nic(SkytapRecord):
    id: str
    deployed: bool = False


class IPAddress(SkytapRecord):
    id: str
    address: str = ""
    region: str | None = None
    nic_count: int = 0
    connect_type: str | None = None
    dns_name: str | None = None
    nics: list[Nic] = Field(default_factory=list)


class User(SkytapRecord):
    id: str
    url: str | None = None
    first_name: str = ""
    last_name: str = ""
    login_name: str = ""
    email: str = ""
    title: str | None = None
    deleted: bool = False
    default_region: str | None = None
    can_add_resources: bool = False
    activated: bool = False
    last_login: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class PublishSet(SkytapRecord):
    """A sharing portal attached to a configuration."""

    id: str
    name: str = ""
    configuration_name: str | None = None
    desktops_url: str | None = None
    runtime_left_in_seconds: int | None = None
    runtime_limit: int | None = None
    publish_set_type: str | None = None
    url: str | None = None
    auto_suspend_description: str | None = None
    created_at: str | None = None
    expiration_date: str | None = None


# --- Results -----------------------------------------------------------------


class FailedItem(BaseModel):
    id: str
    error: str


class BatchResult(BaseModel):
    """Outcome of a sequential bulk operation (delete/release)."""

    success: list[str] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)


class StepResult(BaseModel):
    """Common envelope of a wizard step run."""

    success: bool = True
    error: str | None = None
    logs: list[str] = Field(default_factory=list)


class CopyResult(BaseModel):
    copy_id: str
    name: str
    project_id: str


class CopyStepResult(StepResult):
    results: list[CopyResult] = Field(default_factory=list)

    @property
    def total_copies(self) -> int:
        return len(self.results)


class SchedulerResult(BaseModel):
    configuration_id: str
    configuration_name: str
    scheduler_id: str
    title: str
    start_time: str
    end_time: str


class SchedulerStepResult(StepResult):
    results: list[SchedulerResult] = Field(default_factory=list)


class PowerStatus(BaseModel):
    id: str
    name: str
    status: str
    auto_shutdown_status: str

    @property
    def auto_shutdown_disabled(self) -> bool:
        return self.auto_shutdown_status == "Auto-Shutdown is Disabled"


class PowerStepResult(StepResult):
    results: list[PowerStatus] = Field(default_factory=list)
    disabled_count: int | None = None
    total_environments: int = 0
    message: str | None = None


class PortalUrl(BaseModel):
    configuration_name: str
    desktop_url: str


class UrlStepResult(StepResult):
    results: list[PortalUrl] = Field(default_factory=list)


class DeploymentLog(BaseModel):
    timestamp: str
    message: str
    type: Literal["info", "success", "error", "warning"] = "info"


class DeploymentResult(BaseModel):
    project_id: str
    template_id: str
    environment_id: str
    environment_name: str
    environment_state: str | None = None
    ip1: str | None = None
    ip2: str | None = None
    portal_id: str
    portal_url: str = ""
    granted_hours: int | None = None


class DeploymentRun(BaseModel):
    """Outcome of one partner deployment attempt, including its log."""

    partner_name: str
    success: bool = False
    error: str | None = None
    result: DeploymentResult | None = None
    logs: list[DeploymentLog] = Field(default_factory=list)


class ConfigurationPortals(BaseModel):
    configuration_id: str
    configuration_name: str
    configuration_runstate: str
    publish_sets: list[PublishSet] = Field(default_factory=list)
    error: str | None = None


class PortalEntry(BaseModel):
    """A publish set flattened with its configuration context."""

    publish_set: PublishSet
    configuration_id: str
    configuration_runstate: str


class SharingPortals(BaseModel):
    project_id: str
    total_configurations: int
    configurations: list[ConfigurationPortals] = Field(default_factory=list)


class BillingRates(BaseModel):
    ram_rate: float = Field(default=0.03861, ge=0)
    storage_rate: float = Field(default=0.00011, ge=0)


class MonthlyBreakdown(BaseModel):
    period: str
    start_date: str = ""
    end_date: str = ""
    x86_ram_hours: float = 0
    storage_hours: float = 0
    x86_ram_cost: float = 0
    storage_cost: float = 0
    total_cost: float = 0


class BillingReport(BaseModel):
    period: str
    customer_id: str
    x86_ram_hours: float
    x86_ram_rate: float
    x86_ram_cost: float
    storage_hours: float
    storage_rate: float
    storage_cost: float
    total_cost: float
    monthly_breakdown: list[MonthlyBreakdown] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class InstanceCostResult(BaseModel):
    number_of_days: int
    ram_cost_per_instance: float
    storage_cost_per_instance: float
    total_ram_cost: float
    total_storage_cost: float
    total_cost: float
    ram_hours_per_instance: float
    storage_hours_per_instance: float
    input_ram_gb: float
    input_storage_gb: float
    input_hours_per_day: float


class UsageCategory(BaseModel):
    name: str
    count: int
    metered_ram: float = 0
    storage: float = 0


class UsageSummary(BaseModel):
    """Usage grouped by billing category label."""

    analyzed: int
    categories: list[UsageCategory] = Field(default_factory=list)
    unlabeled: list[str] = Field(default_factory=list)
    total_ram: float = 0
    total_storage: float = 0
