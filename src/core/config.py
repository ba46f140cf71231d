"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) away from the CLI.
- Lets the adapters (HTTP client, exporters) and the services read the same
  values consistently.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.regions import Region


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "skytap-console"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "skytap-console"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "skytap-console"
    return Path.home() / ".config" / "skytap-console"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Write or update variables in the user's global .env file."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# skytap-console user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application configuration.

    Variable names follow the Skytap conventions (`SKYTAP_USER`,
    `SKYTAP_TOKEN`) so an existing `.env` keeps working.
    """

    model_config = SettingsConfigDict(
        env_prefix="SKYTAP_",
        extra="ignore",
        case_sensitive=False,
        # Project .env first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    user: str | None = Field(
        default=None,
        description="Skytap login name used for Basic Auth.",
    )
    token: str | None = Field(
        default=None,
        description="Skytap API security token.",
    )
    base_url: str = Field(
        default="https://cloud.skytap.com",
        min_length=8,
        description="Skytap Cloud base URL (v2 and legacy endpoints).",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout (seconds).",
    )
    user_agent: str = Field(
        default="skytap-console/0.1",
        min_length=1,
        description="User-Agent sent to the Skytap API.",
    )

    # Billing
    customer_id: str | None = Field(
        default=None,
        description="Default customer id for usage reports.",
    )
    ram_rate: float = Field(
        default=0.03861,
        ge=0,
        description="x86 RAM rate (USD per GB-hour).",
    )
    storage_rate: float = Field(
        default=0.00011,
        ge=0,
        description="Storage rate (USD per GB-hour).",
    )
    report_poll_attempts: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Maximum polls before a usage report is considered timed out.",
    )
    report_poll_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between usage report polls.",
    )

    # Vendor rate-limit pacing
    copy_delay_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Pause between environment copies.",
    )
    usage_batch_size: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Label lookups per batch in the usage analysis.",
    )
    usage_batch_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between label lookup batches.",
    )
    running_refresh_seconds: int = Field(
        default=30,
        ge=1,
        description="Auto-refresh interval of the running-now dashboard.",
    )

    # Training workflow
    training_project_id: str | None = Field(
        default=None,
        description="Last validated training project (persisted by the wizard).",
    )

    # Partner environments
    partner_project_id: str | None = Field(
        default=None,
        description="Project that receives partner environments.",
    )
    partner_template_us_central: str | None = Field(default=None)
    partner_template_emea: str | None = Field(default=None)
    partner_template_apac: str | None = Field(default=None)
    partner_environment_prefix: str = Field(
        default="HCL Commerce+ Partner",
        min_length=1,
        description="Prefix of deployed partner environment names.",
    )
    partner_portal_runtime_minutes: int = Field(
        default=1200,
        ge=1,
        description="Runtime limit granted to new partner portals (minutes).",
    )
    partner_ip1_hosts: list[str] = Field(
        default_factory=lambda: ["es-db2.hclcomdev.com", "es-db2-data.hclcomdev.com"],
        description="Host names mapped to the first public IP in the partner details.",
    )
    partner_ip2_hosts: list[str] = Field(
        default_factory=lambda: ["es-db2-live.hclcomdev.com"],
        description="Host names mapped to the second public IP in the partner details.",
    )
    partner_endpoints: dict[str, str] = Field(
        default_factory=dict,
        description="Label -> URL of the storefront endpoints listed in the partner details (JSON).",
    )
    partner_app_username: str | None = Field(default=None)
    partner_app_password: str | None = Field(default=None)

    @property
    def has_credentials(self) -> bool:
        return bool(self.user) and bool(self.token)

    def partner_template_for(self, region: Region) -> str | None:
        templates = {
            Region.US_CENTRAL: self.partner_template_us_central,
            Region.EMEA: self.partner_template_emea,
            Region.APAC: self.partner_template_apac,
        }
        return templates.get(region)
