"""Running-now dashboard: uptime and idle-suspend figures for running environments."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Literal

from core.domain.models import Configuration
from core.interfaces.api import SkytapAPI

RunningSortField = Literal["id", "name", "runstate", "last_run", "suspend_on_idle", "region"]


def parse_skytap_timestamp(value: str | None) -> datetime | None:
    """Parse `2024/01/31 10:00:00 -0800` (vendor format) or ISO-8601."""

    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y/%m/%d %H:%M:%S %z")
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def uptime_hours(last_run: str | None, *, now: datetime | None = None) -> float:
    """Hours since `last_run`, one decimal; 0 when the timestamp is unusable."""

    started = parse_skytap_timestamp(last_run)
    if started is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    return round((now - started).total_seconds() / 3600, 1)


def seconds_to_hours(seconds: int | float | None) -> float:
    return round((seconds or 0) / 3600, 1)


async def fetch_running(api: SkytapAPI) -> list[Configuration]:
    return await api.get_running_configurations()


def _sort_key(field: RunningSortField):
    def key(config: Configuration) -> Any:
        if field == "last_run":
            parsed = parse_skytap_timestamp(config.last_run)
            return parsed.timestamp() if parsed else 0.0
        if field == "suspend_on_idle":
            return config.suspend_on_idle or 0
        value = getattr(config, field)
        return (value or "").lower() if isinstance(value, str) or value is None else value

    return key


def sort_running(
    configurations: Iterable[Configuration],
    field: RunningSortField = "last_run",
    *,
    descending: bool = True,
) -> list[Configuration]:
    return sorted(configurations, key=_sort_key(field), reverse=descending)
