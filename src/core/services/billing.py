"""Billing report generation.

Flow:
- create the x86 RAM (`svms`) and storage (`storage_size`) usage reports
  concurrently,
- poll both until ready (bounded attempts, fixed pause),
- sum the "All Regions" grouping and price it with the configured rates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from core.domain.models import BillingRates, BillingReport, MonthlyBreakdown
from core.errors import InputValidationError, ReportTimeoutError
from core.interfaces.api import SkytapAPI
from core.services.hooks import STEP_ERRORS

logger = logging.getLogger(__name__)

RAM_REPORT = "svms"
STORAGE_REPORT = "storage_size"

# Storage usage is reported in MB-hours; billed per GB-hour.
_MB_PER_TB = 1048576


@dataclass
class BillingRequest:
    start_date: date | None
    end_date: date | None
    customer_id: str
    rates: BillingRates = field(default_factory=BillingRates)
    poll_attempts: int = 30
    poll_interval_seconds: float = 1.0


def validate_billing_request(request: BillingRequest) -> tuple[date, date]:
    """Check the request and return its `(start_date, end_date)`."""

    if request.start_date is None or request.end_date is None:
        raise InputValidationError("Please select both start and end dates")
    if not request.customer_id.strip():
        raise InputValidationError("Please enter a customer ID")
    if request.start_date >= request.end_date:
        raise InputValidationError("End date must be after start date")
    return request.start_date, request.end_date


def format_api_date(value: date) -> str:
    return f"{value:%m/%d/%Y}"


def format_period_label(start: date, end: date) -> str:
    """`M/D/YYYY - M/D/YYYY` without zero padding."""

    return f"{start.month}/{start.day}/{start.year} - {end.month}/{end.day}/{end.year}"


def all_regions_periods(report: dict[str, Any]) -> list[dict[str, Any]]:
    groupings = (report.get("results") or {}).get("groupings") or []
    for grouping in groupings:
        if grouping.get("key") == "__all__" or grouping.get("name") == "All Regions":
            return [p for p in grouping.get("periods") or [] if isinstance(p, dict)]
    return []


def _breakdown(periods: list[dict[str, Any]], *, storage: bool) -> list[MonthlyBreakdown]:
    rows: list[MonthlyBreakdown] = []
    for period in periods:
        usage = float(period.get("total_usage") or 0)
        hours = usage / _MB_PER_TB * 1024 if storage else usage
        rows.append(
            MonthlyBreakdown(
                period=period.get("period") or "For Billing Period",
                start_date=period.get("start_date") or "",
                end_date=period.get("end_date") or "",
                x86_ram_hours=0 if storage else hours,
                storage_hours=hours if storage else 0,
            )
        )
    return rows


async def wait_for_reports(
    api: SkytapAPI,
    report_ids: dict[str, str],
    *,
    attempts: int = 30,
    interval_seconds: float = 1.0,
) -> dict[str, dict[str, Any]]:
    """Poll every report until `ready`; raise `ReportTimeoutError` otherwise."""

    ready: dict[str, dict[str, Any]] = {}
    for attempt in range(attempts):
        await asyncio.sleep(interval_seconds)
        for name, report_id in report_ids.items():
            if name in ready:
                continue
            try:
                report = await api.get_report(report_id)
            except STEP_ERRORS as exc:
                logger.debug("Poll %s of report %s failed: %s", attempt + 1, report_id, exc)
                continue
            if report.get("ready"):
                logger.info("Report %s (%s) ready after %s poll(s)", report_id, name, attempt + 1)
                ready[name] = report
        if len(ready) == len(report_ids):
            return ready
    raise ReportTimeoutError()


def compute_billing(
    ram_report: dict[str, Any],
    storage_report: dict[str, Any],
    *,
    start_date: date,
    end_date: date,
    customer_id: str,
    rates: BillingRates,
) -> BillingReport:
    ram_rows = _breakdown(all_regions_periods(ram_report), storage=False)
    storage_rows = _breakdown(all_regions_periods(storage_report), storage=True)

    ram_hours = sum(row.x86_ram_hours for row in ram_rows)
    storage_hours = sum(row.storage_hours for row in storage_rows)
    ram_cost = ram_hours * rates.ram_rate
    storage_cost = storage_hours * rates.storage_rate

    # Months are aligned by position on the RAM report.
    monthly: list[MonthlyBreakdown] = []
    for index, row in enumerate(ram_rows):
        month_storage = storage_rows[index].storage_hours if index < len(storage_rows) else 0
        month_ram_cost = row.x86_ram_hours * rates.ram_rate
        month_storage_cost = month_storage * rates.storage_rate
        monthly.append(
            row.model_copy(
                update={
                    "storage_hours": month_storage,
                    "x86_ram_cost": month_ram_cost,
                    "storage_cost": month_storage_cost,
                    "total_cost": month_ram_cost + month_storage_cost,
                }
            )
        )

    return BillingReport(
        period=format_period_label(start_date, end_date),
        customer_id=customer_id,
        x86_ram_hours=ram_hours,
        x86_ram_rate=rates.ram_rate,
        x86_ram_cost=ram_cost,
        storage_hours=storage_hours,
        storage_rate=rates.storage_rate,
        storage_cost=storage_cost,
        total_cost=ram_cost + storage_cost,
        monthly_breakdown=monthly,
    )


async def generate_billing_report(api: SkytapAPI, request: BillingRequest) -> BillingReport:
    start_date, end_date = validate_billing_request(request)

    customer_id = request.customer_id.strip()
    start = format_api_date(start_date)
    # The vendor treats the end date as exclusive.
    end = format_api_date(end_date + timedelta(days=1))
    logger.info("Creating usage reports for customer %s (%s - %s)", customer_id, start, end)

    ram_created, storage_created = await asyncio.gather(
        api.create_report(resource_type=RAM_REPORT, start_date=start, end_date=end, customer_id=customer_id),
        api.create_report(resource_type=STORAGE_REPORT, start_date=start, end_date=end, customer_id=customer_id),
    )

    reports = await wait_for_reports(
        api,
        {RAM_REPORT: str(ram_created.get("id", "")), STORAGE_REPORT: str(storage_created.get("id", ""))},
        attempts=request.poll_attempts,
        interval_seconds=request.poll_interval_seconds,
    )

    return compute_billing(
        reports[RAM_REPORT],
        reports[STORAGE_REPORT],
        start_date=start_date,
        end_date=end_date,
        customer_id=customer_id,
        rates=request.rates,
    )
