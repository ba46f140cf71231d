"""Cost estimates from RAM/storage sizing and the billing rates."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Literal

from core.domain.models import BillingRates, InstanceCostResult
from core.errors import InputValidationError

StorageUnit = Literal["GB", "TB"]


@dataclass
class InstanceCostRequest:
    start_date: date | None = None
    end_date: date | None = None
    ram_per_instance: float | None = None
    storage_per_instance: float | None = None
    number_of_instances: int | None = None
    running_hours_per_day: float | None = None


def calculate_instance_cost(
    request: InstanceCostRequest,
    rates: BillingRates | None = None,
) -> InstanceCostResult:
    """Estimate the cost of N identical instances over a date range.

    RAM is billed only for running hours; storage is billed around the
    clock. Both dates are inclusive, so a same-day range is one day.
    """

    rates = rates or BillingRates()
    missing = [f.name for f in fields(request) if getattr(request, f.name) is None]
    if missing:
        raise InputValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    if request.start_date > request.end_date:
        raise InputValidationError("End date must be after start date")

    hours_per_day = float(request.running_hours_per_day or 0)
    if hours_per_day < 0 or hours_per_day > 24:
        raise InputValidationError("Running hours per day must be between 0 and 24")

    days = (request.end_date - request.start_date).days + 1
    ram_gb = float(request.ram_per_instance or 0)
    storage_gb = float(request.storage_per_instance or 0)
    instances = int(request.number_of_instances or 0)

    ram_hours = ram_gb * hours_per_day * days
    storage_hours = storage_gb * 24 * days
    ram_cost = ram_hours * rates.ram_rate
    storage_cost = storage_hours * rates.storage_rate

    return InstanceCostResult(
        number_of_days=days,
        ram_cost_per_instance=ram_cost,
        storage_cost_per_instance=storage_cost,
        total_ram_cost=ram_cost * instances,
        total_storage_cost=storage_cost * instances,
        total_cost=(ram_cost + storage_cost) * instances,
        ram_hours_per_instance=ram_hours,
        storage_hours_per_instance=storage_hours,
        input_ram_gb=ram_gb,
        input_storage_gb=storage_gb,
        input_hours_per_day=hours_per_day,
    )


def calculate_storage_cost(
    amount: float | None,
    unit: StorageUnit = "GB",
    rates: BillingRates | None = None,
) -> float:
    """Daily cost of keeping `amount` of storage."""

    rates = rates or BillingRates()
    if amount is None:
        raise InputValidationError("Please enter storage amount")
    if amount <= 0:
        raise InputValidationError("Storage amount must be greater than 0")
    if unit not in ("GB", "TB"):
        raise InputValidationError(f"Unknown storage unit: {unit}")

    storage_gb = amount * 1024 if unit == "TB" else amount
    return storage_gb * 24 * rates.storage_rate
