from datetime import date

import pytest

from core.domain.models import BillingRates
from core.errors import InputValidationError
from core.services.cost import InstanceCostRequest, calculate_instance_cost, calculate_storage_cost


def _request(**overrides) -> InstanceCostRequest:
    values = dict(
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 10),
        ram_per_instance=16,
        storage_per_instance=100,
        number_of_instances=3,
        running_hours_per_day=8,
    )
    values.update(overrides)
    return InstanceCostRequest(**values)


def test_instance_cost_counts_both_dates():
    result = calculate_instance_cost(_request(), BillingRates(ram_rate=0.01, storage_rate=0.001))

    assert result.number_of_days == 10
    assert result.ram_hours_per_instance == 16 * 8 * 10
    assert result.storage_hours_per_instance == 100 * 24 * 10
    assert result.ram_cost_per_instance == pytest.approx(12.8)
    assert result.storage_cost_per_instance == pytest.approx(24)
    assert result.total_cost == pytest.approx((12.8 + 24) * 3)


def test_instance_cost_single_day_and_default_rates():
    result = calculate_instance_cost(_request(end_date=date(2024, 3, 1), number_of_instances=1))
    assert result.number_of_days == 1
    assert result.total_ram_cost == pytest.approx(16 * 8 * 0.03861)


def test_instance_cost_lists_missing_fields():
    with pytest.raises(InputValidationError) as excinfo:
        calculate_instance_cost(_request(ram_per_instance=None, number_of_instances=None))
    assert "ram_per_instance" in str(excinfo.value)
    assert "number_of_instances" in str(excinfo.value)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"end_date": date(2024, 2, 1)}, "End date must be after start date"),
        ({"running_hours_per_day": 25}, "between 0 and 24"),
    ],
)
def test_instance_cost_rejects_bad_ranges(overrides, message):
    with pytest.raises(InputValidationError, match=message):
        calculate_instance_cost(_request(**overrides))


def test_storage_cost_per_day():
    rates = BillingRates(storage_rate=0.001)
    assert calculate_storage_cost(10, "GB", rates) == pytest.approx(0.24)
    assert calculate_storage_cost(1, "TB", rates) == pytest.approx(1024 * 24 * 0.001)


@pytest.mark.parametrize(
    "amount, message",
    [(None, "Please enter storage amount"), (0, "greater than 0"), (-5, "greater than 0")],
)
def test_storage_cost_validation(amount, message):
    with pytest.raises(InputValidationError, match=message):
        calculate_storage_cost(amount)
