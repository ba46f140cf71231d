import pytest

from core.domain.models import Configuration, Label, Template, UsageCategory, UsageSummary
from core.services.hooks import WorkflowHooks
from core.services.usage import (
    UsageRequest,
    analyze_environments,
    analyze_templates,
    environments_tsv,
    templates_tsv,
)


def _billing(text: str) -> Label:
    return Label(text=text, type="Billing Category")


@pytest.mark.asyncio
async def test_analyze_environments_groups_by_billing_category(fake_api):
    fake_api.configuration_list = [
        Configuration(id="1", svms=4, storage=2048),
        Configuration(id="2", svms=2, storage=1024),
        Configuration(id="3", svms=1, storage=512),
        Configuration(id="4", svms=8, storage=0),
    ]
    fake_api.configuration_labels = {
        "1": [_billing("Training"), Label(text="ignored", type="Owner")],
        "2": [_billing("Training")],
        "3": [Label(text="ignored", type="Owner")],
    }
    fake_api.fail["get_configuration_labels"] = {"4"}
    progress: list[float] = []

    summary = await analyze_environments(
        fake_api,
        UsageRequest(count=4, batch_size=3, delay_seconds=0, base_url="https://cloud.skytap.com/"),
        WorkflowHooks(progress=progress.append),
    )

    assert summary.analyzed == 4
    assert summary.total_ram == 15
    assert summary.total_storage == 3.5
    [training] = summary.categories
    assert (training.name, training.count, training.metered_ram, training.storage) == ("Training", 2, 6, 3.0)
    assert summary.unlabeled == [
        "https://cloud.skytap.com/configurations/3",
        "https://cloud.skytap.com/configurations/4",
    ]
    assert progress == [50.0, 100.0]


@pytest.mark.asyncio
async def test_label_batches_pause_between_batches_only(fake_api, monkeypatch):
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    monkeypatch.setattr("core.services.usage.asyncio.sleep", fake_sleep)
    fake_api.configuration_list = [Configuration(id=str(i)) for i in range(5)]

    await analyze_environments(fake_api, UsageRequest(count=5, batch_size=2, delay_seconds=1.5))

    assert sleeps == [1.5, 1.5]
    assert len(fake_api.called("get_configuration_labels")) == 5


@pytest.mark.asyncio
async def test_analyze_templates_skips_ownerless(fake_api):
    fake_api.templates = [
        Template(id="t1", owner_name="alice"),
        Template(id="t2", owner_name="bob"),
        Template(id="t3"),
        Template(id="t4", owner_name="carol"),
    ]
    fake_api.template_labels = {
        "t1": [_billing("Sales")],
        "t2": [_billing("Sales"), _billing("Support")],
        "t3": [_billing("Sales")],
    }

    summary = await analyze_templates(fake_api, UsageRequest(count=10, delay_seconds=0))

    assert summary.analyzed == 3
    assert [(c.name, c.count) for c in summary.categories] == [("Sales", 2), ("Support", 1)]
    assert summary.unlabeled == ["https://cloud.skytap.com/templates/t4"]
    assert ("t3",) not in fake_api.called("get_template_labels")


def test_tsv_exports():
    environments = UsageSummary(
        analyzed=2, categories=[UsageCategory(name="Training", count=2, metered_ram=6, storage=3.5)]
    )
    assert environments_tsv(environments) == (
        "Billing Category\tEnvironment Count\tMetered RAM\tStorage (GB)\nTraining\t2\t6\t3.5"
    )

    templates = UsageSummary(analyzed=1, categories=[UsageCategory(name="Sales", count=1)])
    assert templates_tsv(templates) == "Billing Category\tTemplate Count\nSales\t1"
