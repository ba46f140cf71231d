"""Usage by "Billing Category" label.

Label lookups are one request per environment/template, so they are issued
in batches with a pause between batches to stay under the vendor rate limit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence, TypeVar

from core.domain.models import Configuration, Label, Template, UsageCategory, UsageSummary
from core.interfaces.api import SkytapAPI
from core.services.hooks import STEP_ERRORS, WorkflowHooks

logger = logging.getLogger(__name__)

BILLING_CATEGORY = "Billing Category"

T = TypeVar("T", Configuration, Template)


@dataclass
class UsageRequest:
    count: int = 10
    batch_size: int = 10
    delay_seconds: float = 1.0
    base_url: str = "https://cloud.skytap.com"


@dataclass
class _Bucket:
    count: int = 0
    metered_ram: float = 0
    storage: float = 0


async def _collect_labels(
    items: Sequence[T],
    fetch: Callable[[str], Awaitable[list[Label]]],
    request: UsageRequest,
    hooks: WorkflowHooks | None,
) -> dict[str, list[str] | None]:
    """Billing category texts per item id; `None` marks a failed lookup."""

    categories: dict[str, list[str] | None] = {}
    batch_size = max(1, request.batch_size)
    batches = [items[i : i + batch_size] for i in range(0, len(items), batch_size)]

    for index, batch in enumerate(batches):
        logger.debug("Label batch %s/%s (%s items)", index + 1, len(batches), len(batch))
        for item in batch:
            try:
                labels = await fetch(item.id)
                categories[item.id] = [label.text for label in labels if label.type == BILLING_CATEGORY]
            except STEP_ERRORS as exc:
                logger.warning("Label lookup for %s failed: %s", item.id, exc)
                categories[item.id] = None

        if hooks and hooks.progress:
            hooks.progress((index + 1) / len(batches) * 100)
        if index < len(batches) - 1:
            await asyncio.sleep(request.delay_seconds)

    return categories


async def analyze_environments(
    api: SkytapAPI,
    request: UsageRequest,
    hooks: WorkflowHooks | None = None,
) -> UsageSummary:
    configurations = await api.get_configurations(count=request.count)
    logger.info("Analyzing %s configuration(s)", len(configurations))

    total_ram = sum(c.svms or 0 for c in configurations)
    total_storage = sum((c.storage or 0) / 1024 for c in configurations)

    labels = await _collect_labels(configurations, api.get_configuration_labels, request, hooks)
    base_url = request.base_url.rstrip("/")

    buckets: dict[str, _Bucket] = {}
    unlabeled: list[str] = []
    for config in configurations:
        texts = labels.get(config.id)
        if not texts:
            unlabeled.append(f"{base_url}/configurations/{config.id}")
            continue
        for text in texts:
            bucket = buckets.setdefault(text, _Bucket())
            bucket.count += 1
            bucket.metered_ram += config.svms or 0
            bucket.storage += (config.storage or 0) / 1024

    return UsageSummary(
        analyzed=len(configurations),
        categories=[
            UsageCategory(name=name, count=b.count, metered_ram=b.metered_ram, storage=round(b.storage, 2))
            for name, b in buckets.items()
        ],
        unlabeled=unlabeled,
        total_ram=total_ram,
        total_storage=round(total_storage, 2),
    )


async def analyze_templates(
    api: SkytapAPI,
    request: UsageRequest,
    hooks: WorkflowHooks | None = None,
) -> UsageSummary:
    """Count owned templates per billing category (ownerless ones are skipped)."""

    all_templates = await api.get_templates(count=request.count)
    templates = [t for t in all_templates if t.owner_name]
    logger.info(
        "Analyzing %s template(s), skipped %s without owner",
        len(templates),
        len(all_templates) - len(templates),
    )

    labels = await _collect_labels(templates, api.get_template_labels, request, hooks)
    base_url = request.base_url.rstrip("/")

    counts: dict[str, int] = {}
    unlabeled: list[str] = []
    for template in templates:
        texts = labels.get(template.id)
        if not texts:
            unlabeled.append(f"{base_url}/templates/{template.id}")
            continue
        for text in texts:
            counts[text] = counts.get(text, 0) + 1

    return UsageSummary(
        analyzed=len(templates),
        categories=[UsageCategory(name=name, count=count) for name, count in counts.items()],
        unlabeled=unlabeled,
    )


def _format_number(value: float) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


def environments_tsv(summary: UsageSummary) -> str:
    header = "Billing Category\tEnvironment Count\tMetered RAM\tStorage (GB)\n"
    rows = "\n".join(
        f"{c.name}\t{c.count}\t{_format_number(c.metered_ram)}\t{_format_number(c.storage)}"
        for c in summary.categories
    )
    return header + rows


def templates_tsv(summary: UsageSummary) -> str:
    header = "Billing Category\tTemplate Count\n"
    return header + "\n".join(f"{c.name}\t{c.count}" for c in summary.categories)
