"""Public IP management per region."""

from __future__ import annotations

import logging
from typing import Iterable

from core.domain.models import BatchResult, FailedItem, IPAddress
from core.domain.regions import Region
from core.interfaces.api import SkytapAPI
from core.services.hooks import STEP_ERRORS

logger = logging.getLogger(__name__)


async def list_ips(
    api: SkytapAPI,
    region: Region = Region.US_CENTRAL,
    *,
    unattached_only: bool = False,
    count: int = 100,
) -> list[IPAddress]:
    ips = await api.get_ips_by_region(region.value, count=count)
    if unattached_only:
        ips = filter_unattached(ips)
    return ips


def filter_unattached(ips: Iterable[IPAddress]) -> list[IPAddress]:
    """IPs not bound to any network interface."""

    return [ip for ip in ips if ip.nic_count == 0]


async def release_ip(api: SkytapAPI, ip_id: str) -> None:
    await api.release_ip(ip_id)
    logger.info("Released IP %s", ip_id)


async def release_ips(api: SkytapAPI, ips: Iterable[IPAddress]) -> BatchResult:
    """Release every IP sequentially; failures do not stop the batch."""

    result = BatchResult()
    for ip in ips:
        try:
            await api.release_ip(ip.id)
            result.success.append(ip.id)
        except STEP_ERRORS as exc:
            logger.warning("Failed to release IP %s (%s): %s", ip.id, ip.address, exc)
            result.failed.append(FailedItem(id=ip.id, error=str(exc)))
    logger.info("Released %s IP(s), %s failed", len(result.success), len(result.failed))
    return result
