"""Project cleaner: find projects without environments and delete them."""

from __future__ import annotations

import logging
from typing import Iterable, Literal

from core.domain.models import BatchResult, FailedItem, Project
from core.interfaces.api import SkytapAPI
from core.services.hooks import STEP_ERRORS

logger = logging.getLogger(__name__)

ProjectSortField = Literal["configuration_count", "template_count"]


async def find_empty_projects(api: SkytapAPI, count: int = 200) -> list[Project]:
    projects = await api.get_projects(count=count)
    empty = [p for p in projects if p.configuration_count == 0]
    logger.info("Found %s empty project(s) out of %s", len(empty), len(projects))
    return empty


async def delete_projects(api: SkytapAPI, project_ids: Iterable[str]) -> BatchResult:
    """Delete projects one at a time, collecting successes and failures."""

    result = BatchResult()
    for project_id in project_ids:
        try:
            await api.delete_project(project_id)
            result.success.append(project_id)
        except STEP_ERRORS as exc:
            logger.warning("Failed to delete project %s: %s", project_id, exc)
            result.failed.append(FailedItem(id=project_id, error=str(exc)))
    return result


def sort_projects(
    projects: Iterable[Project],
    field: ProjectSortField = "configuration_count",
    *,
    descending: bool = False,
) -> list[Project]:
    return sorted(projects, key=lambda p: getattr(p, field), reverse=descending)
