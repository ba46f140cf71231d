"""Callbacks connecting long-running workflows with UI layers.

The workflows keep a plain list of human-readable step messages (returned in
each result) and mirror every message to the module logger; UI layers can
additionally subscribe to live messages and progress percentages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

import httpx
from pydantic import ValidationError

from core.errors import SkytapError

# Failures a per-item loop records and moves past (vendor errors, transport
# errors, unexpected payload shapes).
STEP_ERRORS: tuple[type[Exception], ...] = (SkytapError, httpx.HTTPError, ValidationError)


@dataclass
class WorkflowHooks:
    """Optional callbacks for UI layers (live log, progress bar)."""

    log: Callable[[str], None] | None = None
    progress: Callable[[float], None] | None = None


@dataclass
class StepLog:
    """Collects step messages for one workflow run."""

    logger: logging.Logger
    hooks: WorkflowHooks = field(default_factory=WorkflowHooks)
    lines: list[str] = field(default_factory=list)

    def __call__(self, message: str, *, level: int = logging.INFO) -> None:
        self.lines.append(message)
        self.logger.log(level, message)
        if self.hooks.log:
            self.hooks.log(message)

    def progress(self, done: int, total: int) -> None:
        if not self.hooks.progress or total <= 0:
            return
        self.hooks.progress(min(100.0, done / total * 100))
