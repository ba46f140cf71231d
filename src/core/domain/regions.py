"""Skytap regions used by the console.

Kept in the domain layer so the CLI, the settings and the services share a
single source of truth without importing adapters.
"""

from __future__ import annotations

from enum import Enum


class Region(str, Enum):
    """Regions the console can query and deploy into."""

    US_CENTRAL = "US-Central"
    EMEA = "EMEA"
    APAC = "APAC-2"

    @classmethod
    def default(cls) -> "Region":
        return cls.US_CENTRAL

    @classmethod
    def parse(cls, value: str) -> "Region":
        """Case-insensitive lookup by value or member name."""

        needle = value.strip().lower()
        for region in cls:
            if needle in (region.value.lower(), region.name.lower(), region.name.lower().replace("_", "-")):
                return region
        if needle == "apac":
            return cls.APAC
        raise ValueError(f"Unknown region: {value}")

    def __str__(self) -> str:
        return self.value

    def label(self) -> str:
        return self.value.upper()
