"""Error types shared by the adapters, the services and the CLI."""

from __future__ import annotations


class SkytapError(Exception):
    """Base class for console errors."""


class SkytapAPIError(SkytapError):
    """Non-2xx response from the Skytap API."""

    def __init__(self, status_code: int, reason: str, body: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"API request failed: {status_code} {reason} - {body}")


class InputValidationError(SkytapError, ValueError):
    """Form-level validation failure (missing or out-of-range inputs)."""


class ReportTimeoutError(SkytapError):
    """Usage reports did not become ready within the polling budget."""

    def __init__(self) -> None:
        super().__init__("Reports did not complete within the timeout period. Please try again.")
