"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers, authentication and redirect policy for
  every Skytap call (the role the development proxy played in the browser).
- Eases testing: a `transport` can be injected (e.g. `httpx.MockTransport`).
"""

from __future__ import annotations

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` bound to the Skytap base URL.

    Basic Auth is attached only when both `user` and `token` are configured;
    requests without credentials are left for the API to reject.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)

    auth = None
    if settings.has_credentials:
        auth = httpx.BasicAuth(settings.user or "", settings.token or "")

    return httpx.AsyncClient(
        base_url=settings.base_url.rstrip("/"),
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        auth=auth,
        transport=transport,
    )
