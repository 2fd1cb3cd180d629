"""
Sentry instrumentation. Server-side only.

Reviewer contact details travel in request bodies, and identities in
headers; both are scrubbed before events leave the process.
"""

from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from services.amenities.config import settings

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie", "x-user-id", "x-admin-signature"}
SENSITIVE_FIELDS = {"contactInfo", "contactType"}
FILTERED = "[FILTERED]"


def _scrub_headers(headers: Any) -> None:
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = FILTERED


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook."""
    for breadcrumb in event.get("breadcrumbs", {}).get("values", []):
        data = breadcrumb.get("data", {})
        if isinstance(data, dict):
            _scrub_headers(data.get("headers"))

    request = event.get("request", {})
    if isinstance(request, dict):
        _scrub_headers(request.get("headers"))
        body = request.get("data")
        if isinstance(body, dict):
            for field in SENSITIVE_FIELDS & body.keys():
                body[field] = FILTERED
    return event


def setup_sentry() -> bool:
    """Initialise the SDK when SENTRY_DSN is set. Returns whether it did."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        before_send=_strip_sensitive_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
    return True
