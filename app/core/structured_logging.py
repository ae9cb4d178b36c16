"""Structured logging helpers (credential-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
    **safe_fields: Any,
) -> dict[str, Any]:
    """
    Return a log context dict with empty values dropped.

    Callers pass only non-secret fields (host, port, bucket, region, error
    type); usernames, passwords and keys never go through here.
    """
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    for key, value in safe_fields.items():
        if value is not None and value != "":
            context[key] = value
    return context
