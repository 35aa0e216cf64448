"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    actor_id: UUID | str | None = None,
    role: str | None = None,
    request_id: UUID | str | None = None,
    appointment_id: UUID | str | None = None,
    hospital_id: UUID | str | None = None,
    operation: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict with identifiers only (no names or contact data)."""
    context: dict[str, Any] = {}
    if actor_id:
        context["actor_id"] = str(actor_id)
    if role:
        context["role"] = role
    if request_id:
        context["request_id"] = str(request_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if hospital_id:
        context["hospital_id"] = str(hospital_id)
    if operation:
        context["operation"] = operation
    return context
