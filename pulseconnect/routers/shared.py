"""Shared router helpers: domain error mapping and notarization scheduling."""

from fastapi import BackgroundTasks, Request
from fastapi.responses import JSONResponse

from pulseconnect.core.config import settings
from pulseconnect.db.enums import NotarizationStatus
from pulseconnect.services import notarization_service
from pulseconnect.services.appointment_service import CompletionResult
from pulseconnect.services.errors import (
    AlreadyResolved,
    CoreServiceError,
    InsufficientUnits,
    InvalidTransition,
    NotFound,
    SlotConflict,
    Unavailable,
    ValidationFailed,
)

STATUS_BY_ERROR: dict[type[CoreServiceError], int] = {
    InvalidTransition: 409,
    AlreadyResolved: 409,
    SlotConflict: 409,
    InsufficientUnits: 409,
    NotFound: 404,
    ValidationFailed: 422,
    Unavailable: 503,
}


def status_for(exc: CoreServiceError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def domain_error_handler(request: Request, exc: CoreServiceError) -> JSONResponse:
    """Surface domain errors verbatim with their HTTP status."""
    status_code = status_for(exc)
    content: dict = {"detail": str(exc), "error": exc.__class__.__name__}
    if isinstance(exc, InvalidTransition):
        content["current_state"] = exc.current_state
        content["attempted_op"] = exc.attempted_op

    headers = None
    if exc.retryable:
        headers = {"Retry-After": str(max(1, int(settings.STORE_TIMEOUT_SECONDS)))}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def schedule_notarization(
    background_tasks: BackgroundTasks,
    result: CompletionResult | None,
) -> None:
    """Queue ledger registration for the donation this call recorded."""
    if not settings.notarization_enabled or result is None or not result.applied:
        return
    donation = result.donation
    if donation and donation.notarization_status == NotarizationStatus.PENDING.value:
        background_tasks.add_task(notarization_service.notarize_donation, donation.id)
