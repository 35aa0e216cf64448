"""Notarization client - registers completed donations with an external ledger.

Fire-and-forget: runs as a background task after the completion committed.
Its outcome is stored on the Donation row and never affects the donation
itself.
"""

from __future__ import annotations

import hashlib
import json
import logging
from uuid import UUID

import httpx
from sqlalchemy import update
from sqlalchemy.orm import Session

from pulseconnect.core.config import settings
from pulseconnect.db.base import utcnow
from pulseconnect.db.enums import NotarizationStatus
from pulseconnect.db.models import Donation
from pulseconnect.services.http_service import request_with_retries

logger = logging.getLogger(__name__)


class NotarizationError(Exception):
    """The ledger rejected the donation or returned an unusable answer."""

    pass


def donation_digest(donation: Donation) -> str:
    """SHA-256 over the identifying fields of a donation (no personal data)."""
    payload = {
        "donation_id": str(donation.id),
        "hospital_id": str(donation.hospital_id),
        "donor_id": str(donation.donor_id),
        "donation_kind": donation.donation_kind,
        "blood_group": donation.blood_group,
        "units": donation.units,
        "donated_on": donation.donated_on.isoformat(),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
    return hashlib.sha256(encoded).hexdigest()


async def submit(
    client: httpx.AsyncClient,
    donation: Donation,
    *,
    base_delay: float = 0.5,
) -> str:
    """POST the digest and return the ledger reference."""
    headers = {}
    if settings.NOTARIZATION_API_KEY:
        headers["Authorization"] = f"Bearer {settings.NOTARIZATION_API_KEY}"

    body = {"donation_id": str(donation.id), "digest": donation_digest(donation)}
    response = await request_with_retries(
        lambda: client.post(settings.NOTARIZATION_URL, json=body, headers=headers),
        base_delay=base_delay,
    )
    if response.status_code >= 400:
        raise NotarizationError(f"Ledger returned {response.status_code}")

    reference = response.json().get("reference")
    if not reference:
        raise NotarizationError("Ledger response has no reference")
    return str(reference)


def _record(db: Session, donation_id: UUID, status: NotarizationStatus, reference: str | None = None) -> None:
    db.execute(
        update(Donation)
        .where(Donation.id == donation_id)
        .values(notarization_status=status.value, notarization_ref=reference, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()


async def notarize_donation(
    donation_id: UUID,
    *,
    session_factory=None,
    client: httpx.AsyncClient | None = None,
    base_delay: float = 0.5,
) -> NotarizationStatus:
    """
    Register one donation and store the outcome.

    - No NOTARIZATION_URL: marked skipped
    - Ledger reference returned: marked verified
    - Any failure: marked failed and logged
    """
    if session_factory is None:
        from pulseconnect.db.session import SessionLocal

        session_factory = SessionLocal

    db = session_factory()
    try:
        donation = db.get(Donation, donation_id)
        if not donation:
            logger.warning("Notarization skipped: donation %s not found", donation_id)
            return NotarizationStatus.FAILED

        if not settings.notarization_enabled:
            _record(db, donation_id, NotarizationStatus.SKIPPED)
            return NotarizationStatus.SKIPPED

        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=settings.NOTARIZATION_TIMEOUT_SECONDS)
        try:
            reference = await submit(client, donation, base_delay=base_delay)
        except (httpx.HTTPError, NotarizationError, ValueError) as exc:
            logger.warning(
                "Notarization failed for donation %s: %s", donation_id, exc.__class__.__name__
            )
            _record(db, donation_id, NotarizationStatus.FAILED)
            return NotarizationStatus.FAILED
        finally:
            if owns_client:
                await client.aclose()

        _record(db, donation_id, NotarizationStatus.VERIFIED, reference)
        logger.info("Donation %s notarized", donation_id)
        return NotarizationStatus.VERIFIED
    finally:
        db.close()
