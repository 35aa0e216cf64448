"""Donation record enums."""

from enum import Enum


class NotarizationStatus(str, Enum):
    """Outcome of the external ledger registration for a donation."""

    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    SKIPPED = "skipped"  # Notarization disabled
