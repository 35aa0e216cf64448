"""Compatibility resolver - eligible donor candidates for a request.

find_candidates is pure: it only reads the request and donor snapshot it is
given, so it can be called concurrently without coordination. list_candidates
is the read-only service wrapper that loads the snapshot.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, NamedTuple, Protocol
from uuid import UUID

from geopy.distance import geodesic
from sqlalchemy.orm import Session

from pulseconnect.db.enums import BloodGroup
from pulseconnect.db.models import BloodRequest, Donor
from pulseconnect.services.errors import NotFound, ValidationFailed
from pulseconnect.services.store import guarded


# Recipient group -> donor groups whose red cells it can receive.
DONOR_COMPATIBILITY: dict[str, frozenset[str]] = {
    BloodGroup.O_NEGATIVE.value: frozenset({"O-"}),
    BloodGroup.O_POSITIVE.value: frozenset({"O-", "O+"}),
    BloodGroup.A_NEGATIVE.value: frozenset({"O-", "A-"}),
    BloodGroup.A_POSITIVE.value: frozenset({"O-", "O+", "A-", "A+"}),
    BloodGroup.B_NEGATIVE.value: frozenset({"O-", "B-"}),
    BloodGroup.B_POSITIVE.value: frozenset({"O-", "O+", "B-", "B+"}),
    BloodGroup.AB_NEGATIVE.value: frozenset({"O-", "A-", "B-", "AB-"}),
    BloodGroup.AB_POSITIVE.value: frozenset(
        {"O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"}
    ),
}


class _Positioned(Protocol):
    latitude: float | None
    longitude: float | None


class Candidate(NamedTuple):
    """A donor that passed the compatibility filter, with its rank."""
    donor: Donor
    distance_km: float | None
    rank: int


def compatible_donor_groups(recipient_group: str) -> list[str]:
    """Donor groups that can give to recipient_group, in table order."""
    allowed = DONOR_COMPATIBILITY.get(recipient_group)
    if allowed is None:
        raise ValidationFailed(f"Unsupported blood group: {recipient_group!r}")
    return [group.value for group in BloodGroup if group.value in allowed]


def can_donate(donor_group: str, recipient_group: str) -> bool:
    """Return True when donor_group can give to recipient_group."""
    return donor_group in DONOR_COMPATIBILITY.get(recipient_group, frozenset())


def distance_km(a: _Positioned, b: _Positioned) -> float | None:
    """Geodesic distance between two positioned records, None if either is unknown."""
    if a.latitude is None or a.longitude is None:
        return None
    if b.latitude is None or b.longitude is None:
        return None
    return geodesic((a.latitude, a.longitude), (b.latitude, b.longitude)).km


def _sort_key(item: tuple[Donor, float | None]) -> tuple:
    donor, distance = item
    # Unknown distance sorts after every known one
    distance_key = (1, 0.0) if distance is None else (0, distance)
    # Longest wait since last donation first; never donated waits longest
    last = donor.last_donation_date
    recency_key = (0, date.min) if last is None else (1, last)
    return (distance_key, recency_key, str(donor.id))


def find_candidates(
    request: BloodRequest,
    donors: Iterable[Donor],
) -> list[Candidate]:
    """
    Rank eligible donors for a request.

    Filters:
    - donor.is_available must be true
    - donor group must be able to give to the request group

    Ordering: ascending distance (unknown last), then oldest last donation,
    then donor id so equal snapshots always give the same order.
    """
    allowed = DONOR_COMPATIBILITY.get(request.blood_group)
    if allowed is None:
        raise ValidationFailed(f"Unsupported blood group: {request.blood_group!r}")

    eligible = [
        (donor, distance_km(request, donor))
        for donor in donors
        if donor.is_available and donor.blood_group in allowed
    ]
    eligible.sort(key=_sort_key)

    return [
        Candidate(donor=donor, distance_km=distance, rank=index + 1)
        for index, (donor, distance) in enumerate(eligible)
    ]


def list_candidates(
    db: Session,
    request_id: UUID,
    limit: int | None = None,
    timeout: float | None = None,
) -> list[Candidate]:
    """Load the donor snapshot for a request and rank it. No side effects."""
    with guarded(db, timeout):
        request = db.get(BloodRequest, request_id)
        if not request:
            raise NotFound(f"Request {request_id} not found")

        donors = (
            db.query(Donor)
            .filter(
                Donor.is_available.is_(True),
                Donor.blood_group.in_(compatible_donor_groups(request.blood_group)),
            )
            .all()
        )
    candidates = find_candidates(request, donors)
    if limit is not None:
        candidates = candidates[:limit]
    return candidates
