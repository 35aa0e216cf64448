"""Caller identity schemas."""

from uuid import UUID

from pydantic import BaseModel

from pulseconnect.db.enums import ActorRole


class ActorSession(BaseModel):
    """
    Identity of the caller, as asserted by the upstream gateway.

    Returned by the get_current_actor dependency.
    """
    actor_id: UUID
    role: ActorRole
