"""FastAPI dependencies for caller identity, authorization, and database access.

Authentication happens upstream: the gateway forwards the validated actor as
X-Actor-Id / X-Actor-Role headers.
"""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from pulseconnect.db.enums import ActorRole
from pulseconnect.db.session import SessionLocal
from pulseconnect.schemas.auth import ActorSession
from pulseconnect.services.store import guarded


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(
    request: Request,
    db: Session = Depends(get_db),
) -> ActorSession:
    """
    Resolve the caller from gateway headers.

    Raises:
        HTTPException 401: headers missing or malformed
        HTTPException 403: actor not registered for the claimed role
    """
    # Import here to avoid circular imports
    from pulseconnect.db.models import Donor, Hospital

    raw_id = request.headers.get(ACTOR_ID_HEADER)
    raw_role = request.headers.get(ACTOR_ROLE_HEADER)
    if not raw_id or not raw_role:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        actor_id = UUID(raw_id)
        role = ActorRole(raw_role.lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid actor headers")

    model = Donor if role == ActorRole.DONOR else Hospital
    with guarded(db):
        actor = db.get(model, actor_id)
    if not actor:
        raise HTTPException(status_code=403, detail=f"Unknown {role.value}")
    if role == ActorRole.HOSPITAL and not actor.is_active:
        raise HTTPException(status_code=403, detail="Hospital is deactivated")

    return ActorSession(actor_id=actor_id, role=role)


def require_role(role: ActorRole):
    """
    Dependency factory for role-based authorization.

    Usage:
        session: ActorSession = Depends(require_role(ActorRole.HOSPITAL))
    """
    def dependency(session: ActorSession = Depends(get_current_actor)) -> ActorSession:
        if session.role != role:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency


require_donor = require_role(ActorRole.DONOR)
require_hospital = require_role(ActorRole.HOSPITAL)
