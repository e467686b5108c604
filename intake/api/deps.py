from __future__ import annotations

from fastapi import Depends, Request
from sqlmodel import Session

from intake.config import settings
from intake.database import get_db
from intake.errors import NotAuthenticatedError, NotAuthorizedError
from intake.services.reference_store import ReferenceStore
from intake.services.session import ProfileSessionProvider


def get_session_provider(request: Request, db: Session = Depends(get_db)) -> ProfileSessionProvider:
    """
    The auth proxy in front of this API forwards the signed-in user id in settings.session_header.
    A missing header means "no session"; the orchestrator reports that as NotAuthenticatedError.
    """
    return ProfileSessionProvider(db, request.headers.get(settings.session_header))


def get_reference_store() -> ReferenceStore:
    return ReferenceStore()


def require_admin(
    sessions: ProfileSessionProvider = Depends(get_session_provider),
) -> ProfileSessionProvider:
    current = sessions.get_current_session()
    if current is None:
        raise NotAuthenticatedError("You must be logged in.")
    if not sessions.is_admin(current.user_id):
        raise NotAuthorizedError()
    return sessions
