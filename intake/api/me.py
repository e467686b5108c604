from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from intake.api.deps import get_session_provider
from intake.services.session import ProfileSessionProvider

router = APIRouter(prefix="/me", tags=["session"])


@router.get("")
def who_am_i(sessions: ProfileSessionProvider = Depends(get_session_provider)) -> Dict[str, Any]:
    """
    Current session as seen by this API. is_admin drives the "Admin" navigation button.
    """
    current = sessions.get_current_session()
    if current is None:
        return {"authenticated": False, "user_id": None, "is_admin": False}
    return {
        "authenticated": True,
        "user_id": current.user_id,
        "is_admin": sessions.is_admin(current.user_id),
    }
