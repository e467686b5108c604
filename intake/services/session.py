from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlmodel import Session

from intake.models.profile import Profile


@dataclass(frozen=True)
class CurrentSession:
    user_id: str


class SessionProvider(Protocol):
    """
    What the intake core needs from the identity provider.

    The submission path only calls get_current_session(); is_admin() gates the
    record_status field, the admin navigation affordance and the contacts listing.
    """

    def get_current_session(self) -> Optional[CurrentSession]: ...

    def is_admin(self, user_id: str) -> bool: ...


def _clean_user_id(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


class ProfileSessionProvider:
    """
    Session resolved by the upstream auth proxy (user id forwarded in a request header)
    and role lookup against the identity provider's profiles table.
    """

    def __init__(self, db: Session, user_id: Optional[str]) -> None:
        self.db = db
        self.user_id = _clean_user_id(user_id)

    def get_current_session(self) -> Optional[CurrentSession]:
        if not self.user_id:
            return None
        return CurrentSession(user_id=self.user_id)

    def is_admin(self, user_id: str) -> bool:
        profile = self.db.get(Profile, user_id)
        return bool(profile and profile.is_admin)

    def current_is_admin(self) -> bool:
        current = self.get_current_session()
        return bool(current and self.is_admin(current.user_id))
