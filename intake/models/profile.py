from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


class Profile(SQLModel, table=True):
    """
    Signed-in user profile, owned by the identity provider.

    This service only reads it:
    - is_admin gates the record_status field and the contacts listing/export
    - full_name is the "Created By" display name in the listing
    """

    __tablename__ = "profiles"

    # Identity provider user id (opaque string, e.g. a UUID)
    id: str = Field(primary_key=True, max_length=64)

    full_name: Optional[str] = Field(default=None, max_length=255)
    is_admin: bool = Field(default=False, index=True)
