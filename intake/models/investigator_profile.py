from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvestigatorProfile(SQLModel, table=True):
    """
    Optional one-to-one extension of a Contact flagged as an investigator.

    - contact_id is unique: at most one profile per contact.
    - Written after the contact row commits; a failure here leaves the contact in place.
    - PI = principal investigator, Sub-I = sub-investigator.
    """

    __tablename__ = "contact_investigator_profile"

    id: Optional[int] = Field(default=None, primary_key=True)

    contact_id: int = Field(foreign_key="contact.id", unique=True, index=True)

    has_pi_experience: bool = Field(default=False)
    pi_experience_notes: Optional[str] = Field(default=None)
    interested_in_pi_role: bool = Field(default=False)
    pi_interest_notes: Optional[str] = Field(default=None)

    has_subi_experience: bool = Field(default=False)
    subi_experience_notes: Optional[str] = Field(default=None)
    interested_in_subi_role: bool = Field(default=False)
    subi_interest_notes: Optional[str] = Field(default=None)

    # Good Clinical Practice training
    gcp_trained: bool = Field(default=False)
    gcp_last_training_date: Optional[date] = Field(default=None)

    notes: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, index=True)
