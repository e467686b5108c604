from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Index, func
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStatus(str, Enum):
    """
    Admin-managed lifecycle flag. Values are stored and displayed as-is.
    """

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class OrgType(str, Enum):
    HOSPITAL = "Hospital"
    CLINIC = "Clinic"
    OTHER = "Other"


class Contact(SQLModel, table=True):
    """
    A clinical investigator (or other site contact) captured through the intake wizard.

    Notes:
    - Every *_id reference is a nullable FK to a shared lookup table.
    - hospital_clinic_address is derived at submit time (org type + address lines + postal code).
    - created_by is the identity provider user id (not a FK: profiles may lag behind sign-up).
    - email is unique case-insensitively (uq_contact_email_lower).
    """

    __tablename__ = "contact"

    id: Optional[int] = Field(default=None, primary_key=True)

    # ---- Identity ----
    title: Optional[str] = Field(default=None, max_length=32)
    first_name: str = Field(max_length=128)
    last_name: str = Field(max_length=128, index=True)
    academic_title: Optional[str] = Field(default=None, max_length=128)

    email: Optional[str] = Field(default=None, max_length=254)
    mobile_phone: Optional[str] = Field(default=None, max_length=32)
    office_phone: Optional[str] = Field(default=None, max_length=32)

    # ---- Organisation / address ----
    hospital_clinic_address: Optional[str] = Field(default=None)

    organization_id: Optional[int] = Field(default=None, foreign_key="organization.id", index=True)
    specialty_id: Optional[int] = Field(default=None, foreign_key="specialty.id", index=True)
    occupation_id: Optional[int] = Field(default=None, foreign_key="occupation.id", index=True)
    department_id: Optional[int] = Field(default=None, foreign_key="department.id", index=True)
    country_id: Optional[int] = Field(default=None, foreign_key="country.id", index=True)
    state_id: Optional[int] = Field(default=None, foreign_key="state_region.id", index=True)
    city_id: Optional[int] = Field(default=None, foreign_key="city.id", index=True)

    # ---- Secretary / administrator ----
    admin_assistant_name: Optional[str] = Field(default=None, max_length=255)
    admin_assistant_email: Optional[str] = Field(default=None, max_length=254)
    admin_assistant_phone: Optional[str] = Field(default=None, max_length=32)

    record_status: RecordStatus = Field(default=RecordStatus.ACTIVE, index=True)

    created_by: Optional[str] = Field(default=None, index=True, max_length=64)
    created_at: datetime = Field(default_factory=utcnow, index=True)


Index("uq_contact_email_lower", func.lower(Contact.email), unique=True)
