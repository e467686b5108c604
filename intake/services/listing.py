from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from intake.models.contact import Contact, RecordStatus
from intake.models.investigator_profile import InvestigatorProfile
from intake.models.profile import Profile
from intake.models.reference import (
    City,
    Country,
    Department,
    Occupation,
    Organization,
    Specialty,
    StateRegion,
)


class ContactListing(BaseModel):
    """
    One contact as the admin table and CSV export see it: scalar fields, lookup
    names instead of ids, the creator's display name and (optional) investigator fields.
    """

    id: int
    title: Optional[str] = None
    first_name: str
    last_name: str
    academic_title: Optional[str] = None
    email: Optional[str] = None
    mobile_phone: Optional[str] = None
    office_phone: Optional[str] = None
    hospital_clinic_address: Optional[str] = None
    admin_assistant_name: Optional[str] = None
    admin_assistant_email: Optional[str] = None
    admin_assistant_phone: Optional[str] = None
    record_status: RecordStatus = RecordStatus.ACTIVE
    created_at: datetime

    organization: Optional[str] = None
    specialty: Optional[str] = None
    occupation: Optional[str] = None
    department: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    created_by_name: Optional[str] = None

    is_investigator: bool = False
    has_pi_experience: Optional[bool] = None
    pi_experience_notes: Optional[str] = None
    interested_in_pi_role: Optional[bool] = None
    pi_interest_notes: Optional[str] = None
    has_subi_experience: Optional[bool] = None
    subi_experience_notes: Optional[str] = None
    interested_in_subi_role: Optional[bool] = None
    subi_interest_notes: Optional[str] = None
    gcp_trained: Optional[bool] = None
    gcp_last_training_date: Optional[date] = None
    investigator_notes: Optional[str] = None


# (CSV header, ContactListing attribute)
EXPORT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("ID", "id"),
    ("Title", "title"),
    ("First Name", "first_name"),
    ("Last Name", "last_name"),
    ("Academic Title", "academic_title"),
    ("Email", "email"),
    ("Mobile Phone", "mobile_phone"),
    ("Office Phone", "office_phone"),
    ("Country", "country"),
    ("State/Region", "state"),
    ("City", "city"),
    ("Organization", "organization"),
    ("Department", "department"),
    ("Specialty", "specialty"),
    ("Occupation", "occupation"),
    ("Hospital/Clinic Address", "hospital_clinic_address"),
    ("Admin Assistant Name", "admin_assistant_name"),
    ("Admin Assistant Email", "admin_assistant_email"),
    ("Admin Assistant Phone", "admin_assistant_phone"),
    ("Record Status", "record_status"),
    ("Investigator", "is_investigator"),
    ("PI Experience", "has_pi_experience"),
    ("PI Experience Notes", "pi_experience_notes"),
    ("Interested in PI Role", "interested_in_pi_role"),
    ("PI Interest Notes", "pi_interest_notes"),
    ("Sub-I Experience", "has_subi_experience"),
    ("Sub-I Experience Notes", "subi_experience_notes"),
    ("Interested in Sub-I Role", "interested_in_subi_role"),
    ("Sub-I Interest Notes", "subi_interest_notes"),
    ("GCP Trained", "gcp_trained"),
    ("GCP Last Training Date", "gcp_last_training_date"),
    ("Investigator Notes", "investigator_notes"),
    ("Created By", "created_by_name"),
    ("Created At", "created_at"),
)


def _like_pattern(raw: str) -> str:
    """Substring pattern with LIKE wildcards in the search text taken literally."""
    escaped = raw.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _listing_query(search: Optional[str], country: Optional[str]):  # noqa: ANN202
    # Contact carries its own state_id/city_id; alias the lookup tables so joins stay unambiguous.
    state_t = aliased(StateRegion)
    city_t = aliased(City)

    stmt = (
        select(
            Contact,
            Organization.name,
            Specialty.name,
            Occupation.name,
            Department.name,
            Country.name,
            state_t.name,
            city_t.name,
            Profile.full_name,
            InvestigatorProfile,
        )
        .outerjoin(Organization, Contact.organization_id == Organization.id)
        .outerjoin(Specialty, Contact.specialty_id == Specialty.id)
        .outerjoin(Occupation, Contact.occupation_id == Occupation.id)
        .outerjoin(Department, Contact.department_id == Department.id)
        .outerjoin(Country, Contact.country_id == Country.id)
        .outerjoin(state_t, Contact.state_id == state_t.id)
        .outerjoin(city_t, Contact.city_id == city_t.id)
        .outerjoin(Profile, Contact.created_by == Profile.id)
        .outerjoin(InvestigatorProfile, InvestigatorProfile.contact_id == Contact.id)
    )

    raw = (search or "").strip()
    if raw:
        needle = _like_pattern(raw)
        stmt = stmt.where(
            (Contact.first_name.concat(" ").concat(Contact.last_name).ilike(needle, escape="\\"))
            | (Contact.email.ilike(needle, escape="\\"))
            | (Organization.name.ilike(needle, escape="\\"))
            | (Specialty.name.ilike(needle, escape="\\"))
        )

    country_name = (country or "").strip()
    if country_name:
        stmt = stmt.where(Country.name == country_name)

    return stmt.order_by(Contact.created_at.desc(), Contact.id.desc())


def _to_listing(row: Tuple[Any, ...]) -> ContactListing:
    contact, org, spec, occ, dept, country, state, city, creator, inv = row
    data = contact.model_dump(
        exclude={
            "organization_id",
            "specialty_id",
            "occupation_id",
            "department_id",
            "country_id",
            "state_id",
            "city_id",
            "created_by",
        }
    )
    data.update(
        organization=org,
        specialty=spec,
        occupation=occ,
        department=dept,
        country=country,
        state=state,
        city=city,
        created_by_name=creator,
    )

    if inv is not None:
        data.update(
            is_investigator=True,
            has_pi_experience=inv.has_pi_experience,
            pi_experience_notes=inv.pi_experience_notes,
            interested_in_pi_role=inv.interested_in_pi_role,
            pi_interest_notes=inv.pi_interest_notes,
            has_subi_experience=inv.has_subi_experience,
            subi_experience_notes=inv.subi_experience_notes,
            interested_in_subi_role=inv.interested_in_subi_role,
            subi_interest_notes=inv.subi_interest_notes,
            gcp_trained=inv.gcp_trained,
            gcp_last_training_date=inv.gcp_last_training_date,
            investigator_notes=inv.notes,
        )

    return ContactListing(**data)


def list_contacts(
    db: Session,
    *,
    search: Optional[str] = None,
    country: Optional[str] = None,
) -> List[ContactListing]:
    """
    Newest-first contacts for the admin table.

    - search: case-insensitive substring of "first last", email, organization or specialty
    - country: exact country name
    """
    rows = db.exec(_listing_query(search, country)).all()
    return [_to_listing(r) for r in rows]


def get_contact_listing(db: Session, contact_id: int) -> Optional[ContactListing]:
    row = db.exec(_listing_query(None, None).where(Contact.id == contact_id)).first()
    return _to_listing(row) if row is not None else None


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, RecordStatus):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def export_csv(rows: Iterable[ContactListing]) -> str:
    """
    Flat CSV: one header row, one row per contact, every column present for every row.
    Contacts without an investigator profile get blank investigator cells.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in EXPORT_COLUMNS])

    for r in rows:
        writer.writerow([_cell(getattr(r, attr)) for _, attr in EXPORT_COLUMNS])

    return buf.getvalue()
