from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from intake.errors import (
    DuplicateEmailError,
    NotAuthenticatedError,
    PersistenceError,
    ProfilePersistenceError,
)
from intake.models.contact import Contact, OrgType, RecordStatus
from intake.models.investigator_profile import InvestigatorProfile
from intake.schemas import IntakeForm
from intake.services.lookup_resolver import LookupResolver, clean_label, is_unique_violation
from intake.services.session import SessionProvider

logger = logging.getLogger(__name__)


def _opt(raw: Optional[str]) -> Optional[str]:
    """Blank form strings are stored as NULL."""
    return clean_label(raw)


def _parse_date(raw: Optional[str]) -> Optional[date]:
    s = clean_label(raw)
    return date.fromisoformat(s) if s else None


def normalize_email(raw: Optional[str]) -> Optional[str]:
    return clean_label(raw)


def org_type_label(org_type: Optional[str], org_type_other: Optional[str]) -> Optional[str]:
    kind = clean_label(org_type)
    if not kind:
        return None
    if kind == OrgType.OTHER.value:
        return clean_label(org_type_other) or OrgType.OTHER.value
    return kind


def build_address(form: IntakeForm) -> Optional[str]:
    """
    Composite hospital/clinic address, one part per line, blank parts skipped:

        Org type: <Hospital | Clinic | other text>
        <address line 1>
        <address line 2>
        Postal code: <postal code>
    """
    parts = []

    label = org_type_label(form.org_type, form.org_type_other)
    if label:
        parts.append(f"Org type: {label}")

    line_1 = clean_label(form.address_line_1)
    if line_1:
        parts.append(line_1)

    line_2 = clean_label(form.address_line_2)
    if line_2:
        parts.append(line_2)

    postal_code = clean_label(form.postal_code)
    if postal_code:
        parts.append(f"Postal code: {postal_code}")

    return "\n".join(parts) if parts else None


@dataclass(frozen=True)
class ResolvedReferences:
    country_id: Optional[int] = None
    state_id: Optional[int] = None
    city_id: Optional[int] = None
    organization_id: Optional[int] = None
    department_id: Optional[int] = None
    specialty_id: Optional[int] = None
    occupation_id: Optional[int] = None


class SubmissionOrchestrator:
    """
    Final-step save of an intake form.

    Order (each step short-circuits):
      email pre-check -> session -> reference resolution -> address -> contact insert
      -> investigator profile insert (only if flagged)

    The contact commits before the profile is written. A profile failure is reported as
    ProfilePersistenceError naming the saved contact id, never as a full failure.
    """

    def __init__(self, db: Session, sessions: SessionProvider) -> None:
        self.db = db
        self.sessions = sessions
        self.resolver = LookupResolver(db)

    def submit(self, form: IntakeForm) -> int:
        email = normalize_email(form.email)

        if email:
            self._ensure_email_available(email)

        current = self.sessions.get_current_session()
        if current is None:
            logger.warning("Contact submit rejected: no session")
            raise NotAuthenticatedError()

        refs = self.resolve_references(form)
        address = build_address(form)

        contact = self._insert_contact(form, email=email, address=address, refs=refs, created_by=current.user_id)
        contact_id = int(contact.id)  # type: ignore[arg-type]

        if form.is_investigator:
            try:
                self._insert_profile(contact_id, form)
            except (SQLAlchemyError, ValueError) as e:
                self.db.rollback()
                logger.error("Investigator profile failed for contact id=%s: %s", contact_id, e)
                raise ProfilePersistenceError(contact_id, str(getattr(e, "orig", None) or e), cause=e) from e

        logger.info(
            "Contact saved id=%s created_by=%s investigator=%s",
            contact_id,
            current.user_id,
            bool(form.is_investigator),
        )
        return contact_id

    # -------------------------
    # Steps
    # -------------------------

    def _ensure_email_available(self, email: str) -> None:
        try:
            existing = self.db.exec(
                select(Contact.id).where(func.lower(Contact.email) == func.lower(email)).limit(1)
            ).first()
        except SQLAlchemyError as e:
            logger.error("Email uniqueness check failed: %s", e)
            raise PersistenceError("Could not verify email uniqueness. Please try again.", cause=e) from e

        if existing is not None:
            logger.warning("Contact submit rejected: duplicate email")
            raise DuplicateEmailError(email)

    def resolve_references(self, form: IntakeForm) -> ResolvedReferences:
        """
        Resolve-or-create every free-text lookup. State is scoped to the resolved
        country and city to the resolved state, so those three go first.
        """
        country_id = self.resolver.resolve("country", form.country_name)
        state_id = self.resolver.resolve("state_region", form.state_name, parent_id=country_id)
        city_id = self.resolver.resolve("city", form.city_name, parent_id=state_id)

        return ResolvedReferences(
            country_id=country_id,
            state_id=state_id,
            city_id=city_id,
            organization_id=self.resolver.resolve("organization", form.organization_name),
            department_id=self.resolver.resolve("department", form.department_name),
            specialty_id=self.resolver.resolve("specialty", form.specialty_name),
            occupation_id=self.resolver.resolve("occupation", form.occupation_name),
        )

    def _insert_contact(
        self,
        form: IntakeForm,
        *,
        email: Optional[str],
        address: Optional[str],
        refs: ResolvedReferences,
        created_by: str,
    ) -> Contact:
        contact = Contact(
            title=_opt(form.title),
            first_name=form.first_name.strip(),
            last_name=form.last_name.strip(),
            academic_title=_opt(form.academic_title),
            email=email,
            mobile_phone=_opt(form.mobile_phone),
            office_phone=_opt(form.office_phone),
            hospital_clinic_address=address,
            admin_assistant_name=_opt(form.admin_assistant_name),
            admin_assistant_email=_opt(form.admin_assistant_email),
            admin_assistant_phone=_opt(form.admin_assistant_phone),
            country_id=refs.country_id,
            state_id=refs.state_id,
            city_id=refs.city_id,
            organization_id=refs.organization_id,
            specialty_id=refs.specialty_id,
            occupation_id=refs.occupation_id,
            department_id=refs.department_id,
            record_status=form.record_status or RecordStatus.ACTIVE,
            created_by=created_by,
        )

        try:
            self.db.add(contact)
            self.db.commit()
            self.db.refresh(contact)
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_unique_violation(e):
                logger.warning("Contact insert hit the email unique index (concurrent submit)")
                raise DuplicateEmailError(email, cause=e) from e
            logger.error("Contact insert failed: %s", e)
            raise PersistenceError(str(getattr(e, "orig", None) or e), cause=e) from e

        return contact

    def _insert_profile(self, contact_id: int, form: IntakeForm) -> InvestigatorProfile:
        profile = InvestigatorProfile(
            contact_id=contact_id,
            has_pi_experience=form.has_pi_experience,
            pi_experience_notes=_opt(form.pi_experience_notes),
            interested_in_pi_role=form.interested_in_pi_role,
            pi_interest_notes=_opt(form.pi_interest_notes),
            has_subi_experience=form.has_subi_experience,
            subi_experience_notes=_opt(form.subi_experience_notes),
            interested_in_subi_role=form.interested_in_subi_role,
            subi_interest_notes=_opt(form.subi_interest_notes),
            gcp_trained=form.gcp_trained,
            gcp_last_training_date=_parse_date(form.gcp_last_training_date),
            notes=_opt(form.inv_notes),
        )
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile
