from __future__ import annotations

from datetime import date

import pytest
from sqlmodel import select

from intake.errors import (
    DuplicateEmailError,
    NotAuthenticatedError,
    PersistenceError,
    ProfilePersistenceError,
)
from intake.models.contact import Contact
from intake.models.investigator_profile import InvestigatorProfile
from intake.models.reference import Country, Organization, StateRegion
from intake.schemas import IntakeForm
from intake.services.submission import SubmissionOrchestrator, build_address, org_type_label


def ada(**overrides) -> IntakeForm:
    data = {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.org"}
    data.update(overrides)
    return IntakeForm(**data)


@pytest.fixture
def orchestrator(db, make_sessions):
    return SubmissionOrchestrator(db, make_sessions("user-1"))


def test_minimal_contact_has_no_references(db, orchestrator):
    contact_id = orchestrator.submit(ada())

    contact = db.get(Contact, contact_id)
    assert contact.first_name == "Ada"
    assert contact.email == "ada@example.org"
    assert contact.created_by == "user-1"
    assert contact.hospital_clinic_address is None
    for fk in ("organization_id", "specialty_id", "occupation_id", "department_id", "country_id", "state_id", "city_id"):
        assert getattr(contact, fk) is None
    assert db.exec(select(InvestigatorProfile)).all() == []


def test_duplicate_email_is_case_insensitive(db, orchestrator):
    db.add(Contact(first_name="Existing", last_name="Person", email="Ada@Example.org", created_by="user-1"))
    db.commit()

    with pytest.raises(DuplicateEmailError):
        orchestrator.submit(ada())

    assert len(db.exec(select(Contact)).all()) == 1


def test_shared_organization_is_created_once(db, orchestrator):
    first = orchestrator.submit(ada(email="", organization_name="Acme Clinic"))
    second = orchestrator.submit(ada(first_name="Grace", last_name="Hopper", email="", organization_name="acme clinic"))

    orgs = db.exec(select(Organization)).all()
    assert [o.name for o in orgs] == ["Acme Clinic"]
    assert db.get(Contact, first).organization_id == orgs[0].id
    assert db.get(Contact, second).organization_id == orgs[0].id


def test_new_country_is_created_before_its_state(db, orchestrator):
    contact_id = orchestrator.submit(ada(country_name="Kenya", state_name="Nairobi", city_name="Karen"))

    country = db.exec(select(Country).where(Country.name == "Kenya")).one()
    state = db.exec(select(StateRegion).where(StateRegion.name == "Nairobi")).one()
    contact = db.get(Contact, contact_id)

    assert state.country_id == country.id
    assert contact.country_id == country.id
    assert contact.state_id == state.id
    assert contact.city_id is not None


def test_profile_failure_keeps_the_saved_contact(db, orchestrator):
    form = ada(is_investigator=True, gcp_trained=True, gcp_last_training_date="not-a-date")

    with pytest.raises(ProfilePersistenceError) as exc_info:
        orchestrator.submit(form)

    err = exc_info.value
    assert isinstance(err, PersistenceError)
    assert db.get(Contact, err.contact_id) is not None
    assert err.to_dict()["contact_id"] == err.contact_id
    assert db.exec(select(InvestigatorProfile)).all() == []


def test_investigator_profile_written(db, orchestrator):
    form = ada(
        is_investigator=True,
        has_pi_experience=True,
        pi_experience_notes="Two phase III trials",
        gcp_trained=True,
        gcp_last_training_date="2024-03-15",
        inv_notes="Prefers oncology studies",
    )

    contact_id = orchestrator.submit(form)

    profile = db.exec(select(InvestigatorProfile).where(InvestigatorProfile.contact_id == contact_id)).one()
    assert profile.has_pi_experience is True
    assert profile.pi_experience_notes == "Two phase III trials"
    assert profile.gcp_last_training_date == date(2024, 3, 15)
    assert profile.notes == "Prefers oncology studies"
    assert profile.subi_experience_notes is None


def test_investigator_fields_ignored_when_not_flagged(db, orchestrator):
    orchestrator.submit(ada(has_pi_experience=True, pi_experience_notes="ignored"))

    assert db.exec(select(InvestigatorProfile)).all() == []


def test_no_session_fails_before_any_write(db, make_sessions):
    orchestrator = SubmissionOrchestrator(db, make_sessions(None))

    with pytest.raises(NotAuthenticatedError):
        orchestrator.submit(ada(organization_name="Acme Clinic"))

    assert db.exec(select(Organization)).all() == []
    assert db.exec(select(Contact)).all() == []


def test_concurrent_duplicate_email_maps_to_duplicate_error(db, orchestrator, monkeypatch):
    db.add(Contact(first_name="Other", last_name="Tab", email="ADA@example.org", created_by="user-1"))
    db.commit()

    # Pre-check ran before the other submit committed.
    monkeypatch.setattr(SubmissionOrchestrator, "_ensure_email_available", lambda self, email: None)

    with pytest.raises(DuplicateEmailError):
        orchestrator.submit(ada())


def test_blank_email_contacts_do_not_collide(db, orchestrator):
    orchestrator.submit(ada(email=""))
    orchestrator.submit(ada(first_name="Grace", email="  "))

    assert [c.email for c in db.exec(select(Contact)).all()] == [None, None]


def test_blank_strings_stored_as_null(db, orchestrator):
    contact_id = orchestrator.submit(ada(title="  ", mobile_phone=""))

    contact = db.get(Contact, contact_id)
    assert contact.title is None
    assert contact.mobile_phone is None


# -------------------------
# Derived address
# -------------------------

def test_build_address_full():
    form = ada(org_type="Hospital", address_line_1="1 Hospital Rd", address_line_2="Block B", postal_code="00100")

    assert build_address(form) == "Org type: Hospital\n1 Hospital Rd\nBlock B\nPostal code: 00100"


def test_build_address_skips_blank_parts():
    assert build_address(ada(address_line_2="Upper Hill")) == "Upper Hill"
    assert build_address(ada()) is None


def test_other_org_type_uses_free_text():
    assert org_type_label("Other", "Research institute") == "Research institute"
    assert org_type_label("Other", " ") == "Other"
    assert org_type_label("Clinic", "ignored") == "Clinic"
    assert org_type_label("", "ignored") is None
