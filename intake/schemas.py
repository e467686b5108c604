from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from intake.models.contact import RecordStatus


class IntakeForm(BaseModel):
    """
    Every value the intake wizard collects, with the form's defaults.

    Free-text *_name fields are resolved (or created) against the lookup tables on submit.
    Investigator fields are only persisted when is_investigator is True.
    """

    model_config = ConfigDict(extra="forbid")

    # Contact details
    title: str = ""
    academic_title: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    office_phone: str = ""
    mobile_phone: str = ""
    record_status: RecordStatus = RecordStatus.ACTIVE

    # Specialty & role
    occupation_name: str = ""
    specialty_name: str = ""
    is_investigator: bool = False
    has_pi_experience: bool = False
    pi_experience_notes: str = ""
    interested_in_pi_role: bool = False
    pi_interest_notes: str = ""
    has_subi_experience: bool = False
    subi_experience_notes: str = ""
    interested_in_subi_role: bool = False
    subi_interest_notes: str = ""
    gcp_trained: bool = False
    gcp_last_training_date: str = ""  # ISO date (YYYY-MM-DD) or blank
    inv_notes: str = ""

    # Organisation
    organization_name: str = ""
    org_type: str = ""  # Hospital | Clinic | Other | ""
    org_type_other: str = ""
    address_line_1: str = ""
    address_line_2: str = ""
    city_name: str = ""
    state_name: str = ""
    country_name: str = ""
    postal_code: str = ""
    department_name: str = ""

    # Secretary / administrator
    admin_assistant_name: str = ""
    admin_assistant_email: str = ""
    admin_assistant_phone: str = ""


FORM_FIELDS = tuple(IntakeForm.model_fields.keys())
