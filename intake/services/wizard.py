from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from intake.errors import (
    NotAuthorizedError,
    StepOutOfRangeError,
    SubmissionInProgressError,
    UnknownFieldError,
    ValidationError,
)
from intake.models.contact import OrgType
from intake.schemas import FORM_FIELDS, IntakeForm

logger = logging.getLogger(__name__)


class NavigationStyle(str, Enum):
    """
    STEPPER: Next/Previous buttons plus the clickable step header.
    TABS: the step header is the only way to move; Next/Previous are inert.
    """

    STEPPER = "stepper"
    TABS = "tabs"


@dataclass(frozen=True)
class WizardStep:
    id: str
    label: str
    fields: Tuple[str, ...]


STEPS: Tuple[WizardStep, ...] = (
    WizardStep(
        id="contact",
        label="Contact Details",
        fields=(
            "title",
            "academic_title",
            "first_name",
            "last_name",
            "email",
            "office_phone",
            "mobile_phone",
            "record_status",
        ),
    ),
    WizardStep(
        id="specialty",
        label="Specialty & Role",
        fields=(
            "occupation_name",
            "specialty_name",
            "is_investigator",
            "has_pi_experience",
            "interested_in_pi_role",
            "pi_interest_notes",
            "pi_experience_notes",
            "has_subi_experience",
            "interested_in_subi_role",
            "subi_interest_notes",
            "subi_experience_notes",
            "gcp_trained",
            "gcp_last_training_date",
            "inv_notes",
        ),
    ),
    WizardStep(
        id="organisation",
        label="Organisation",
        fields=(
            "organization_name",
            "org_type",
            "org_type_other",
            "address_line_1",
            "address_line_2",
            "city_name",
            "state_name",
            "country_name",
            "postal_code",
            "department_name",
        ),
    ),
    WizardStep(
        id="admin",
        label="Secretary / Administrator",
        fields=(
            "admin_assistant_name",
            "admin_assistant_email",
            "admin_assistant_phone",
        ),
    ),
)

# -------------------------
# Field rules
# -------------------------

REQUIRED_FIELDS: Dict[str, str] = {
    "first_name": "First name is required",
    "last_name": "Last name is required",
}

DIGITS_ONLY_FIELDS = ("office_phone", "mobile_phone", "admin_assistant_phone")
EMAIL_FIELDS = ("email", "admin_assistant_email")
ADMIN_ONLY_FIELDS = ("record_status",)

_DIGITS_RE = re.compile(r"^[0-9]*$")
_EMAIL = TypeAdapter(EmailStr)
_ADAPTERS: Dict[str, TypeAdapter] = {
    name: TypeAdapter(info.annotation) for name, info in IntakeForm.model_fields.items()
}
_ORG_TYPES = {"", *(t.value for t in OrgType)}


def default_values() -> Dict[str, Any]:
    return IntakeForm().model_dump()


def validate_field(name: str, value: Any) -> Optional[str]:
    """
    Returns an error message for one field value, or None when it is acceptable.
    """
    s = "" if value is None else str(value).strip()

    if name in REQUIRED_FIELDS and not s:
        return REQUIRED_FIELDS[name]

    if name in DIGITS_ONLY_FIELDS and not _DIGITS_RE.match(s):
        return "Digits only"

    if name in EMAIL_FIELDS and s:
        try:
            _EMAIL.validate_python(s)
        except PydanticValidationError:
            return "Enter a valid email address"

    if name == "org_type" and s not in _ORG_TYPES:
        return "Choose Hospital, Clinic or Other"

    if name == "gcp_last_training_date" and s:
        try:
            date.fromisoformat(s)
        except ValueError:
            return "Use the YYYY-MM-DD format"

    return None


class Orchestrator(Protocol):
    def submit(self, form: IntakeForm) -> int: ...


class WizardController:
    """
    Multi-step intake state machine. Nothing is persisted until submit() on the last step.

    - next()/previous() are clamped (no-ops at the ends; inert in TABS style)
    - go_to() is the step-header jump and works in both styles
    - field errors are tracked per field as values change; they never block navigation
    - submit() is not re-entrant and only resets state after a successful save
    """

    def __init__(
        self,
        *,
        is_admin: bool = False,
        navigation: NavigationStyle = NavigationStyle.STEPPER,
        steps: Tuple[WizardStep, ...] = STEPS,
    ) -> None:
        self.steps = steps
        self.navigation = NavigationStyle(navigation)
        self.is_admin = bool(is_admin)
        self.active_index = 0
        self.values: Dict[str, Any] = default_values()
        self.errors: Dict[str, str] = {}
        self._submit_lock = threading.Lock()

    # -------------------------
    # Introspection
    # -------------------------

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def last_index(self) -> int:
        return self.step_count - 1

    @property
    def active_step(self) -> WizardStep:
        return self.steps[self.active_index]

    @property
    def is_last_step(self) -> bool:
        return self.active_index == self.last_index

    @property
    def submitting(self) -> bool:
        return self._submit_lock.locked()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "steps": [{"id": s.id, "label": s.label} for s in self.steps],
            "active_index": self.active_index,
            "active_step": self.active_step.id,
            "is_last_step": self.is_last_step,
            "navigation": self.navigation.value,
            "is_admin": self.is_admin,
            "submitting": self.submitting,
            "values": dict(self.values),
            "errors": dict(self.errors),
        }

    # -------------------------
    # Navigation
    # -------------------------

    def next(self) -> int:
        if self.navigation == NavigationStyle.STEPPER:
            self.active_index = min(self.active_index + 1, self.last_index)
        return self.active_index

    def previous(self) -> int:
        if self.navigation == NavigationStyle.STEPPER:
            self.active_index = max(self.active_index - 1, 0)
        return self.active_index

    def go_to(self, index: int) -> int:
        if index < 0 or index > self.last_index:
            raise StepOutOfRangeError(index, self.step_count)
        self.active_index = index
        return self.active_index

    # -------------------------
    # Field edits
    # -------------------------

    def set_field(self, name: str, value: Any) -> Optional[str]:
        """
        Store one field value and re-validate it. Returns the field's error (or None).
        """
        if name not in FORM_FIELDS:
            raise UnknownFieldError(name)
        if name in ADMIN_ONLY_FIELDS and not self.is_admin:
            raise NotAuthorizedError(f"Only admins can change {name}.")

        if value is None and isinstance(self.values.get(name), str):
            value = ""

        try:
            value = _ADAPTERS[name].validate_python(value)
        except PydanticValidationError:
            self.values[name] = value
            self.errors[name] = "Invalid value"
            return self.errors[name]

        self.values[name] = value
        error = validate_field(name, value)
        if error:
            self.errors[name] = error
        else:
            self.errors.pop(name, None)
        return error

    def update(self, values: Mapping[str, Any]) -> Dict[str, str]:
        unknown = [k for k in values if k not in FORM_FIELDS]
        if unknown:
            raise UnknownFieldError(unknown[0])
        if not self.is_admin:
            blocked = [k for k in values if k in ADMIN_ONLY_FIELDS]
            if blocked:
                raise NotAuthorizedError(f"Only admins can change {blocked[0]}.")
        for name, value in values.items():
            self.set_field(name, value)
        return dict(self.errors)

    # -------------------------
    # Validation
    # -------------------------

    def validate_step(self, index: Optional[int] = None) -> Dict[str, str]:
        """
        Validate only the fields owned by one step (default: the active step).
        """
        idx = self.active_index if index is None else index
        if idx < 0 or idx > self.last_index:
            raise StepOutOfRangeError(idx, self.step_count)

        step_errors: Dict[str, str] = {}
        for name in self.steps[idx].fields:
            if name in self.errors and self.errors[name] == "Invalid value":
                step_errors[name] = self.errors[name]
                continue
            error = validate_field(name, self.values.get(name))
            if error:
                step_errors[name] = error
                self.errors[name] = error
            else:
                self.errors.pop(name, None)
        return step_errors

    def validate_all(self) -> Dict[str, str]:
        found: Dict[str, str] = {}
        for i in range(self.step_count):
            found.update(self.validate_step(i))
        return found

    def first_step_with_error(self, errors: Mapping[str, str]) -> Optional[int]:
        for i, step in enumerate(self.steps):
            if any(f in errors for f in step.fields):
                return i
        return None

    # -------------------------
    # Submit / reset
    # -------------------------

    def to_form(self) -> IntakeForm:
        return IntakeForm(**self.values)

    def submit(self, orchestrator: Orchestrator) -> Optional[int]:
        """
        Hand the collected values to the orchestrator.

        Returns None (no-op) unless the last step is active. Raises ValidationError for
        field problems and SubmissionInProgressError when a submit is already running.
        Any orchestrator error propagates with the step position and values untouched.
        """
        if not self.is_last_step:
            return None

        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgressError()

        try:
            errors = self.validate_all()
            if errors:
                raise ValidationError(errors)

            contact_id = orchestrator.submit(self.to_form())

            # Reset while still holding the lock.
            logger.info("Wizard submitted contact id=%s; resetting", contact_id)
            self.reset()
        finally:
            self._submit_lock.release()

        return contact_id

    def reset(self) -> None:
        self.active_index = 0
        self.values = default_values()
        self.errors = {}
