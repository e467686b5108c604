"""
IntakeError hierarchy.

Typed exceptions so the HTTP layer (and any UI caller) can render a
specific message for every submission outcome without parsing strings.

Hierarchy:
    IntakeError                         (base; status_code + user-facing message)
    ├── ValidationError                 (required/pattern failures, blocks final submit only)
    ├── UnknownFieldError               (wizard field name not on the form)
    ├── StepOutOfRangeError             (go_to() outside 0..N-1)
    ├── UnknownCollectionError          (reference collection name not registered)
    ├── UnavailableError                (reference data could not be read)
    ├── NotAuthenticatedError           (no current session)
    ├── NotAuthorizedError              (admin-only field or view)
    ├── SubmissionInProgressError       (second submit while one is in flight)
    ├── DuplicateEmailError             (business-rule conflict, nothing written)
    └── PersistenceError                (insert failed for a non-uniqueness reason)
        └── ProfilePersistenceError     (partial success: contact saved, profile not)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class IntakeError(Exception):
    """Base exception for all intake errors."""

    status_code: int = 500
    code: str = "intake_error"

    def __init__(self, message: str, *, cause: Optional[Exception] = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)
        if cause is not None and self.__cause__ is None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """JSON envelope for API responses and structured logs."""
        return {"detail": self.message, "error": self.code}


class ValidationError(IntakeError):
    status_code = 422
    code = "validation_error"

    def __init__(self, errors: Dict[str, str], message: str = "Please fix the highlighted fields.") -> None:
        self.errors = dict(errors)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["errors"] = dict(self.errors)
        return d


class UnknownFieldError(IntakeError):
    status_code = 400
    code = "unknown_field"

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Unknown form field: {field}")


class StepOutOfRangeError(IntakeError):
    status_code = 400
    code = "step_out_of_range"

    def __init__(self, index: int, step_count: int) -> None:
        self.index = index
        super().__init__(f"Step {index} is out of range (0..{step_count - 1}).")


class UnknownCollectionError(IntakeError, ValueError):
    status_code = 404
    code = "unknown_collection"

    def __init__(self, collection: str, reason: str = "is not a reference collection") -> None:
        self.collection = collection
        super().__init__(f"'{collection}' {reason}.")


class UnavailableError(IntakeError):
    """Reference data could not be loaded. Callers degrade to empty options."""

    status_code = 503
    code = "unavailable"


class NotAuthenticatedError(IntakeError):
    status_code = 401
    code = "not_authenticated"

    def __init__(self, message: str = "You must be logged in to save a contact.") -> None:
        super().__init__(message)


class NotAuthorizedError(IntakeError):
    status_code = 403
    code = "not_authorized"

    def __init__(self, message: str = "Admin access is required.") -> None:
        super().__init__(message)


class SubmissionInProgressError(IntakeError):
    status_code = 409
    code = "submission_in_progress"

    def __init__(self, message: str = "A submission is already in progress.") -> None:
        super().__init__(message)


class DuplicateEmailError(IntakeError):
    status_code = 409
    code = "duplicate_email"

    def __init__(self, email: Optional[str] = None, *, cause: Optional[Exception] = None) -> None:
        self.email = email
        super().__init__("A contact with this email already exists.", cause=cause)


class PersistenceError(IntakeError):
    status_code = 500
    code = "persistence_error"


class ProfilePersistenceError(PersistenceError):
    """
    The contact row is committed but the investigator profile is not.

    Retrying the whole form would hit DuplicateEmailError, so callers must not offer it.
    """

    code = "profile_persistence_error"

    def __init__(self, contact_id: int, detail: str, *, cause: Optional[Exception] = None) -> None:
        self.contact_id = contact_id
        super().__init__(f"Contact saved but investigator profile failed: {detail}", cause=cause)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["contact_id"] = self.contact_id
        return d
