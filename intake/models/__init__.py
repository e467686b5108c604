# intake/models/__init__.py
# Central import surface for SQLModel table registration.
# Keeping these imports ensures init_db() sees all models and creates tables.

# Shared lookup tables (resolve-or-create targets)
from .reference import (
    City,
    Country,
    Department,
    Occupation,
    Organization,
    ReferenceBase,
    Specialty,
    StateRegion,
)

# Identity provider profiles (read-only here)
from .profile import Profile

# Intake records
from .contact import Contact, OrgType, RecordStatus
from .investigator_profile import InvestigatorProfile

__all__ = [
    "City",
    "Country",
    "Department",
    "Occupation",
    "Organization",
    "ReferenceBase",
    "Specialty",
    "StateRegion",
    "Profile",
    "Contact",
    "OrgType",
    "RecordStatus",
    "InvestigatorProfile",
]
