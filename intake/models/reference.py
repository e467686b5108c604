from __future__ import annotations

from typing import Optional

from sqlalchemy import Index, func
from sqlmodel import Field, SQLModel


class ReferenceBase(SQLModel):
    """
    Shared shape of every named lookup row (country, organization, specialty, ...).

    Rows are created lazily by the lookup resolver and never mutated afterwards.
    Case-insensitive name uniqueness is enforced by the functional indexes below.
    """

    name: str = Field(index=True, max_length=255)


class Country(ReferenceBase, table=True):
    __tablename__ = "country"

    id: Optional[int] = Field(default=None, primary_key=True)


class StateRegion(ReferenceBase, table=True):
    __tablename__ = "state_region"

    id: Optional[int] = Field(default=None, primary_key=True)
    country_id: Optional[int] = Field(default=None, foreign_key="country.id", index=True)


class City(ReferenceBase, table=True):
    __tablename__ = "city"

    id: Optional[int] = Field(default=None, primary_key=True)
    state_id: Optional[int] = Field(default=None, foreign_key="state_region.id", index=True)


class Organization(ReferenceBase, table=True):
    __tablename__ = "organization"

    id: Optional[int] = Field(default=None, primary_key=True)


class Specialty(ReferenceBase, table=True):
    __tablename__ = "specialty"

    id: Optional[int] = Field(default=None, primary_key=True)


class Occupation(ReferenceBase, table=True):
    __tablename__ = "occupation"

    id: Optional[int] = Field(default=None, primary_key=True)


class Department(ReferenceBase, table=True):
    __tablename__ = "department"

    id: Optional[int] = Field(default=None, primary_key=True)


# Case-insensitive natural keys. Scoped collections are unique per parent.
Index("uq_country_name_lower", func.lower(Country.name), unique=True)
Index("uq_organization_name_lower", func.lower(Organization.name), unique=True)
Index("uq_specialty_name_lower", func.lower(Specialty.name), unique=True)
Index("uq_occupation_name_lower", func.lower(Occupation.name), unique=True)
Index("uq_department_name_lower", func.lower(Department.name), unique=True)
Index("uq_state_region_country_name_lower", StateRegion.country_id, func.lower(StateRegion.name), unique=True)
Index("uq_city_state_name_lower", City.state_id, func.lower(City.name), unique=True)
