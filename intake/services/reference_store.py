from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlmodel import Session, select

from intake.database import get_session
from intake.errors import UnavailableError, UnknownCollectionError
from intake.models.reference import (
    City,
    Country,
    Department,
    Occupation,
    Organization,
    ReferenceBase,
    Specialty,
    StateRegion,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceEntity:
    """
    Uniform read-side view of any lookup row.
    parent_id is the country id for state_region rows and the state id for city rows.
    """
    id: int
    name: str
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class CollectionSpec:
    model: Type[ReferenceBase]
    parent_field: Optional[str] = None

    @property
    def is_scoped(self) -> bool:
        return self.parent_field is not None


# -------------------------
# Collection registry
# -------------------------

COLLECTIONS: Dict[str, CollectionSpec] = {
    "country": CollectionSpec(Country),
    "state_region": CollectionSpec(StateRegion, parent_field="country_id"),
    "city": CollectionSpec(City, parent_field="state_id"),
    "organization": CollectionSpec(Organization),
    "specialty": CollectionSpec(Specialty),
    "occupation": CollectionSpec(Occupation),
    "department": CollectionSpec(Department),
}

# Enumerable lists loaded up-front when the intake view mounts
STATIC_COLLECTIONS = ("country", "organization", "specialty", "occupation", "department")


def get_collection(collection: str) -> CollectionSpec:
    spec = COLLECTIONS.get((collection or "").strip().lower())
    if spec is None:
        raise UnknownCollectionError(collection)
    return spec


def to_entity(row: ReferenceBase, spec: CollectionSpec) -> ReferenceEntity:
    parent_id = getattr(row, spec.parent_field) if spec.parent_field else None
    return ReferenceEntity(id=int(row.id), name=row.name, parent_id=parent_id)  # type: ignore[attr-defined]


class ReferenceStore:
    """
    Read-only access to the shared lookup tables.

    Each call opens its own short-lived Session from session_factory so reads
    can run concurrently in worker threads (see CascadeLoader.load_options).
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session) -> None:
        self._session_factory = session_factory

    def list_all(self, collection: str) -> List[ReferenceEntity]:
        spec = get_collection(collection)
        stmt = select(spec.model).order_by(spec.model.name)
        return self._run(collection, spec, stmt)

    def list_by_parent(self, collection: str, parent_id: int) -> List[ReferenceEntity]:
        spec = get_collection(collection)
        if not spec.is_scoped:
            raise UnknownCollectionError(collection, reason="is not scoped by a parent")

        parent_col = getattr(spec.model, spec.parent_field)  # type: ignore[arg-type]
        stmt = select(spec.model).where(parent_col == parent_id).order_by(spec.model.name)
        return self._run(collection, spec, stmt)

    def _run(self, collection: str, spec: CollectionSpec, stmt) -> List[ReferenceEntity]:  # noqa: ANN001
        try:
            with self._session_factory() as session:
                rows = session.exec(stmt).all()
                return [to_entity(r, spec) for r in rows]
        except (OperationalError, DBAPIError) as e:
            logger.warning("Reference read failed for %s: %s", collection, e)
            raise UnavailableError(f"Failed to load {collection} options.", cause=e) from e
