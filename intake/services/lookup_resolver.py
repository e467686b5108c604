from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from intake.errors import PersistenceError
from intake.services.reference_store import CollectionSpec, get_collection

logger = logging.getLogger(__name__)


def clean_label(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def is_unique_violation(exc: BaseException) -> bool:
    """
    True when the store rejected a write because of a uniqueness constraint.

    SQLite: "UNIQUE constraint failed: ..."; Postgres: "duplicate key value violates unique constraint".
    Foreign key / NOT NULL failures are IntegrityErrors too and must not match.
    """
    if not isinstance(exc, IntegrityError):
        return False
    raw = str(getattr(exc, "orig", None) or exc).lower()
    return "unique" in raw or "duplicate key" in raw


class LookupResolver:
    """
    Resolve-or-create by case-insensitive name (upsert-by-natural-key).

    One implementation for every lookup table; the uniqueness race is handled here
    once: a unique violation on insert means another writer created the row first,
    so we re-query and return that id.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find(self, collection: str, label: Optional[str], parent_id: Optional[int] = None) -> Optional[int]:
        spec = get_collection(collection)
        name = clean_label(label)
        if name is None:
            return None
        return self._find(spec, name, parent_id)

    def resolve(self, collection: str, label: Optional[str], parent_id: Optional[int] = None) -> Optional[int]:
        """
        Returns the id of the row named `label` in `collection`, creating it if needed.

        - blank/whitespace label -> None (nothing created)
        - scoped collections (state_region, city) match within parent_id only
        """
        spec = get_collection(collection)
        name = clean_label(label)
        if name is None:
            return None

        existing_id = self._find(spec, name, parent_id)
        if existing_id is not None:
            return existing_id

        row = spec.model(name=name)
        if spec.parent_field:
            setattr(row, spec.parent_field, parent_id)

        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except IntegrityError as e:
            self.session.rollback()
            if not is_unique_violation(e):
                logger.error("Insert failed on %s for %r: %s", collection, name, e)
                raise PersistenceError(f"Could not save {collection} '{name}': {e.orig}", cause=e) from e

            winner_id = self._find(spec, name, parent_id)
            if winner_id is None:
                raise PersistenceError(f"Could not save {collection} '{name}': {e.orig}", cause=e) from e

            logger.warning("Lost insert race on %s for %r; reusing id=%s", collection, name, winner_id)
            return winner_id
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Insert failed on %s for %r: %s", collection, name, e)
            raise PersistenceError(f"Could not save {collection} '{name}': {e}", cause=e) from e

        logger.info("Created %s id=%s name=%r parent_id=%s", collection, row.id, name, parent_id)
        return int(row.id)  # type: ignore[attr-defined]

    def _find(self, spec: CollectionSpec, name: str, parent_id: Optional[int]) -> Optional[int]:
        model = spec.model
        stmt = select(model.id).where(func.lower(model.name) == func.lower(name))  # type: ignore[attr-defined]

        if spec.parent_field:
            parent_col = getattr(model, spec.parent_field)
            stmt = stmt.where(parent_col.is_(None) if parent_id is None else parent_col == parent_id)

        found = self.session.exec(stmt.order_by(model.id).limit(1)).first()  # type: ignore[attr-defined]
        return int(found) if found is not None else None
