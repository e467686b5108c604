from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from intake.api.deps import get_reference_store
from intake.errors import UnavailableError
from intake.services.reference_store import ReferenceEntity, ReferenceStore

router = APIRouter(prefix="/references", tags=["references"])


def _serialize(items: List[ReferenceEntity]) -> List[Dict[str, Any]]:
    return [{"id": e.id, "name": e.name, "parent_id": e.parent_id} for e in items]


@router.get("/{collection}")
def list_reference(collection: str, store: ReferenceStore = Depends(get_reference_store)) -> Dict[str, Any]:
    """
    Options for one lookup table, ordered by name.

    Store outages degrade to an empty list plus a notice (the form stays usable).
    """
    try:
        items = store.list_all(collection)
    except UnavailableError as e:
        return {"collection": collection, "items": [], "notice": e.message}
    return {"collection": collection, "items": _serialize(items)}


@router.get("/{collection}/by-parent/{parent_id}")
def list_reference_by_parent(
    collection: str,
    parent_id: int,
    store: ReferenceStore = Depends(get_reference_store),
) -> Dict[str, Any]:
    try:
        items = store.list_by_parent(collection, parent_id)
    except UnavailableError as e:
        return {"collection": collection, "parent_id": parent_id, "items": [], "notice": e.message}
    return {"collection": collection, "parent_id": parent_id, "items": _serialize(items)}
