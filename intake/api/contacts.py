from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from intake.api.deps import require_admin
from intake.services.listing import ContactListing, export_csv, get_contact_listing, list_contacts
from intake.services.session import ProfileSessionProvider

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=List[ContactListing])
def list_all_contacts(
    search: Optional[str] = Query(default=None, description="Name, email, organization or specialty"),
    country: Optional[str] = Query(default=None, description="Exact country name"),
    sessions: ProfileSessionProvider = Depends(require_admin),
) -> List[ContactListing]:
    """
    Admin table: newest first, lookup names resolved, investigator fields when present.
    """
    return list_contacts(sessions.db, search=search, country=country)


@router.get("/export.csv")
def export_contacts(
    search: Optional[str] = None,
    country: Optional[str] = None,
    sessions: ProfileSessionProvider = Depends(require_admin),
) -> Response:
    """
    Same rows (and filters) as the table, as a CSV download.
    """
    body = export_csv(list_contacts(sessions.db, search=search, country=country))
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="contacts_export.csv"'},
    )


@router.get("/{contact_id}", response_model=ContactListing)
def get_contact(contact_id: int, sessions: ProfileSessionProvider = Depends(require_admin)) -> ContactListing:
    row = get_contact_listing(sessions.db, contact_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    return row
