from __future__ import annotations

from typing import Dict, List

from sqlalchemy import func
from sqlmodel import Session, select

from intake.database import init_db, session_scope
from intake.services.lookup_resolver import LookupResolver
from intake.services.reference_store import COLLECTIONS

# Country -> state/region -> cities. Safe to re-run: every row goes through resolve-or-create.
SAMPLE_GEOGRAPHY: Dict[str, Dict[str, List[str]]] = {
    "Kenya": {
        "Nairobi": ["Nairobi", "Karen", "Westlands"],
        "Mombasa": ["Mombasa", "Nyali"],
        "Kisumu": ["Kisumu"],
    },
    "Uganda": {
        "Central Region": ["Kampala", "Entebbe"],
        "Western Region": ["Mbarara"],
    },
    "South Africa": {
        "Gauteng": ["Johannesburg", "Pretoria"],
        "Western Cape": ["Cape Town", "Stellenbosch"],
    },
}

SAMPLE_LISTS: Dict[str, List[str]] = {
    "specialty": [
        "Cardiology",
        "Dermatology",
        "Endocrinology",
        "Infectious Diseases",
        "Oncology",
        "Paediatrics",
        "Psychiatry",
    ],
    "occupation": ["Physician", "Nurse", "Pharmacist", "Clinical Research Coordinator", "Data Manager"],
    "department": ["Internal Medicine", "Research Unit", "Pharmacy", "Outpatients"],
}


def seed(session: Session) -> Dict[str, int]:
    """
    Seed lookup tables through the resolver so names stay unique case-insensitively.
    """
    resolver = LookupResolver(session)

    for country, regions in SAMPLE_GEOGRAPHY.items():
        country_id = resolver.resolve("country", country)
        for region, cities in regions.items():
            state_id = resolver.resolve("state_region", region, parent_id=country_id)
            for city in cities:
                resolver.resolve("city", city, parent_id=state_id)

    for collection, names in SAMPLE_LISTS.items():
        for name in names:
            resolver.resolve(collection, name)

    counts: Dict[str, int] = {}
    for name, spec in COLLECTIONS.items():
        counts[name] = int(session.exec(select(func.count()).select_from(spec.model)).one())
    return counts


def main() -> None:
    # Ensure tables exist (local dev)
    init_db()

    with session_scope() as session:
        counts = seed(session)

    summary = ", ".join(f"{k}={v}" for k, v in counts.items())
    print(f"Seeded reference data: {summary}")


if __name__ == "__main__":
    main()
