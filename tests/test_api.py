from __future__ import annotations

from sqlmodel import select

from intake.models.contact import Contact
from intake.services.lookup_resolver import LookupResolver


def _seed_geography(db):
    resolver = LookupResolver(db)
    kenya = resolver.resolve("country", "Kenya")
    nairobi = resolver.resolve("state_region", "Nairobi", parent_id=kenya)
    resolver.resolve("city", "Karen", parent_id=nairobi)
    resolver.resolve("specialty", "Oncology")
    return kenya, nairobi


def _open(client, headers, **payload):
    resp = client.post("/wizard", json=payload or None, headers=headers)
    assert resp.status_code == 200
    return resp.json()


# -------------------------
# Meta / session
# -------------------------

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    assert resp.json()["app"] == "investigator-intake"


def test_me_reports_admin_flag(client, admin_headers, user_headers):
    assert client.get("/me").json() == {"authenticated": False, "user_id": None, "is_admin": False}
    assert client.get("/me", headers=user_headers).json()["is_admin"] is False
    assert client.get("/me", headers=admin_headers).json()["is_admin"] is True


# -------------------------
# References
# -------------------------

def test_reference_lists(client, db):
    kenya, nairobi = _seed_geography(db)

    countries = client.get("/references/country").json()
    assert [i["name"] for i in countries["items"]] == ["Kenya"]

    states = client.get(f"/references/state_region/by-parent/{kenya}").json()
    assert states["items"] == [{"id": nairobi, "name": "Nairobi", "parent_id": kenya}]


def test_unknown_reference_collection_is_404(client):
    resp = client.get("/references/planet")

    assert resp.status_code == 404
    assert resp.json()["error"] == "unknown_collection"


# -------------------------
# Wizard
# -------------------------

def test_open_wizard_loads_options(client, db, user_headers):
    _seed_geography(db)

    state = _open(client, user_headers)

    assert state["active_index"] == 0
    assert state["navigation"] == "stepper"
    assert state["options_ready"] is True
    assert [o["name"] for o in state["options"]["country"]] == ["Kenya"]
    assert [o["name"] for o in state["options"]["specialty"]] == ["Oncology"]


def test_patch_country_and_state_drive_cascade(client, db, user_headers):
    _seed_geography(db)
    wid = _open(client, user_headers)["wizard_id"]

    state = client.patch(f"/wizard/{wid}/fields", json={"values": {"country_name": "kenya"}}).json()
    assert [o["name"] for o in state["options"]["state_region"]] == ["Nairobi"]

    state = client.patch(f"/wizard/{wid}/fields", json={"values": {"state_name": "Nairobi"}}).json()
    assert [o["name"] for o in state["options"]["city"]] == ["Karen"]
    assert state["values"]["state_name"] == "Nairobi"

    state = client.patch(f"/wizard/{wid}/fields", json={"values": {"country_name": ""}}).json()
    assert state["options"]["state_region"] == []
    assert state["options"]["city"] == []


def test_cascade_select_by_id(client, db, user_headers):
    kenya, nairobi = _seed_geography(db)
    wid = _open(client, user_headers)["wizard_id"]

    state = client.post(f"/wizard/{wid}/cascade", json={"country": kenya, "state": nairobi}).json()

    assert [o["name"] for o in state["options"]["city"]] == ["Karen"]


def test_navigation_endpoints(client, user_headers):
    wid = _open(client, user_headers)["wizard_id"]

    assert client.post(f"/wizard/{wid}/previous").json()["active_index"] == 0
    assert client.post(f"/wizard/{wid}/next").json()["active_index"] == 1
    assert client.post(f"/wizard/{wid}/go-to/3").json()["is_last_step"] is True

    resp = client.post(f"/wizard/{wid}/go-to/7")
    assert resp.status_code == 400
    assert resp.json()["error"] == "step_out_of_range"


def test_tabs_navigation_requested_on_open(client, user_headers):
    wid = _open(client, user_headers, navigation="tabs")["wizard_id"]

    assert client.post(f"/wizard/{wid}/next").json()["active_index"] == 0


def test_unknown_field_and_admin_field(client, user_headers):
    wid = _open(client, user_headers)["wizard_id"]

    resp = client.patch(f"/wizard/{wid}/fields", json={"values": {"shoe_size": "9"}})
    assert resp.status_code == 400

    resp = client.patch(f"/wizard/{wid}/fields", json={"values": {"record_status": "Inactive"}})
    assert resp.status_code == 403


def test_validate_reports_step_errors(client, user_headers):
    wid = _open(client, user_headers)["wizard_id"]

    body = client.post(f"/wizard/{wid}/validate").json()

    assert set(body["step_errors"]) == {"first_name", "last_name"}


def test_submit_flow(client, db, user_headers):
    wid = _open(client, user_headers)["wizard_id"]
    client.patch(
        f"/wizard/{wid}/fields",
        json={"values": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.org"}},
    )

    early = client.post(f"/wizard/{wid}/submit", headers=user_headers).json()
    assert early["submitted"] is False

    client.post(f"/wizard/{wid}/go-to/3")
    done = client.post(f"/wizard/{wid}/submit", headers=user_headers).json()

    assert done["submitted"] is True
    assert done["message"] == "Contact saved successfully."
    assert done["active_index"] == 0
    assert done["values"]["first_name"] == ""
    assert db.get(Contact, done["contact_id"]).created_by == "user-1"


def test_submit_errors_are_enveloped(client, db, user_headers):
    wid = _open(client, user_headers)["wizard_id"]
    client.post(f"/wizard/{wid}/go-to/3")

    resp = client.post(f"/wizard/{wid}/submit", headers=user_headers)
    assert resp.status_code == 422
    assert set(resp.json()["errors"]) == {"first_name", "last_name"}

    client.patch(f"/wizard/{wid}/fields", json={"values": {"first_name": "Ada", "last_name": "Lovelace"}})
    resp = client.post(f"/wizard/{wid}/submit")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "You must be logged in to save a contact."
    assert client.get(f"/wizard/{wid}").json()["values"]["first_name"] == "Ada"

    db.add(Contact(first_name="Ada", last_name="L", email="ADA@example.org", created_by="user-1"))
    db.commit()
    client.patch(f"/wizard/{wid}/fields", json={"values": {"email": "ada@example.org"}})
    resp = client.post(f"/wizard/{wid}/submit", headers=user_headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == "duplicate_email"
    assert len(db.exec(select(Contact)).all()) == 1


def test_close_wizard(client, user_headers, wizards):
    wid = _open(client, user_headers)["wizard_id"]
    assert len(wizards) == 1

    assert client.delete(f"/wizard/{wid}").json() == {"ok": True}
    assert len(wizards) == 0
    assert client.get(f"/wizard/{wid}").status_code == 404
    assert client.delete(f"/wizard/{wid}").status_code == 404


def test_submit_clears_dependent_options(client, db, user_headers):
    _seed_geography(db)
    wid = _open(client, user_headers)["wizard_id"]
    client.patch(
        f"/wizard/{wid}/fields",
        json={"values": {"first_name": "Ada", "last_name": "Lovelace", "country_name": "Kenya", "state_name": "Nairobi"}},
    )
    client.post(f"/wizard/{wid}/go-to/3")

    done = client.post(f"/wizard/{wid}/submit", headers=user_headers).json()

    assert done["submitted"] is True
    assert done["values"]["country_name"] == ""
    assert done["options"]["state_region"] == []
    assert done["options"]["city"] == []
    assert [o["name"] for o in done["options"]["country"]] == ["Kenya"]

    # The next contact starts from a clean cascade.
    again = client.patch(f"/wizard/{wid}/fields", json={"values": {"state_name": "Nairobi"}}).json()
    assert again["options"]["city"] == []


def test_cascade_selection_is_saved_on_the_contact(client, db, user_headers):
    kenya, nairobi = _seed_geography(db)
    wid = _open(client, user_headers)["wizard_id"]

    state = client.post(f"/wizard/{wid}/cascade", json={"country": kenya, "state": nairobi}).json()
    assert state["values"]["country_name"] == "Kenya"
    assert state["values"]["state_name"] == "Nairobi"

    client.patch(f"/wizard/{wid}/fields", json={"values": {"first_name": "Ada", "last_name": "Lovelace"}})
    client.post(f"/wizard/{wid}/go-to/3")
    done = client.post(f"/wizard/{wid}/submit", headers=user_headers).json()

    contact = db.get(Contact, done["contact_id"])
    assert contact.country_id == kenya
    assert contact.state_id == nairobi


def test_cascade_selection_cleared_by_blank_country(client, db, user_headers):
    kenya, nairobi = _seed_geography(db)
    wid = _open(client, user_headers)["wizard_id"]
    client.post(f"/wizard/{wid}/cascade", json={"country": kenya, "state": nairobi})

    state = client.post(f"/wizard/{wid}/cascade", json={"country": None}).json()

    assert state["values"]["country_name"] == ""
    assert state["options"]["state_region"] == []


def test_admin_wizard_can_set_record_status(client, admin_headers):
    state = _open(client, admin_headers)
    assert state["is_admin"] is True

    wid = state["wizard_id"]
    resp = client.patch(f"/wizard/{wid}/fields", json={"values": {"record_status": "Inactive"}})
    assert resp.status_code == 200
    assert resp.json()["values"]["record_status"] == "Inactive"


def test_rejected_admin_field_leaves_other_edits_unapplied(client, user_headers):
    wid = _open(client, user_headers)["wizard_id"]

    resp = client.patch(f"/wizard/{wid}/fields", json={"values": {"first_name": "Ada", "record_status": "Inactive"}})

    assert resp.status_code == 403
    assert client.get(f"/wizard/{wid}").json()["values"]["first_name"] == ""


# -------------------------
# Contacts (admin)
# -------------------------

def _submit(client, headers, values):
    wid = _open(client, headers)["wizard_id"]
    client.patch(f"/wizard/{wid}/fields", json={"values": values})
    client.post(f"/wizard/{wid}/go-to/3")
    return client.post(f"/wizard/{wid}/submit", headers=headers).json()["contact_id"]


def test_contacts_require_admin(client, user_headers):
    assert client.get("/contacts").status_code == 401
    assert client.get("/contacts", headers=user_headers).status_code == 403
    assert client.get("/contacts/export.csv", headers=user_headers).status_code == 403


def test_contacts_list_detail_and_export(client, user_headers, admin_headers):
    contact_id = _submit(
        client,
        user_headers,
        {"first_name": "Ada", "last_name": "Lovelace", "country_name": "Kenya", "organization_name": "Acme Clinic"},
    )

    rows = client.get("/contacts", headers=admin_headers, params={"country": "Kenya"}).json()
    assert [r["id"] for r in rows] == [contact_id]
    assert rows[0]["organization"] == "Acme Clinic"
    assert rows[0]["created_by_name"] == "Uma User"

    assert client.get("/contacts", headers=admin_headers, params={"search": "nobody"}).json() == []

    detail = client.get(f"/contacts/{contact_id}", headers=admin_headers)
    assert detail.status_code == 200
    assert client.get("/contacts/999", headers=admin_headers).status_code == 404

    export = client.get("/contacts/export.csv", headers=admin_headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "contacts_export.csv" in export.headers["content-disposition"]
    assert '"Ada","Lovelace"' in export.text
