from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field as PydField

from intake.api.deps import get_reference_store, get_session_provider
from intake.config import settings
from intake.services.cascade import CascadeLoader, option_label
from intake.services.reference_store import ReferenceStore
from intake.services.session import ProfileSessionProvider
from intake.services.submission import SubmissionOrchestrator
from intake.services.wizard import NavigationStyle, WizardController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wizard", tags=["wizard"])


# -----------------------------
# In-memory wizard sessions
# -----------------------------

@dataclass
class WizardSession:
    id: str
    controller: WizardController
    cascade: CascadeLoader


class WizardRegistry:
    """
    Live intake views keyed by id. A wizard exists from mount (POST /wizard)
    until unmount (DELETE /wizard/{id}); nothing here is persisted.
    """

    def __init__(self) -> None:
        self._items: Dict[str, WizardSession] = {}
        self._lock = threading.Lock()

    def create(self, controller: WizardController, cascade: CascadeLoader) -> WizardSession:
        wiz = WizardSession(id=uuid4().hex, controller=controller, cascade=cascade)
        with self._lock:
            self._items[wiz.id] = wiz
        return wiz

    def get(self, wizard_id: str) -> WizardSession:
        with self._lock:
            wiz = self._items.get(wizard_id)
        if wiz is None:
            raise HTTPException(status_code=404, detail="Wizard not found")
        return wiz

    def discard(self, wizard_id: str) -> bool:
        with self._lock:
            wiz = self._items.pop(wizard_id, None)
        if wiz is None:
            return False
        wiz.cascade.close()
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


registry = WizardRegistry()


def get_registry() -> WizardRegistry:
    return registry


# -----------------------------
# Schemas
# -----------------------------

class WizardCreate(BaseModel):
    navigation: Optional[NavigationStyle] = None


class FieldsPatch(BaseModel):
    values: Dict[str, Any] = PydField(default_factory=dict)


class CascadeSelection(BaseModel):
    """
    Select-mode cascade input: ids (or labels) picked from the option lists.
    Omitted keys are left unchanged.
    """
    country: Optional[Union[int, str]] = None
    state: Optional[Union[int, str]] = None


def _state(wiz: WizardSession) -> Dict[str, Any]:
    notices = list(wiz.cascade.notices)
    wiz.cascade.notices.clear()
    return {
        "wizard_id": wiz.id,
        **wiz.controller.snapshot(),
        "options": wiz.cascade.state.to_dict(),
        "options_ready": wiz.cascade.options_ready,
        "notices": notices,
    }


# -----------------------------
# Routes
# -----------------------------

@router.post("")
async def create_wizard(
    payload: Optional[WizardCreate] = None,
    sessions: ProfileSessionProvider = Depends(get_session_provider),
    store: ReferenceStore = Depends(get_reference_store),
    wizards: WizardRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Mount an intake view: fresh wizard state plus the initial dropdown options.
    """
    navigation = (payload.navigation if payload else None) or NavigationStyle(settings.wizard_navigation)
    is_admin = await run_in_threadpool(sessions.current_is_admin)
    controller = WizardController(is_admin=is_admin, navigation=navigation)
    cascade = CascadeLoader(store)
    wiz = wizards.create(controller, cascade)
    logger.info("Wizard opened id=%s navigation=%s admin=%s", wiz.id, navigation.value, controller.is_admin)

    await cascade.load_options()
    return _state(wiz)


@router.get("/{wizard_id}")
def get_wizard(wizard_id: str, wizards: WizardRegistry = Depends(get_registry)) -> Dict[str, Any]:
    return _state(wizards.get(wizard_id))


@router.patch("/{wizard_id}/fields")
async def patch_fields(
    wizard_id: str,
    payload: FieldsPatch,
    wizards: WizardRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Apply field edits; country/state edits refresh the dependent option sets.
    """
    wiz = wizards.get(wizard_id)
    values = payload.values
    wiz.controller.update(values)

    if "country_name" in values:
        if "state_name" in values:
            wiz.cascade.state_value = values["state_name"]
        await wiz.cascade.set_country(values["country_name"])
    elif "state_name" in values:
        await wiz.cascade.set_state(values["state_name"])

    return _state(wiz)


@router.post("/{wizard_id}/cascade")
async def select_cascade(
    wizard_id: str,
    payload: CascadeSelection,
    wizards: WizardRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    wiz = wizards.get(wizard_id)
    fields = payload.model_fields_set

    if "country" in fields:
        if "state" in fields:
            wiz.cascade.state_value = payload.state
        await wiz.cascade.set_country(payload.country)
    elif "state" in fields:
        await wiz.cascade.set_state(payload.state)

    # Mirror the picks into the form values the submit resolves.
    picked: Dict[str, Any] = {}
    if "country" in fields:
        picked["country_name"] = option_label(wiz.cascade.state.countries, payload.country)
    if "state" in fields:
        picked["state_name"] = option_label(wiz.cascade.state.states, payload.state)
    if picked:
        wiz.controller.update(picked)

    return _state(wiz)


@router.post("/{wizard_id}/next")
def next_step(wizard_id: str, wizards: WizardRegistry = Depends(get_registry)) -> Dict[str, Any]:
    wiz = wizards.get(wizard_id)
    wiz.controller.next()
    return _state(wiz)


@router.post("/{wizard_id}/previous")
def previous_step(wizard_id: str, wizards: WizardRegistry = Depends(get_registry)) -> Dict[str, Any]:
    wiz = wizards.get(wizard_id)
    wiz.controller.previous()
    return _state(wiz)


@router.post("/{wizard_id}/go-to/{index}")
def go_to_step(wizard_id: str, index: int, wizards: WizardRegistry = Depends(get_registry)) -> Dict[str, Any]:
    wiz = wizards.get(wizard_id)
    wiz.controller.go_to(index)
    return _state(wiz)


@router.post("/{wizard_id}/validate")
def validate_step(wizard_id: str, wizards: WizardRegistry = Depends(get_registry)) -> Dict[str, Any]:
    wiz = wizards.get(wizard_id)
    step_errors = wiz.controller.validate_step()
    return {**_state(wiz), "step_errors": step_errors}


@router.post("/{wizard_id}/submit")
def submit_wizard(
    wizard_id: str,
    sessions: ProfileSessionProvider = Depends(get_session_provider),
    wizards: WizardRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Save the contact (only from the last step).

    Failures propagate as IntakeError envelopes with the wizard position untouched.
    """
    wiz = wizards.get(wizard_id)
    orchestrator = SubmissionOrchestrator(sessions.db, sessions)

    contact_id = wiz.controller.submit(orchestrator)
    if contact_id is None:
        return {
            **_state(wiz),
            "submitted": False,
            "contact_id": None,
            "message": "Go to the last step to save the contact.",
        }

    wiz.cascade.reset()

    return {
        **_state(wiz),
        "submitted": True,
        "contact_id": contact_id,
        "message": "Contact saved successfully.",
    }


@router.delete("/{wizard_id}")
def close_wizard(wizard_id: str, wizards: WizardRegistry = Depends(get_registry)) -> Dict[str, Any]:
    """
    Unmount: pending dropdown reads finish but their results are dropped.
    """
    if not wizards.discard(wizard_id):
        raise HTTPException(status_code=404, detail="Wizard not found")
    logger.info("Wizard closed id=%s", wizard_id)
    return {"ok": True}
