from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple, Union

from intake.errors import UnavailableError
from intake.services.reference_store import STATIC_COLLECTIONS, ReferenceEntity, ReferenceStore

logger = logging.getLogger(__name__)

# A select sends the option id; a free-text combo box sends the typed label.
CascadeInput = Union[int, str, None]


@dataclass(frozen=True)
class CascadeState:
    """
    Option sets shown by the intake form, keyed by collection name.

    Derived on every input change and never persisted.
    """
    options: Dict[str, Tuple[ReferenceEntity, ...]] = field(default_factory=dict)

    def get(self, collection: str) -> List[ReferenceEntity]:
        return list(self.options.get(collection, ()))

    @property
    def countries(self) -> List[ReferenceEntity]:
        return self.get("country")

    @property
    def states(self) -> List[ReferenceEntity]:
        return self.get("state_region")

    @property
    def cities(self) -> List[ReferenceEntity]:
        return self.get("city")

    def with_options(self, collection: str, items: List[ReferenceEntity]) -> "CascadeState":
        merged = dict(self.options)
        merged[collection] = tuple(items)
        return replace(self, options=merged)

    def to_dict(self) -> Dict[str, List[Dict[str, object]]]:
        return {
            name: [{"id": e.id, "name": e.name} for e in items]
            for name, items in self.options.items()
        }


def is_blank(value: CascadeInput) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def match_option(options: List[ReferenceEntity], value: CascadeInput) -> Optional[int]:
    """
    Resolve a cascade input to an option id.

    - int: taken as the selected id
    - str: case-insensitive exact name match against the loaded options
    """
    if is_blank(value):
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value

    needle = str(value).strip().lower()
    for opt in options:
        if opt.name.lower() == needle:
            return opt.id
    return None


def option_label(options: List[ReferenceEntity], value: CascadeInput) -> str:
    """
    Form text for a cascade input: the option name for an id, the trimmed label otherwise.
    An id that is not among the loaded options yields "".
    """
    if is_blank(value):
        return ""
    if isinstance(value, int) and not isinstance(value, bool):
        for opt in options:
            if opt.id == value:
                return opt.name
        return ""
    return str(value).strip()


def derive_cascade(state: CascadeState, country: CascadeInput, region: CascadeInput) -> CascadeState:
    """
    Apply the clearing rules for the current inputs:
    no country -> no state/city options; no state -> no city options.
    """
    if is_blank(country):
        return state.with_options("state_region", []).with_options("city", [])
    if is_blank(region):
        return state.with_options("city", [])
    return state


class CascadeLoader:
    """
    Keeps the dependent option sets (country -> state_region -> city) in step with the form.

    Every country/state change bumps a generation counter; a read that completes after
    a newer change (or after close()) is dropped instead of overwriting newer options.
    Read failures degrade to an empty option set plus a notice.
    """

    def __init__(
        self,
        store: ReferenceStore,
        *,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.store = store
        self.state = CascadeState()
        self.notices: List[str] = []
        self.options_ready = False
        self.country_value: CascadeInput = None
        self.state_value: CascadeInput = None

        self._notify = notify
        self._country_gen = 0
        self._state_gen = 0
        self._closed = False

    # -------------------------
    # Lifecycle
    # -------------------------

    def close(self) -> None:
        """Stop applying results. In-flight reads finish but are ignored."""
        self._closed = True

    def reset(self) -> CascadeState:
        """
        Back to a blank form: forget both inputs, drop dependent options and
        invalidate any read still in flight. Static option sets are kept.
        """
        self.country_value = None
        self.state_value = None
        self._country_gen += 1
        self._state_gen += 1
        self.state = derive_cascade(self.state, None, None)
        return self.state

    @property
    def closed(self) -> bool:
        return self._closed

    def _note(self, message: str) -> None:
        logger.warning(message)
        self.notices.append(message)
        if self._notify is not None:
            self._notify(message)

    # -------------------------
    # Initial dropdown load
    # -------------------------

    async def load_options(self) -> CascadeState:
        """
        Concurrently read every enumerable collection. Failed reads leave that set empty.
        """
        results = await asyncio.gather(
            *(self._read_all(name) for name in STATIC_COLLECTIONS)
        )
        if self._closed:
            return self.state

        failed = False
        state = self.state
        for name, (items, ok) in zip(STATIC_COLLECTIONS, results):
            state = state.with_options(name, items)
            failed = failed or not ok
        self.state = state
        self.options_ready = True

        if failed:
            self._note("Failed to load dropdown data.")

        # A country typed before the list arrived can only be matched now.
        if not is_blank(self.country_value) and not self.state.states:
            await self.set_country(self.country_value)
        return self.state

    async def _read_all(self, collection: str) -> Tuple[List[ReferenceEntity], bool]:
        try:
            return await asyncio.to_thread(self.store.list_all, collection), True
        except UnavailableError:
            return [], False

    # -------------------------
    # Dependent sets
    # -------------------------

    async def set_country(self, value: CascadeInput) -> CascadeState:
        self.country_value = value
        self._country_gen += 1
        self._state_gen += 1
        gen = self._country_gen

        # A new country invalidates every state option and, through them, every city option.
        self.state = derive_cascade(self.state.with_options("state_region", []), value, None)
        country_id = match_option(self.state.countries, value)
        if country_id is None:
            return self.state

        items, ok = await self._read_children("state_region", country_id)
        if self._closed or gen != self._country_gen:
            return self.state
        if not ok:
            self._note("Failed to load states.")

        self.state = self.state.with_options("state_region", items)

        # Re-derive cities for a state already typed under the new country.
        if not is_blank(self.state_value):
            return await self.set_state(self.state_value)
        return self.state

    async def set_state(self, value: CascadeInput) -> CascadeState:
        self.state_value = value
        self._state_gen += 1
        gen = self._state_gen

        self.state = derive_cascade(self.state.with_options("city", []), self.country_value, value)
        if is_blank(self.country_value):
            return self.state

        state_id = match_option(self.state.states, value)
        if state_id is None:
            return self.state

        items, ok = await self._read_children("city", state_id)
        if self._closed or gen != self._state_gen:
            return self.state
        if not ok:
            self._note("Failed to load cities.")

        self.state = self.state.with_options("city", items)
        return self.state

    async def _read_children(self, collection: str, parent_id: int) -> Tuple[List[ReferenceEntity], bool]:
        try:
            return await asyncio.to_thread(self.store.list_by_parent, collection, parent_id), True
        except UnavailableError:
            return [], False
