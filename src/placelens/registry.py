"""In-memory registry of requested overlay layers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Iterator

from .models import LAYER_HOME_ZIPCODES, LAYER_TRADE_AREA, RegistryEntry

DEFAULT_MAX_TRADE_AREAS = 10

ADDED = "added"
REPLACED = "replaced"
REMOVED = "removed"
CAPACITY_EXCEEDED = "capacity_exceeded"

_LOGGER = logging.getLogger("placelens.registry")


def layer_id(layer_type: str, place_id: str) -> str:
    """Deterministic registry id for an overlay of one place."""
    return f"{layer_type}-{place_id}"


@dataclass(frozen=True, slots=True)
class AddResult:
    accepted: bool
    outcome: str
    evicted: tuple[str, ...] = ()

    @property
    def capacity_exceeded(self) -> bool:
        return self.outcome == CAPACITY_EXCEEDED


class LayerRegistry:
    """Ordered overlay entries with per-type cardinality rules.

    At most `max_trade_areas` trade-area entries and a single home-zipcodes
    entry exist at any time. Mutations are serialized with a lock and
    readers get immutable snapshots.
    """

    def __init__(self, max_trade_areas: int = DEFAULT_MAX_TRADE_AREAS) -> None:
        if max_trade_areas < 0:
            raise ValueError("max_trade_areas must be >= 0")
        self.max_trade_areas = max_trade_areas
        self._entries: list[RegistryEntry] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return self.get(str(entry_id)) is not None

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self.snapshot())

    def snapshot(self) -> tuple[RegistryEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def get(self, entry_id: str) -> RegistryEntry | None:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        return None

    def entries_of_type(self, layer_type: str) -> tuple[RegistryEntry, ...]:
        with self._lock:
            return tuple(entry for entry in self._entries if entry.type == layer_type)

    def add(self, entry: RegistryEntry) -> AddResult:
        with self._lock:
            if entry.type == LAYER_TRADE_AREA:
                trade_area_count = sum(1 for item in self._entries if item.type == LAYER_TRADE_AREA)
                if trade_area_count >= self.max_trade_areas:
                    _LOGGER.warning(
                        "Maximum trade areas reached (%d); rejected %s",
                        self.max_trade_areas,
                        entry.id,
                    )
                    return AddResult(accepted=False, outcome=CAPACITY_EXCEEDED)

            if entry.type == LAYER_HOME_ZIPCODES:
                evicted = tuple(
                    item.id for item in self._entries if item.type == LAYER_HOME_ZIPCODES
                )
                self._entries = [
                    item for item in self._entries if item.type != LAYER_HOME_ZIPCODES
                ]
            else:
                evicted = tuple(item.id for item in self._entries if item.id == entry.id)
                self._entries = [item for item in self._entries if item.id != entry.id]
            self._entries.append(entry)

        outcome = REPLACED if entry.id in evicted else ADDED
        _LOGGER.debug("Registry %s %s (evicted=%s)", outcome, entry.id, list(evicted))
        return AddResult(accepted=True, outcome=outcome, evicted=evicted)

    def toggle(self, entry: RegistryEntry) -> AddResult:
        """Remove the entry if its id is already present, otherwise add it."""
        with self._lock:
            if self.get(entry.id) is not None:
                self.remove(entry.id)
                return AddResult(accepted=True, outcome=REMOVED, evicted=(entry.id,))
            return self.add(entry)

    def remove(self, entry_id: str) -> None:
        with self._lock:
            self._entries = [item for item in self._entries if item.id != entry_id]

    def toggle_visibility(self, entry_id: str) -> None:
        with self._lock:
            self._entries = [
                replace(item, visible=not item.visible) if item.id == entry_id else item
                for item in self._entries
            ]

    def clear_by_type(self, layer_type: str) -> None:
        with self._lock:
            self._entries = [item for item in self._entries if item.type != layer_type]

    def clear_all(self) -> None:
        with self._lock:
            self._entries = []

    def apply_data_type_transition(self, data_type: str, reference_place_id: str | None) -> None:
        """Collapse the registry when the view switches to home zipcodes.

        Every trade-area entry is dropped, and so is every home-zipcodes entry
        that does not belong to the reference place.
        """
        if data_type != LAYER_HOME_ZIPCODES:
            return
        with self._lock:
            kept: list[RegistryEntry] = []
            for item in self._entries:
                if item.type == LAYER_TRADE_AREA:
                    continue
                if item.type == LAYER_HOME_ZIPCODES and (
                    reference_place_id is None or item.place_id != reference_place_id
                ):
                    continue
                kept.append(item)
            dropped = len(self._entries) - len(kept)
            self._entries = kept
        if dropped:
            _LOGGER.info("Switched to home zipcodes; cleared %d overlay layers", dropped)
