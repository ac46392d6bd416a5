"""
travel_engine/registry.py -- Ordered in-memory collection of City Records.

The registry is the only place records are mutated.  Lookups are
case-insensitive; insertion order is preserved and is the order written to
disk.  Records are never removed.

Usage::

    from travel_engine.registry import CityRegistry

    registry = CityRegistry(document.cities)
    registry.merge_fields("Cierzo", {"visited": True})
    registry.upsert_full(CityRecord(name="Vendavel"))
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping

from pydantic import ValidationError

from travel_engine.models.city import CityRecord
from travel_engine.results import Mutation, MutationKind

logger = logging.getLogger(__name__)


def _key(name: str) -> str:
    return name.strip().casefold()


class CityRegistry:
    """Case-insensitive, order-preserving registry of :class:`CityRecord`."""

    def __init__(self, records: Iterable[CityRecord] = ()):
        self._records: list[CityRecord] = []
        self._index: dict[str, int] = {}
        for record in records:
            if _key(record.name) in self._index:
                logger.warning("Duplicate city %r ignored (first occurrence wins)", record.name)
                continue
            self._append(record)

    def _append(self, record: CityRecord) -> None:
        self._index[_key(record.name)] = len(self._records)
        self._records.append(record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CityRecord]:
        return iter(list(self._records))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _key(name) in self._index

    def find_by_name(self, name: str | None) -> CityRecord | None:
        if not name:
            return None
        idx = self._index.get(_key(name))
        return self._records[idx] if idx is not None else None

    def find_by_scene(self, scene_id: str | None) -> CityRecord | None:
        """First record whose scene id matches *scene_id* (case-insensitive)."""
        if not scene_id:
            return None
        wanted = _key(scene_id)
        for record in self._records:
            if record.scene_id and _key(record.scene_id) == wanted:
                return record
        return None

    def list(self) -> list[CityRecord]:
        return list(self._records)

    def names(self) -> list[str]:
        return [r.name for r in self._records]

    def any_visited(self) -> bool:
        return any(r.visited for r in self._records)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert_full(self, record: CityRecord) -> Mutation:
        """Replace the record with the same name in place, or append it.

        The match is case-insensitive and the existing record keeps its name.
        """
        idx = self._index.get(_key(record.name))
        if idx is None:
            self._append(record)
            logger.debug("Inserted city %s", record.name)
            return Mutation(MutationKind.INSERTED, record)

        previous = self._records[idx]
        if record.name != previous.name:
            # names are immutable; the stored casing wins
            record = record.model_copy(update={"name": previous.name})
        if previous == record:
            return Mutation(MutationKind.UNCHANGED, previous, previous)
        self._records[idx] = record
        logger.debug("Replaced city %s", record.name)
        return Mutation(MutationKind.REPLACED, record, previous)

    def merge_fields(self, name: str, partial: Mapping[str, Any]) -> Mutation:
        """Update only the fields present in *partial* on record *name*.

        Parameters
        ----------
        name : str
            Record name (case-insensitive).
        partial : Mapping
            Field values keyed by python attribute name or JSON key.

        Returns
        -------
        Mutation
            UPDATED, UNCHANGED, NOT_FOUND or INVALID.
        """
        idx = self._index.get(_key(name)) if name else None
        if idx is None:
            return Mutation(MutationKind.NOT_FOUND, message=f"Unknown city: {name!r}")

        previous = self._records[idx]
        try:
            updated = previous.merged(partial)
        except KeyError as exc:
            message = f"Unknown field {exc.args[0]!r} for city {previous.name}"
            return Mutation(MutationKind.INVALID, previous, previous, message)
        except (ValueError, ValidationError) as exc:
            # pydantic.ValidationError subclasses ValueError
            return Mutation(MutationKind.INVALID, previous, previous, str(exc))

        if updated == previous:
            return Mutation(MutationKind.UNCHANGED, previous, previous)
        self._records[idx] = updated
        logger.debug("Updated city %s: %s", previous.name, ", ".join(partial))
        return Mutation(MutationKind.UPDATED, updated, previous)

    def seed_missing(self, defaults: Iterable[CityRecord]) -> list[str]:
        """Append defaults whose names are absent; never touch existing records."""
        added = []
        for record in defaults:
            if _key(record.name) not in self._index:
                self._append(record)
                added.append(record.name)
        if added:
            logger.info("Seeded %d default cities: %s", len(added), ", ".join(added))
        return added
