"""
travel_engine/city_store.py -- Explicit store handle for the travel registry.

``CityStore`` is the facade a host works with.  It owns the document
store, the in-memory registry and the visited resolver for one data
directory, and wires them together:

    - ``load()`` reads the canonical file (or its backup), seeds the
      compiled-in defaults when nothing usable exists, and resets caches;
    - mutations go through the registry and are written back with the
      backup-and-verify protocol;
    - any record change invalidates the visited cache.

There is no global instance: create one per data directory and pass it
where it is needed.

Usage::

    from travel_engine.city_store import CityStore

    store = CityStore("/path/to/data", evidence_provider=harvest)
    store.load()
    store.mark_visited("Cierzo")
    store.is_visited(store.registry.find_by_name("Berg"))
"""

from __future__ import annotations

import logging
import os
from typing import Any, Iterable, Mapping

from travel_engine.defaults import default_cities
from travel_engine.document_store import DocumentStore
from travel_engine.migration import LegacyMigrator
from travel_engine.models.city import CityDocument, CityRecord
from travel_engine.models.validators import (
    UNKNOWN_VARIANT,
    VariantConfidence,
    is_plausible_variant_name,
    normalize_object_name,
    variant_name_issues,
)
from travel_engine.registry import CityRegistry
from travel_engine.results import (
    LoadResult,
    LoadStatus,
    MigrationReport,
    Mutation,
    MutationKind,
    WriteResult,
)
from travel_engine.settings import StoreSettings
from travel_engine.visited import VisitedDecision, VisitedResolver

logger = logging.getLogger(__name__)


class CityStore:
    """Registry, cache and file paths for one data directory.

    Parameters
    ----------
    data_dir : str or pathlib.Path
        Directory holding the cities file, its backup and the legacy config.
    evidence_provider : callable, optional
        Host hook returning harvested evidence strings.
    settings : StoreSettings, optional
        File names, default price and filtering constants.
    """

    def __init__(self, data_dir, evidence_provider=None, settings: StoreSettings | None = None):
        self._settings = settings or StoreSettings()
        self._data_dir = str(data_dir)
        self._documents = DocumentStore(
            os.path.join(self._data_dir, self._settings.cities_file_name),
            backup_suffix=self._settings.backup_suffix,
        )
        self._registry = CityRegistry()
        self._document_extra: dict[str, Any] = {}
        self._resolver = VisitedResolver(
            self._registry,
            evidence_provider=evidence_provider,
            blacklist=self._settings.evidence_blacklist,
            max_evidence=self._settings.max_evidence_tokens,
        )
        self._migrator = LegacyMigrator(self._settings.legacy_cfg_section)
        self._last_load: LoadResult | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    @property
    def data_dir(self) -> str:
        return self._data_dir

    @property
    def cities_path(self) -> str:
        return self._documents.path

    @property
    def backup_path(self) -> str:
        return self._documents.backup_path

    @property
    def legacy_cfg_path(self) -> str:
        return os.path.join(self._data_dir, self._settings.legacy_cfg_file_name)

    @property
    def documents(self) -> DocumentStore:
        return self._documents

    @property
    def registry(self) -> CityRegistry:
        return self._registry

    @property
    def resolver(self) -> VisitedResolver:
        return self._resolver

    @property
    def last_load(self) -> LoadResult | None:
        return self._last_load

    @property
    def writable(self) -> bool:
        return self._documents.baseline_known

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self) -> LoadResult:
        """(Re)load the registry from disk, seeding defaults if needed."""
        result = self._documents.load()
        document = result.document if result.document is not None else CityDocument()
        self._registry = CityRegistry(document.cities)
        self._document_extra = dict(document.model_extra or {})

        if result.status is not LoadStatus.OK or len(self._registry) == 0:
            self._registry.seed_missing(default_cities(self._settings.default_price))

        self._resolver.registry = self._registry
        self._last_load = result
        return result

    def to_document(self) -> CityDocument:
        return CityDocument(cities=self._registry.list(), **self._document_extra)

    def save(self) -> WriteResult:
        """Write the registry back with backup and verification."""
        return self._documents.atomic_write(self.to_document())

    def reset(self) -> None:
        """Operator override: re-enable writes after an aborted load."""
        self._documents.reset()

    # ------------------------------------------------------------------
    # Registry operations
    # ------------------------------------------------------------------

    def _after_mutation(self, mutation: Mutation) -> Mutation:
        # scene and anchor ids are match candidates too
        if mutation.changed:
            self._resolver.invalidate()
        return mutation

    def find(self, name: str) -> CityRecord | None:
        return self._registry.find_by_name(name)

    def list(self) -> list[CityRecord]:
        return self._registry.list()

    def upsert_full(self, record: CityRecord) -> Mutation:
        return self._after_mutation(self._registry.upsert_full(record))

    def merge_fields(self, name: str, partial: Mapping[str, Any]) -> Mutation:
        return self._after_mutation(self._registry.merge_fields(name, partial))

    def commit(self, mutation: Mutation) -> WriteResult | None:
        """Save if *mutation* changed something; ``None`` when nothing to do."""
        if not mutation.changed:
            return None
        result = self.save()
        if not result.ok:
            logger.warning("Change to %s not persisted: %s",
                           mutation.record.name if mutation.record else "?",
                           "; ".join(result.errors))
        return result

    def mark_visited(self, name: str) -> tuple[Mutation, WriteResult | None]:
        """Set ``visited`` on *name* and persist."""
        mutation = self.merge_fields(name, {"visited": True})
        return mutation, self.commit(mutation)

    def effective_price(self, record: CityRecord) -> int:
        return record.price if record.price is not None else self._settings.default_price

    # ------------------------------------------------------------------
    # Visited queries
    # ------------------------------------------------------------------

    def is_visited(self, record: CityRecord | str | None) -> bool:
        if isinstance(record, str):
            record = self._registry.find_by_name(record)
        return self._resolver.is_visited(record)

    def explain_visited(self, record: CityRecord) -> VisitedDecision:
        return self._resolver.explain(record)

    def invalidate(self) -> None:
        """Host hook: evidence sources changed (save-load, scene change)."""
        self._resolver.invalidate()

    # ------------------------------------------------------------------
    # Legacy migration
    # ------------------------------------------------------------------

    def migrate_legacy(self, raw_text: str) -> tuple[MigrationReport, WriteResult | None]:
        report = self._migrator.migrate(raw_text, self._registry)
        return report, self._persist_migration(report)

    def migrate_legacy_file(self, path=None) -> tuple[MigrationReport, WriteResult | None]:
        """Import visited flags from the legacy config (default location if *path* is None)."""
        path = str(path) if path is not None else self.legacy_cfg_path
        report = self._migrator.migrate_file(path, self._registry)
        if report.source_missing:
            logger.debug("No legacy config at %s", path)
        return report, self._persist_migration(report)

    def _persist_migration(self, report: MigrationReport) -> WriteResult | None:
        if not report.changed:
            return None
        self._resolver.invalidate()
        return self.save()

    # ------------------------------------------------------------------
    # Host-reported events
    # ------------------------------------------------------------------

    def record_scene_visit(
        self,
        scene_name: str,
        coords=None,
        anchor_id: str | None = None,
        desc: str | None = None,
    ) -> tuple[Mutation, WriteResult | None]:
        """Mark the destination for *scene_name* visited, creating it if new.

        Transient scenes (main menu, loading screens) are ignored and
        reported as ``UNCHANGED``.
        """
        if self._settings.is_blacklisted_scene(scene_name):
            logger.debug("Ignoring transient scene %r", scene_name)
            return Mutation(MutationKind.UNCHANGED, message=f"Transient scene {scene_name!r}"), None

        scene_name = scene_name.strip()
        anchor_id = normalize_object_name(anchor_id) or None
        existing = self._registry.find_by_scene(scene_name) or self._registry.find_by_name(scene_name)

        if existing is not None:
            partial: dict[str, Any] = {"visited": True}
            if coords is not None:
                partial["coords"] = coords
            if anchor_id:
                partial["anchor_id"] = anchor_id
            if desc:
                partial["desc"] = desc
            mutation = self.merge_fields(existing.name, partial)
        else:
            try:
                record = CityRecord(
                    name=scene_name,
                    scene_id=scene_name,
                    coords=coords,
                    price=self._settings.default_price,
                    anchor_id=anchor_id or f"{scene_name}_Location",
                    desc=desc or scene_name,
                    enabled=True,
                    visited=True,
                )
            except ValueError as exc:
                return Mutation(MutationKind.INVALID, message=str(exc)), None
            mutation = self.upsert_full(record)
            logger.info("New destination recorded from scene %s", scene_name)

        return mutation, self.commit(mutation)

    def record_variant_observation(
        self,
        scene_name: str,
        normal: str | None = None,
        destroyed: str | None = None,
        last_known: str | None = None,
        confidence=VariantConfidence.MEDIUM,
    ) -> tuple[Mutation, WriteResult | None]:
        """Persist plausible scene-variant names seen by the host detector.

        Implausible names are logged and dropped.  ``last_known`` is only
        stored for MEDIUM or HIGH confidence and never as ``"Unknown"``.
        """
        record = self._registry.find_by_scene(scene_name) or self._registry.find_by_name(scene_name)
        if record is None:
            return Mutation(MutationKind.NOT_FOUND, message=f"No city for scene {scene_name!r}"), None

        confidence = VariantConfidence.parse(confidence)
        variants = list(record.variants)
        for candidate in (normal, destroyed):
            if candidate is None:
                continue
            name = normalize_object_name(candidate)
            if not is_plausible_variant_name(name):
                logger.debug("Rejected variant name %r: %s", candidate,
                             ", ".join(variant_name_issues(candidate)))
                continue
            if name not in variants:
                variants.append(name)

        partial: dict[str, Any] = {"variants": variants}
        last = normalize_object_name(last_known)
        if (
            last
            and last != UNKNOWN_VARIANT
            and confidence >= VariantConfidence.MEDIUM
            and is_plausible_variant_name(last)
        ):
            partial["last_known_variant"] = last
            if last not in variants:
                variants.append(last)

        mutation = self.merge_fields(record.name, partial)
        return mutation, self.commit(mutation)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Summary for CLI and logs."""
        last = self._last_load
        return {
            "cities_path": self.cities_path,
            "backup_path": self.backup_path,
            "backup_exists": os.path.exists(self.backup_path),
            "writable": self.writable,
            "city_count": len(self._registry),
            "visited": [r.name for r in self._registry if r.visited],
            "last_load": {
                "status": last.status.value,
                "source": last.source.value,
                "errors": list(last.errors),
            } if last is not None else None,
        }

    def visited_names(self, records: Iterable[CityRecord] | None = None) -> list[str]:
        records = self._registry.list() if records is None else records
        return [r.name for r in records if self.is_visited(r)]

