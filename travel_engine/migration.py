"""
travel_engine/migration.py -- One-time import of legacy visited flags.

Older releases kept visited state in an INI-like config file::

    [TravelButton.Cities]
    Cierzo.Visited = true
    ## comment
    "Berg.Visited" = false

The migration reads ``<City>.Visited`` entries, applies ``true`` values via
``CityRegistry.merge_fields`` and never applies ``false``: a legacy file
cannot unmark a destination.  It is skipped entirely once any record is
already visited, which makes repeated runs a no-op.

Lines before the first ``[section]`` header and lines in the cities
section are read; every other section is ignored.
"""

from __future__ import annotations

import logging
import os

from travel_engine.registry import CityRegistry
from travel_engine.results import MigrationError, MigrationReport, MutationKind
from travel_engine.settings import LEGACY_CFG_SECTION

logger = logging.getLogger(__name__)

_VISITED_SUFFIX = ".visited"
_TRUE_WORDS = ("true", "1", "yes", "on")
_FALSE_WORDS = ("false", "0", "no", "off")
_COMMENT_PREFIXES = ("#", ";")


def parse_bool(value: str) -> bool | None:
    """Lenient legacy boolean; ``None`` when unrecognised."""
    lowered = value.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    return None


def _unquote(text: str) -> str:
    return text.strip().strip("\"'").strip()


class LegacyMigrator:
    """Parses a legacy config and applies its visited flags to a registry."""

    def __init__(self, section: str = LEGACY_CFG_SECTION):
        self._section = section.strip().lower()

    def iter_entries(self, raw_text: str, report: MigrationReport):
        """Yield ``(line_number, city_name, visited)`` for well-formed entries.

        Malformed visited entries are recorded on *report* and skipped.
        """
        current_section: str | None = None
        for line_number, raw_line in enumerate(raw_text.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith(_COMMENT_PREFIXES):
                continue
            if line.startswith("[") and line.endswith("]"):
                current_section = line[1:-1].strip().lower()
                continue
            if current_section is not None and current_section != self._section:
                continue

            if "=" not in line:
                report.errors.append(MigrationError(line_number, raw_line, "missing '='"))
                continue
            key, _, value = line.partition("=")
            key = _unquote(key)
            if not key.lower().endswith(_VISITED_SUFFIX):
                continue

            city = key[: -len(_VISITED_SUFFIX)].strip()
            if not city:
                report.errors.append(MigrationError(line_number, raw_line, "empty city name"))
                continue
            visited = parse_bool(_unquote(value))
            if visited is None:
                report.errors.append(
                    MigrationError(line_number, raw_line, f"unrecognised boolean {value.strip()!r}")
                )
                continue
            yield line_number, city, visited

    def migrate(self, raw_text: str, registry: CityRegistry) -> MigrationReport:
        """Apply legacy visited flags from *raw_text* to *registry*."""
        report = MigrationReport()
        if registry.any_visited():
            logger.info("Legacy migration skipped: visited flags already present")
            report.skipped_already_migrated = True
            return report

        for _line_number, city, visited in self.iter_entries(raw_text, report):
            if not visited:
                logger.info("Legacy entry %s.Visited=false ignored (cannot unmark)", city)
                report.unmark_requests.append(city)
                continue
            mutation = registry.merge_fields(city, {"visited": True})
            if mutation.kind is MutationKind.NOT_FOUND:
                report.unknown_names.append(city)
            elif mutation.kind is MutationKind.UPDATED:
                report.applied.append(mutation.record.name)

        for error in report.errors:
            logger.warning("Skipped legacy entry %s", error)
        if report.applied:
            logger.info("Migrated visited flags for: %s", ", ".join(report.applied))
        return report

    def migrate_file(self, path, registry: CityRegistry) -> MigrationReport:
        """Like :meth:`migrate`, reading *path*; a missing file is not an error."""
        if not os.path.isfile(path):
            report = MigrationReport(source_missing=True)
            return report
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            return self.migrate(fh.read(), registry)
