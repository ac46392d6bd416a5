"""
travel_engine/results.py -- Explicit result values returned by the store.

None of the core operations raise for expected failure conditions (missing
file, corrupt JSON, failed write, failed verification, bad legacy entry).
Instead they return one of the small dataclasses below, each exposing an
``ok`` property plus human-readable ``errors`` suitable for logs and UI.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from travel_engine.models.city import CityDocument, CityRecord


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    PARSE_ERROR = "parse_error"
    ABORTED_NO_BASELINE = "aborted_no_baseline"
    WRITE_FAILURE = "write_failure"
    VERIFICATION_FAILURE = "verification_failure"
    MIGRATION_ERROR = "migration_error"


class LoadStatus(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ABORTED_NO_BASELINE = "aborted_no_baseline"


class LoadSource(str, enum.Enum):
    PRIMARY = "primary"
    BACKUP = "backup"
    NONE = "none"


class MutationKind(str, enum.Enum):
    INSERTED = "inserted"
    REPLACED = "replaced"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


class DocumentParseError(ValueError):
    """Raised by the document parser; converted to a result by the store."""


@dataclass
class LoadResult:
    status: LoadStatus
    source: LoadSource = LoadSource.NONE
    document: CityDocument | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK

    @property
    def error_kind(self) -> ErrorKind | None:
        if self.status is LoadStatus.NOT_FOUND:
            return ErrorKind.NOT_FOUND
        if self.status is LoadStatus.ABORTED_NO_BASELINE:
            return ErrorKind.ABORTED_NO_BASELINE
        if self.source is LoadSource.BACKUP:
            # Loaded, but only because the primary failed to parse.
            return ErrorKind.PARSE_ERROR
        return None


@dataclass
class WriteResult:
    error: ErrorKind | None = None
    path: str = ""
    missing_names: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error": self.error.value if self.error else None,
            "path": self.path,
            "missing_names": list(self.missing_names),
            "errors": list(self.errors),
        }


@dataclass
class Mutation:
    """Outcome of a registry mutation."""
    kind: MutationKind
    record: CityRecord | None = None
    previous: CityRecord | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind not in (MutationKind.NOT_FOUND, MutationKind.INVALID)

    @property
    def changed(self) -> bool:
        return self.kind in (
            MutationKind.INSERTED, MutationKind.REPLACED, MutationKind.UPDATED,
        )

    @property
    def visited_changed(self) -> bool:
        if not self.changed or self.record is None:
            return False
        before = self.previous.visited if self.previous is not None else False
        return before != self.record.visited


@dataclass
class MigrationError:
    """A single legacy entry that could not be parsed."""
    line_number: int
    line: str
    reason: str
    kind: ErrorKind = ErrorKind.MIGRATION_ERROR

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.reason} ({self.line!r})"


@dataclass
class MigrationReport:
    applied: list[str] = field(default_factory=list)
    unmark_requests: list[str] = field(default_factory=list)
    unknown_names: list[str] = field(default_factory=list)
    errors: list[MigrationError] = field(default_factory=list)
    skipped_already_migrated: bool = False
    source_missing: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def changed(self) -> bool:
        return bool(self.applied)
