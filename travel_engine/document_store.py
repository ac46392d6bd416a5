"""
travel_engine/document_store.py -- Load, atomic write, backup, verify, roll back.

The store owns exactly two files: the canonical document and a single
backup slot (``<path>.bak``).  Every write follows the same protocol:

    1. refuse if no baseline is known (see ``load``);
    2. serialize deterministically;
    3. copy the current, readable primary into the backup slot;
    4. write a temp file in the same directory and ``os.replace()`` it over
       the primary;
    5. re-read the primary and check that no previously-present city name
       disappeared, restoring the backup if one did.

A baseline is known after a load that found the file, found nothing at all,
or fell back to a readable backup.  When both primary and backup are
unreadable the store aborts: it refuses every write until ``reset()`` is
called, so a broken file can never be silently replaced by defaults.

Usage::

    from travel_engine.document_store import DocumentStore

    store = DocumentStore("/data/TravelButton_Cities.json")
    result = store.load()
    if result.ok:
        document = result.document
    write = store.atomic_write(document)
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

from travel_engine.models.city import CityDocument
from travel_engine.results import (
    DocumentParseError,
    ErrorKind,
    LoadResult,
    LoadSource,
    LoadStatus,
    WriteResult,
)
from travel_engine.settings import BACKUP_SUFFIX
from travel_engine.utils import (
    atomic_copy,
    atomic_write_text,
    read_document,
    serialize_document,
)

logger = logging.getLogger(__name__)


class DocumentStore:
    """Crash-safe reader/writer for one canonical cities file.

    Parameters
    ----------
    path : str or pathlib.Path
        Location of the canonical document.
    backup_suffix : str, optional
        Suffix appended to *path* to form the single backup slot.
    """

    def __init__(self, path, backup_suffix: str = BACKUP_SUFFIX):
        self._path = str(path)
        self._backup_path = self._path + backup_suffix
        self._baseline_known = False
        self._aborted = False
        self._baseline_names: list[str] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def backup_path(self) -> str:
        return self._backup_path

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def baseline_known(self) -> bool:
        return self._baseline_known and not self._aborted

    @property
    def baseline_names(self) -> list[str]:
        return list(self._baseline_names)

    def _set_baseline(self, names: Iterable[str]) -> None:
        self._baseline_names = list(names)
        self._baseline_known = True
        self._aborted = False

    def reset(self) -> None:
        """Clear an aborted state and accept the current disk as baseline.

        This is the explicit operator action that re-enables writes after
        both the primary and the backup were found unreadable.
        """
        if self._aborted:
            logger.warning("Store for %s reset by operator; writes re-enabled", self._path)
        self._set_baseline([])

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self) -> LoadResult:
        """Read the canonical file, falling back to the backup slot.

        Returns
        -------
        LoadResult
            ``OK`` with ``source`` PRIMARY or BACKUP, ``NOT_FOUND`` when
            neither file exists, or ``ABORTED_NO_BASELINE`` when nothing
            readable is available.
        """
        errors: list[str] = []
        try:
            document = read_document(self._path)
        except FileNotFoundError:
            if not os.path.exists(self._backup_path):
                logger.info("No cities file at %s; starting from an empty baseline", self._path)
                self._set_baseline([])
                return LoadResult(LoadStatus.NOT_FOUND)
            errors.append(f"Primary file is missing: {self._path}")
        except (DocumentParseError, OSError) as exc:
            errors.append(f"Primary file is unreadable: {exc}")
        else:
            self._set_baseline(document.names())
            logger.info("Loaded %d cities from %s", len(document.cities), self._path)
            return LoadResult(LoadStatus.OK, LoadSource.PRIMARY, document)

        logger.warning("%s -- trying backup %s", errors[-1], self._backup_path)
        try:
            document = read_document(self._backup_path)
        except FileNotFoundError:
            errors.append(f"No backup file at {self._backup_path}")
        except (DocumentParseError, OSError) as exc:
            errors.append(f"Backup file is unreadable: {exc}")
        else:
            self._set_baseline(document.names())
            logger.warning(
                "Loaded %d cities from backup %s", len(document.cities), self._backup_path,
            )
            return LoadResult(LoadStatus.OK, LoadSource.BACKUP, document, errors)

        self._aborted = True
        self._baseline_known = False
        logger.error(
            "Neither %s nor its backup could be read; writes are disabled until reset(). %s",
            self._path, "; ".join(errors),
        )
        return LoadResult(LoadStatus.ABORTED_NO_BASELINE, errors=errors)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _current_names(self) -> tuple[list[str], bool]:
        """Names on disk right now, and whether the primary is readable."""
        try:
            return read_document(self._path).names(), True
        except FileNotFoundError:
            return list(self._baseline_names), False
        except (DocumentParseError, OSError) as exc:
            logger.warning(
                "Current %s is unreadable (%s); keeping the existing backup", self._path, exc,
            )
            return list(self._baseline_names), False

    def atomic_write(self, document: CityDocument) -> WriteResult:
        """Write *document* using the backup-and-verify protocol.

        Returns
        -------
        WriteResult
            ``ok`` on success; otherwise ``error`` is one of
            ABORTED_NO_BASELINE, WRITE_FAILURE or VERIFICATION_FAILURE and
            the primary holds its prior content.
        """
        if not self.baseline_known:
            message = (
                f"Refusing to write {self._path}: no verified baseline "
                f"(load() not run, or both primary and backup are unreadable)."
            )
            logger.warning(message)
            return WriteResult(ErrorKind.ABORTED_NO_BASELINE, self._path, errors=[message])

        try:
            text = serialize_document(document)
        except (TypeError, ValueError) as exc:
            message = f"Could not serialize cities document: {exc}"
            logger.error(message)
            return WriteResult(ErrorKind.WRITE_FAILURE, self._path, errors=[message])

        preceding, primary_readable = self._current_names()
        try:
            if primary_readable:
                atomic_copy(self._path, self._backup_path)
            atomic_write_text(self._path, text)
        except OSError as exc:
            message = f"Could not write {self._path}. Technical detail: {exc}"
            logger.error(message)
            return WriteResult(ErrorKind.WRITE_FAILURE, self._path, errors=[message])

        result = self.verify_after_write(preceding)
        if result.ok:
            self._set_baseline(document.names())
            logger.info("Wrote %d cities to %s", len(document.cities), self._path)
        return result

    def verify_after_write(self, preceding_names: Iterable[str]) -> WriteResult:
        """Check that every name in *preceding_names* is still on disk.

        On failure the primary is restored from the backup slot and a
        ``VERIFICATION_FAILURE`` result listing the missing names is
        returned.
        """
        preceding_names = list(preceding_names)
        try:
            document = read_document(self._path)
        except (DocumentParseError, OSError) as exc:
            problem = f"Written file could not be re-read: {exc}"
            missing = preceding_names
        else:
            present = {name.casefold() for name in document.names()}
            missing = [n for n in preceding_names if n.casefold() not in present]
            if not missing:
                return WriteResult(path=self._path)
            problem = "Write dropped existing cities: " + ", ".join(missing)

        logger.error("%s -- rolling back %s", problem, self._path)
        errors = [problem]
        restored = self.restore_from_backup()
        errors.extend(restored.errors)
        return WriteResult(ErrorKind.VERIFICATION_FAILURE, self._path, list(missing), errors)

    def restore_from_backup(self) -> WriteResult:
        """Atomically copy the backup slot over the primary."""
        if not os.path.exists(self._backup_path):
            message = f"No backup available at {self._backup_path}"
            logger.error(message)
            return WriteResult(ErrorKind.WRITE_FAILURE, self._path, errors=[message])
        try:
            atomic_copy(self._backup_path, self._path)
        except OSError as exc:
            message = f"Could not restore {self._path} from backup. Technical detail: {exc}"
            logger.error(message)
            return WriteResult(ErrorKind.WRITE_FAILURE, self._path, errors=[message])
        logger.info("Restored %s from %s", self._path, self._backup_path)
        return WriteResult(path=self._path)
