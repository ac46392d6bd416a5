"""
Shared utility functions for the travel registry engine.

Holds the low-level pieces used by the document store: the atomic
temp-file-then-``os.replace()`` writer, the deterministic serializer, and
the tolerant parser that turns any of the historical file shapes into a
validated ``CityDocument``.

All writes use atomic temp-file-then-os.replace() so that a reader never
sees a partially-written file, even if the process dies mid-write.
"""

import json
import logging
import os
import tempfile

import jsonschema
from pydantic import ValidationError

from travel_engine.models.city import CityDocument
from travel_engine.results import DocumentParseError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structural schema (checked after shape normalization)
# ---------------------------------------------------------------------------

DOCUMENT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["cities"],
    "properties": {
        "cities": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "sceneName": {"type": ["string", "null"]},
                    "targetGameObjectName": {"type": ["string", "null"]},
                    "desc": {"type": ["string", "null"]},
                    "price": {"type": ["integer", "null"]},
                    "enabled": {"type": "boolean"},
                    "visited": {"type": "boolean"},
                    "variants": {
                        "type": ["array", "null"],
                        "items": {"type": "string"},
                    },
                    "lastKnownVariant": {"type": ["string", "null"]},
                },
            },
        },
    },
}

_validator = jsonschema.Draft7Validator(DOCUMENT_SCHEMA)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def strip_comment_lines(text):
    """Drop lines whose first non-blank characters are ``//``."""
    return "\n".join(
        line for line in text.splitlines()
        if not line.lstrip().startswith("//")
    )


def _normalize_shape(raw):
    """Bring bare-array and object-keyed roots into the canonical shape."""
    if isinstance(raw, list):
        return {"cities": raw}
    if not isinstance(raw, dict):
        raise DocumentParseError(
            f"Root must be an object or an array, got {type(raw).__name__}"
        )

    cities = raw.get("cities")
    if isinstance(cities, dict):
        converted = []
        for key, entry in cities.items():
            if not isinstance(entry, dict):
                raise DocumentParseError(f"City entry {key!r} is not an object")
            entry = dict(entry)
            entry.setdefault("name", key)
            converted.append(entry)
        raw = dict(raw)
        raw["cities"] = converted
    return raw


def parse_document(text):
    """Parse file content into a :class:`CityDocument`.

    Parameters
    ----------
    text : str
        Raw file content.

    Returns
    -------
    CityDocument

    Raises
    ------
    DocumentParseError
        If the content is empty, not JSON, structurally wrong, or contains a
        record that fails model validation.
    """
    body = strip_comment_lines(text)
    if not body.strip():
        raise DocumentParseError("File is empty")

    try:
        raw = json.loads(body)
    except json.JSONDecodeError as exc:
        raise DocumentParseError(f"Invalid JSON: {exc}") from exc

    raw = _normalize_shape(raw)

    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        location = "/".join(str(p) for p in first.path) or "<root>"
        raise DocumentParseError(f"Schema violation at {location}: {first.message}")

    try:
        return CityDocument.model_validate(raw)
    except ValidationError as exc:
        raise DocumentParseError(f"Invalid city record: {exc}") from exc


def read_document(path):
    """Read and parse *path*.

    Raises ``FileNotFoundError`` when the file is absent and
    ``DocumentParseError`` when it cannot be decoded or parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except UnicodeDecodeError as exc:
        raise DocumentParseError(f"File is not valid UTF-8: {exc}") from exc
    return parse_document(text)


# ---------------------------------------------------------------------------
# Serialization and atomic writes
# ---------------------------------------------------------------------------

def serialize_document(document):
    """Deterministic text form of *document* (2-space indent, trailing newline)."""
    return json.dumps(document.to_document(), indent=2, ensure_ascii=False) + "\n"


def atomic_write_bytes(path, data):
    """Atomically replace *path* with *data*.

    Uses a temporary file in the same directory, flushed and fsynced, then
    ``os.replace()``.  The temp file is removed on any failure and the
    exception re-raised.
    """
    path = str(path)
    parent = os.path.dirname(path) or "."
    os.makedirs(parent, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path, text):
    atomic_write_bytes(path, text.encode("utf-8"))


def atomic_copy(src, dst):
    """Copy *src* over *dst* without ever exposing a torn *dst*."""
    with open(src, "rb") as fh:
        data = fh.read()
    atomic_write_bytes(dst, data)
