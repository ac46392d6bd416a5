"""
travel_engine/models/validators.py -- Semantic checks on scene-variant names.

Scene-variant detection on the host side is heuristic and regularly
produces junk: coordinate dumps such as ``"(120.5, 4.0, -33.1)"``, engine
chunk labels, debug objects.  These validators run *after* structural
validation and decide whether an observed name is worth persisting.

Usage::

    from travel_engine.models.validators import is_plausible_variant_name

    if is_plausible_variant_name(name):
        record_variants.append(name)
"""

from __future__ import annotations

import enum
import re

MIN_VARIANT_NAME_LENGTH = 3
MAX_VARIANT_NAME_LENGTH = 200

UNKNOWN_VARIANT = "Unknown"

_COORD_GROUP_RE = re.compile(
    r"\(\s*-?\d+(\.\d+)?\s*,\s*-?\d+(\.\d+)?\s*(,\s*-?\d+(\.\d+)?\s*)?\)"
)
_CLONE_SUFFIX_RE = re.compile(r"\s*\(clone\)\s*", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

_JUNK_MARKERS = ("default chunk", "defaultchunk", "debug", "placeholder")


class VariantConfidence(enum.IntEnum):
    """How sure the host detector is about the active variant."""
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def parse(cls, value) -> VariantConfidence:
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(max(cls.NONE, min(cls.HIGH, value)))
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            return cls.NONE


def normalize_object_name(name: str | None) -> str:
    """Strip ``(Clone)`` suffixes and collapse whitespace."""
    if not name:
        return ""
    name = _CLONE_SUFFIX_RE.sub(" ", name)
    return _WHITESPACE_RE.sub(" ", name).strip()


def variant_name_issues(name: str | None) -> list[str]:
    """Return the reasons *name* should not be persisted (empty = plausible)."""
    name = normalize_object_name(name)
    if not name:
        return ["empty name"]

    issues: list[str] = []
    if len(name) < MIN_VARIANT_NAME_LENGTH:
        issues.append(f"shorter than {MIN_VARIANT_NAME_LENGTH} characters")
    if len(name) > MAX_VARIANT_NAME_LENGTH:
        issues.append(f"longer than {MAX_VARIANT_NAME_LENGTH} characters")
    if not any(ch.isalpha() for ch in name):
        issues.append("contains no letters")
    if _COORD_GROUP_RE.search(name):
        issues.append("looks like a coordinate dump")

    lowered = name.lower()
    if lowered.startswith("chunk_"):
        issues.append("engine chunk label")
    for marker in _JUNK_MARKERS:
        if marker in lowered:
            issues.append(f"contains {marker!r}")

    letters = sum(1 for ch in name if ch.isalpha())
    if letters and letters * 2 < len(name):
        issues.append("mostly non-alphabetic")
    return issues


def is_plausible_variant_name(name: str | None) -> bool:
    return not variant_name_issues(name)
