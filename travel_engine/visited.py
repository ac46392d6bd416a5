"""
travel_engine/visited.py -- Visited reconciliation with cached lookups.

Answers "has the player been to this destination?" from two sources:

    Authoritative set
        Normalized names of records whose ``visited`` flag is set.  When
        this set is non-empty it is used *exclusively*.
    Fallback set
        Tokens harvested from the host (scene names, object names) by an
        ``EvidenceProvider``.  Consulted only while no record is marked
        visited, and filtered hard because harvested evidence is noisy.

For each record the candidates ``name``, ``scene_id`` and ``anchor_id`` are
tried in order against the active set with three rules: exact normalized
equality, normalized substring containment in either direction, and
containment on lowercase keys with ``_`` and spaces removed.

Results are cached per record name until :meth:`VisitedResolver.invalidate`.

Usage::

    resolver = VisitedResolver(registry, evidence_provider=harvest_scene_tokens)
    resolver.is_visited(registry.find_by_name("Berg"))
    resolver.invalidate()   # after any visited flag change or save-load
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from travel_engine.models.city import CityRecord
from travel_engine.registry import CityRegistry
from travel_engine.settings import EVIDENCE_BLACKLIST, MAX_EVIDENCE_TOKENS

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3
_PATH_CHARS = ("/", "\\", ":")


class EvidenceProvider(Protocol):
    """Anything callable returning an iterable of evidence strings."""

    def __call__(self) -> Iterable[str]: ...


def normalize_key(value: str | None) -> str:
    """Lowercase, keep only alphanumerics, trim.  Total: ``None`` -> ``""``."""
    if not value:
        return ""
    return "".join(ch for ch in value.lower() if ch.isalnum()).strip()


def loose_key(value: str | None) -> str:
    """Lowercase with ``_`` and spaces removed (separator-insensitive form)."""
    if not value:
        return ""
    return value.lower().replace("_", "").replace(" ", "").strip()


class VisitedSource(str, enum.Enum):
    AUTHORITATIVE = "authoritative"
    FALLBACK = "fallback"
    NONE = "none"


class MatchRule(str, enum.Enum):
    EXACT = "exact"
    CONTAINS = "contains"
    SEPARATOR_INSENSITIVE = "separator_insensitive"


@dataclass(frozen=True)
class KeySet:
    """Normalized and loose forms of one set of visited keys."""
    normalized: frozenset[str]
    loose: frozenset[str]

    def __bool__(self) -> bool:
        return bool(self.normalized)

    @classmethod
    def from_values(cls, values: Iterable[str]) -> KeySet:
        normalized, loose = set(), set()
        for value in values:
            key = normalize_key(value)
            if key:
                normalized.add(key)
                loose.add(loose_key(value))
        return cls(frozenset(normalized), frozenset(loose))


EMPTY_KEYSET = KeySet(frozenset(), frozenset())


@dataclass(frozen=True)
class VisitedDecision:
    visited: bool
    source: VisitedSource
    candidate: str = ""
    matched_key: str = ""
    rule: MatchRule | None = None


def _match(candidate: str, keys: KeySet) -> tuple[str, MatchRule] | None:
    """Return the matched key and rule for *candidate*, or None.

    Rules are tried in order: EXACT and CONTAINS on normalized keys, then
    SEPARATOR_INSENSITIVE on loose keys.  Containment between loose keys
    implies containment between their normalized forms, so for a set built
    by ``KeySet.from_values`` separator variants already match as CONTAINS
    and the last rule only fires for hand-built sets.
    """
    norm = normalize_key(candidate)
    if not norm:
        return None
    if norm in keys.normalized:
        return norm, MatchRule.EXACT
    for key in keys.normalized:
        if norm in key or key in norm:
            return key, MatchRule.CONTAINS
    loose = loose_key(candidate)
    if loose:
        for key in keys.loose:
            if key and (loose in key or key in loose):
                return key, MatchRule.SEPARATOR_INSENSITIVE
    return None


class VisitedResolver:
    """Cached visited lookups over a :class:`CityRegistry`.

    Parameters
    ----------
    registry : CityRegistry
        Source of the authoritative visited flags.
    evidence_provider : callable, optional
        Returns harvested evidence strings; ``None`` disables the fallback.
    blacklist : iterable of str, optional
        Normalized tokens that never count as evidence.
    max_evidence : int, optional
        Upper bound on evidence strings examined per rebuild.
    """

    def __init__(
        self,
        registry: CityRegistry,
        evidence_provider: EvidenceProvider | Callable[[], Iterable[str]] | None = None,
        blacklist: Iterable[str] = EVIDENCE_BLACKLIST,
        max_evidence: int = MAX_EVIDENCE_TOKENS,
    ):
        self._registry = registry
        self._evidence_provider = evidence_provider
        self._blacklist = frozenset(normalize_key(b) for b in blacklist)
        self._max_evidence = max_evidence
        self._cache: dict[str, VisitedDecision] = {}
        self._authoritative: KeySet | None = None
        self._fallback: KeySet | None = None

    @property
    def registry(self) -> CityRegistry:
        return self._registry

    @registry.setter
    def registry(self, registry: CityRegistry) -> None:
        self._registry = registry
        self.invalidate()

    def set_evidence_provider(self, provider) -> None:
        self._evidence_provider = provider
        self.invalidate()

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def build_authoritative_set(self) -> KeySet:
        return KeySet.from_values(r.name for r in self._registry if r.visited)

    def filter_evidence(self, evidence: Iterable[str]) -> list[str]:
        """Drop short, path-like and blacklisted tokens; cap the count."""
        kept: list[str] = []
        for examined, token in enumerate(evidence):
            if examined >= self._max_evidence:
                logger.debug("Evidence truncated at %d tokens", self._max_evidence)
                break
            if not isinstance(token, str):
                continue
            if any(ch in token for ch in _PATH_CHARS):
                continue
            norm = normalize_key(token)
            if len(norm) < MIN_TOKEN_LENGTH or norm in self._blacklist:
                continue
            kept.append(token)
        return kept

    def build_fallback_set(self, evidence: Iterable[str]) -> KeySet:
        return KeySet.from_values(self.filter_evidence(evidence))

    def _authoritative_set(self) -> KeySet:
        if self._authoritative is None:
            self._authoritative = self.build_authoritative_set()
        return self._authoritative

    def _fallback_set(self) -> KeySet:
        if self._fallback is not None:
            return self._fallback
        if self._evidence_provider is None:
            self._fallback = EMPTY_KEYSET
            return self._fallback
        try:
            evidence = self._evidence_provider()
            keys = self.build_fallback_set(evidence or ())
        except Exception:
            logger.warning("Evidence provider failed; treating evidence as empty", exc_info=True)
            # not cached, so the next query asks the provider again
            return EMPTY_KEYSET
        self._fallback = keys
        return keys

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def explain(self, record: CityRecord) -> VisitedDecision:
        """Full decision for *record*, including which set and rule matched."""
        cache_key = record.name.casefold()
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        keys = self._authoritative_set()
        source = VisitedSource.AUTHORITATIVE
        cacheable = True
        if not keys:
            keys = self._fallback_set()
            source = VisitedSource.FALLBACK if keys else VisitedSource.NONE
            cacheable = self._fallback is not None

        decision = VisitedDecision(False, source)
        if keys:
            for candidate in (record.name, record.scene_id, record.anchor_id):
                hit = _match(candidate or "", keys)
                if hit is not None:
                    decision = VisitedDecision(True, source, candidate, hit[0], hit[1])
                    break

        if cacheable:
            self._cache[cache_key] = decision
        return decision

    def is_visited(self, record: CityRecord | None) -> bool:
        if record is None:
            return False
        return self.explain(record).visited

    def invalidate(self) -> None:
        """Drop cached decisions and both key sets."""
        self._cache.clear()
        self._authoritative = None
        self._fallback = None
