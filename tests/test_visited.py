"""
Tests for travel_engine/visited.py -- normalization, precedence, fuzzy
matching, caching and invalidation.
"""

from unittest.mock import MagicMock

import pytest

from travel_engine.defaults import default_cities
from travel_engine.models.city import CityRecord
from travel_engine.registry import CityRegistry
from travel_engine.visited import (
    KeySet,
    MatchRule,
    VisitedResolver,
    VisitedSource,
    _match,
    loose_key,
    normalize_key,
)


def _registry(*visited):
    reg = CityRegistry(default_cities())
    for name in visited:
        reg.merge_fields(name, {"visited": True})
    return reg


class TestNormalizeKey:
    @pytest.mark.parametrize("raw, expected", [
        ("Cierzo", "cierzo"),
        ("  New_Sirocco (Clone) ", "newsiroccoclone"),
        ("Levant-Ruins 2", "levantruins2"),
        ("", ""),
        (None, ""),
        ("!!!", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_key(raw) == expected

    def test_loose_key_only_drops_underscore_and_space(self):
        assert loose_key("Levant_Ruins-2 A") == "levantruins-2a"


class TestPrecedence:
    def test_authoritative_set_is_exclusive(self):
        provider = MagicMock(return_value=["levant_ruins"])
        resolver = VisitedResolver(_registry("Cierzo"), evidence_provider=provider)
        reg = resolver.registry

        assert resolver.is_visited(reg.find_by_name("Cierzo")) is True
        assert resolver.is_visited(reg.find_by_name("Levant")) is False
        provider.assert_not_called()

    def test_fallback_used_when_nothing_visited(self):
        resolver = VisitedResolver(_registry(), evidence_provider=lambda: ["levant_ruins"])
        reg = resolver.registry

        decision = resolver.explain(reg.find_by_name("Levant"))
        assert decision.visited
        assert decision.source is VisitedSource.FALLBACK
        assert decision.rule is MatchRule.CONTAINS
        assert resolver.is_visited(reg.find_by_name("Berg")) is False

    def test_no_evidence_provider(self):
        resolver = VisitedResolver(_registry())
        decision = resolver.explain(resolver.registry.find_by_name("Berg"))
        assert decision.visited is False
        assert decision.source is VisitedSource.NONE

    def test_none_record(self):
        assert VisitedResolver(_registry()).is_visited(None) is False


class TestMatching:
    def test_name_contained_in_scene_token(self):
        resolver = VisitedResolver(_registry(), evidence_provider=lambda: ["CierzoNewTerrain"])
        decision = resolver.explain(resolver.registry.find_by_name("Cierzo"))
        assert decision.visited
        assert decision.candidate == "Cierzo"
        assert decision.rule is MatchRule.CONTAINS

    def test_exact_rule(self):
        resolver = VisitedResolver(_registry(), evidence_provider=lambda: ["HARMATTAN"])
        decision = resolver.explain(resolver.registry.find_by_name("Harmattan"))
        assert decision.rule is MatchRule.EXACT

    def test_anchor_candidate(self):
        reg = CityRegistry([CityRecord(name="Outpost", scene_id="Zone9", anchor_id="Ember_Gate")])
        resolver = VisitedResolver(reg, evidence_provider=lambda: ["embergate"])
        decision = resolver.explain(reg.find_by_name("Outpost"))
        assert decision.visited
        assert decision.candidate == "Ember_Gate"

    def test_authoritative_fuzzy_match(self):
        reg = CityRegistry([
            CityRecord(name="Old Berg", visited=True),
            CityRecord(name="Berg"),
        ])
        resolver = VisitedResolver(reg)
        assert resolver.is_visited(reg.find_by_name("Berg"))

    def test_town_save_token_matches_by_substring(self):
        resolver = VisitedResolver(_registry(), evidence_provider=lambda: ["CierzoTownSave"])
        reg = resolver.registry

        decision = resolver.explain(reg.find_by_name("Cierzo"))
        assert decision.visited
        assert decision.rule is MatchRule.CONTAINS
        assert resolver.is_visited(reg.find_by_name("Monsoon")) is False

    @pytest.mark.parametrize("token", ["harmattan_oasis", "Harmattan Oasis", "HARMATTAN-oasis"])
    def test_separator_variants_match_as_contains(self, token):
        resolver = VisitedResolver(_registry(), evidence_provider=lambda: [token])
        decision = resolver.explain(resolver.registry.find_by_name("Harmattan"))
        assert decision.visited
        assert decision.rule is MatchRule.CONTAINS

    def test_separator_rule_on_loose_only_keys(self):
        keys = KeySet(frozenset({"unrelated"}), frozenset({"ember-gate"}))
        assert _match("Ember-Gate", keys) == ("ember-gate", MatchRule.SEPARATOR_INSENSITIVE)
        assert _match("Nowhere", keys) is None


class TestEvidenceFiltering:
    def test_filters_short_path_and_blacklisted(self):
        resolver = VisitedResolver(CityRegistry())
        kept = resolver.filter_evidence([
            "ab", "Assets/Scenes/Berg.unity", "C:\\levant", "scene:levant",
            "Main Camera", "Player", "Monsoon", 42,
        ])
        assert kept == ["Monsoon"]

    def test_filtered_tokens_do_not_match(self):
        resolver = VisitedResolver(_registry(), evidence_provider=lambda: ["Assets/Berg/Berg.unity"])
        assert not resolver.is_visited(resolver.registry.find_by_name("Berg"))

    def test_evidence_is_capped(self):
        resolver = VisitedResolver(CityRegistry(), max_evidence=2)
        assert resolver.filter_evidence(["Monsoon", "Levant", "Berg"]) == ["Monsoon", "Levant"]


class TestCaching:
    def test_results_cached_until_invalidate(self):
        tokens = ["Berg"]
        provider = MagicMock(side_effect=lambda: list(tokens))
        resolver = VisitedResolver(_registry(), evidence_provider=provider)
        berg = resolver.registry.find_by_name("Berg")
        monsoon = resolver.registry.find_by_name("Monsoon")

        assert resolver.is_visited(berg)
        assert not resolver.is_visited(monsoon)
        tokens[:] = ["Monsoon"]
        assert not resolver.is_visited(monsoon)
        assert provider.call_count == 1

        resolver.invalidate()
        assert resolver.is_visited(monsoon)
        assert not resolver.is_visited(berg)
        assert provider.call_count == 2

    def test_authoritative_change_needs_invalidate(self):
        reg = _registry("Cierzo")
        resolver = VisitedResolver(reg)
        assert not resolver.is_visited(reg.find_by_name("Berg"))
        reg.merge_fields("Berg", {"visited": True})
        assert not resolver.is_visited(reg.find_by_name("Berg"))
        resolver.invalidate()
        assert resolver.is_visited(reg.find_by_name("Berg"))

    def test_provider_failure_is_not_cached(self):
        provider = MagicMock(side_effect=[RuntimeError("probe failed"), ["Levant"]])
        resolver = VisitedResolver(_registry(), evidence_provider=provider)
        levant = resolver.registry.find_by_name("Levant")

        assert resolver.is_visited(levant) is False
        assert resolver.is_visited(levant) is True
        assert provider.call_count == 2
