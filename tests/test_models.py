"""
Tests for travel_engine/models/ -- CityRecord coercion, serialization and
variant-name validators.
"""

import pytest
from pydantic import ValidationError

from travel_engine.models.city import CityDocument, CityRecord, field_json_key
from travel_engine.models.validators import (
    VariantConfidence,
    is_plausible_variant_name,
    normalize_object_name,
    variant_name_issues,
)


# ---------------------------------------------------------------------------
# CityRecord
# ---------------------------------------------------------------------------

class TestCityRecordDefaults:
    def test_minimal_record_materializes_collections(self):
        rec = CityRecord(name="Berg")
        assert rec.variants == []
        assert rec.last_known_variant == ""
        assert rec.visited is False
        assert rec.enabled is False
        assert rec.coords is None
        assert rec.price is None

    def test_null_variants_become_empty(self):
        rec = CityRecord.model_validate({"name": "Berg", "variants": None, "lastKnownVariant": None})
        assert rec.variants == []
        assert rec.last_known_variant == ""

    def test_name_is_stripped(self):
        assert CityRecord(name="  Levant ").name == "Levant"

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            CityRecord(name="   ")

    def test_name_is_immutable(self):
        rec = CityRecord(name="Berg")
        with pytest.raises(ValidationError):
            rec.name = "Monsoon"

    def test_aliases_and_python_names_both_accepted(self):
        by_alias = CityRecord.model_validate({"name": "A1", "sceneName": "S", "targetGameObjectName": "T"})
        by_name = CityRecord(name="A1", scene_id="S", anchor_id="T")
        assert by_alias == by_name


class TestCoords:
    def test_list_is_rounded_to_three_decimals(self):
        rec = CityRecord(name="Berg", coords=[1.23456, 2.0, -3.99999])
        assert rec.coords == (1.235, 2.0, -4.0)

    def test_mapping_form(self):
        rec = CityRecord(name="Berg", coords={"x": 1, "Y": 2, "z": 3})
        assert rec.coords == (1.0, 2.0, 3.0)

    def test_string_form(self):
        rec = CityRecord(name="Berg", coords="(10.5, 20, -30)")
        assert rec.coords == (10.5, 20.0, -30.0)

    def test_too_few_components(self):
        with pytest.raises(ValidationError):
            CityRecord(name="Berg", coords=[1.0, 2.0])

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            CityRecord(name="Berg", coords=[float("nan"), 0.0, 0.0])


class TestPriceAndLegacyFields:
    def test_negative_price_means_default(self):
        assert CityRecord(name="Berg", price=-1).price is None

    def test_legacy_variant_fields_are_folded(self):
        rec = CityRecord.model_validate({
            "name": "Cierzo",
            "variantNormalName": "Cierzo",
            "variantDestroyedName": "CierzoDestroyed",
        })
        assert rec.variants == ["Cierzo", "CierzoDestroyed"]
        assert rec.last_known_variant == "Cierzo"
        assert "variantNormalName" not in rec.to_document()

    def test_legacy_fields_ignored_when_variants_present(self):
        rec = CityRecord.model_validate({
            "name": "Cierzo",
            "variants": ["A_variant"],
            "variantNormalName": "Other",
        })
        assert rec.variants == ["A_variant"]

    def test_variants_deduplicated_in_order(self):
        rec = CityRecord(name="Berg", variants=["Berg", " Berg ", "BergRuins"])
        assert rec.variants == ["Berg", "BergRuins"]


class TestSerialization:
    def test_all_known_fields_present_in_order(self):
        doc = CityRecord(name="Berg").to_document()
        assert list(doc) == [
            "name", "sceneName", "coords", "price", "targetGameObjectName",
            "desc", "enabled", "visited", "variants", "lastKnownVariant",
        ]
        assert doc["variants"] == []
        assert doc["lastKnownVariant"] == ""

    def test_unknown_keys_preserved(self):
        rec = CityRecord.model_validate({"name": "Berg", "note": "hi", "tier": 2})
        doc = rec.to_document()
        assert doc["note"] == "hi"
        assert doc["tier"] == 2

    def test_roundtrip_equality(self):
        rec = CityRecord(name="Berg", coords=(1.0, 2.0, 3.0), price=150, variants=["Berg"])
        assert CityRecord.model_validate(rec.to_document()) == rec

    def test_merged_applies_partial_by_either_key(self):
        rec = CityRecord(name="Berg")
        updated = rec.merged({"visited": True, "sceneName": "BergScene", "anchor_id": "Gate"})
        assert updated.visited is True
        assert updated.scene_id == "BergScene"
        assert updated.anchor_id == "Gate"
        assert rec.visited is False

    def test_merged_rejects_rename(self):
        with pytest.raises(ValueError):
            CityRecord(name="Berg").merged({"name": "Monsoon"})

    def test_merged_rejects_unknown_field(self):
        with pytest.raises(KeyError):
            CityRecord(name="Berg").merged({"vistied": True})

    def test_field_json_key(self):
        assert field_json_key("scene_id") == "sceneName"
        assert field_json_key("lastKnownVariant") == "lastKnownVariant"
        assert field_json_key("bogus") is None


class TestCityDocument:
    def test_extras_written_after_cities(self, sample_document):
        doc = CityDocument.model_validate(sample_document)
        out = doc.to_document()
        assert list(out) == ["cities", "schemaVersion"]
        assert out["schemaVersion"] == 3
        assert doc.names() == ["Cierzo", "Berg"]


# ---------------------------------------------------------------------------
# Variant-name validators
# ---------------------------------------------------------------------------

class TestVariantNames:
    @pytest.mark.parametrize("name", ["Cierzo", "CierzoDestroyed", "New Sirocco"])
    def test_plausible(self, name):
        assert is_plausible_variant_name(name)

    @pytest.mark.parametrize("name", [
        "",
        None,
        "ab",
        "12345",
        "Cierzo (120.5, 4.0, -33.1)",
        "Default Chunk 7",
        "chunk_0042",
        "DebugSpawner",
        "Placeholder_City",
        "x" * 201,
    ])
    def test_implausible(self, name):
        assert not is_plausible_variant_name(name)

    def test_issues_are_reported(self):
        issues = variant_name_issues("12")
        assert any("letters" in issue for issue in issues)

    def test_normalize_object_name_strips_clone(self):
        assert normalize_object_name("Berg_Gate(Clone)  ") == "Berg_Gate"
        assert normalize_object_name("Berg   Gate (Clone)") == "Berg Gate"

    def test_confidence_parse(self):
        assert VariantConfidence.parse("high") is VariantConfidence.HIGH
        assert VariantConfidence.parse(1) is VariantConfidence.LOW
        assert VariantConfidence.parse("nonsense") is VariantConfidence.NONE
