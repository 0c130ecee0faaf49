"""Unit tests for coercion of externally supplied schemas."""

import pytest

from formcraft.coercion import coerce_schema
from formcraft.config import Policy
from formcraft.registry import ComponentRegistry
from formcraft.types import ComponentType


class TestAcceptedInput:

    def test_persisted_form_shape(self):
        result = coerce_schema({
            "formName": "Contact",
            "formComponents": [
                {"id": "a", "type": "text", "label": "Name", "required": True},
                {"id": "b", "type": "select", "label": "Subject", "options": ["General", "Support"]},
            ],
        })
        assert result.is_clean
        assert result.schema.name == "Contact"
        assert result.schema.field_ids() == ["a", "b"]
        assert result.schema.get("a").required is True

    def test_aliases_and_bare_list(self):
        aliased = coerce_schema({"name": "Survey", "fields": [{"id": "a", "type": "date"}]})
        assert aliased.schema.name == "Survey"
        assert len(coerce_schema([{"id": "a", "type": "date"}]).schema) == 1

    def test_rejects_non_schema(self):
        with pytest.raises(TypeError):
            coerce_schema("not a schema")


class TestItemRejection:
    """Items without a usable type are excluded on their own."""

    def test_reasons(self):
        result = coerce_schema([
            "text",
            {"label": "No type"},
            {"type": 7},
            {"type": "signature"},
            {"id": "ok", "type": "text"},
        ])
        assert result.rejected == [
            (0, "not an object"),
            (1, "missing type"),
            (2, "invalid type"),
            (3, "unknown type 'signature'"),
        ]
        assert result.schema.field_ids() == ["ok"]

    def test_components_not_a_list(self):
        result = coerce_schema({"formName": "X", "formComponents": {"a": 1}})
        assert len(result.schema) == 0


class TestAttributeCleanup:

    def test_unrecognized_attributes_dropped(self):
        result = coerce_schema([
            {"id": "a", "type": "text", "label": "Name", "colour": "red", "allowHalf": True},
        ])
        assert result.dropped == {0: ["allowHalf", "colour"]}
        assert result.schema.get("a").allow_half is None

    def test_wrong_typed_attributes_dropped(self):
        result = coerce_schema([
            {"id": "s", "type": "slider", "label": "S", "min": "low", "max": 10},
        ])
        field = result.schema.get("s")
        assert field.min_value is None
        assert field.max_value == 10
        assert result.dropped == {0: ["min"]}

    def test_options_truncated_to_cap(self):
        options = [f"Choice {n}" for n in range(8)]
        result = coerce_schema([{"id": "r", "type": "radio", "label": "R", "options": options}])
        assert list(result.schema.get("r").options) == options[:5]
        assert result.dropped == {0: ["options[5:]"]}

    def test_cap_follows_policy(self):
        registry = ComponentRegistry(policy=Policy(option_cap=2, default_option_count=2))
        result = coerce_schema(
            [{"id": "r", "type": "radio", "options": ["A", "B", "C"]}], registry=registry
        )
        assert list(result.schema.get("r").options) == ["A", "B"]

    def test_missing_label_uses_type_label(self):
        result = coerce_schema([{"id": "a", "type": "url"}])
        assert result.schema.get("a").label == "URL"

    def test_location_value_kept(self):
        result = coerce_schema([
            {"id": "l", "type": "location", "locationValue": {"lat": 1, "lng": 2}},
        ])
        assert result.schema.get("l").location_value.lat == 1.0


class TestIds:

    def test_missing_and_duplicate_ids_regenerated(self):
        result = coerce_schema([
            {"id": "a", "type": "text"},
            {"id": "a", "type": "email"},
            {"type": "number"},
            {"id": "", "type": "date"},
        ])
        ids = result.schema.field_ids()
        assert ids[0] == "a"
        assert len(set(ids)) == 4
        assert len(result.regenerated_ids) == 3
        assert not result.is_clean
        assert [f.type for f in result.schema] == [
            ComponentType.TEXT, ComponentType.EMAIL, ComponentType.NUMBER, ComponentType.DATE,
        ]

    def test_non_string_id_regenerated(self):
        result = coerce_schema([{"id": 12, "type": "text"}])
        assert result.schema.fields[0].id != 12
        assert result.dropped == {}
