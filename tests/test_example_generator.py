import copy
import uuid
from pathlib import Path

import pytest
import yaml

from api_request_synth.errors import SchemaResolutionError
from api_request_synth.generator.example import CANONICAL_UUID, ExampleOptions, generate_example

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def petstore():
    return yaml.safe_load((FIXTURES / "petstore.yaml").read_text(encoding="utf-8"))


def _ref(name: str) -> dict:
    return {"$ref": f"#/components/schemas/{name}"}


class TestShapes:
    @pytest.mark.parametrize(
        "schema, expected_type",
        [
            ({"type": "object", "properties": {"a": {"type": "string"}}}, dict),
            ({"type": "array", "items": {"type": "string"}}, list),
            ({"type": "string"}, str),
            ({"type": "integer"}, int),
            ({"type": "number"}, (int, float)),
            ({"type": "boolean"}, bool),
            ({"properties": {"a": {"type": "string"}}}, dict),
            ({"items": {"type": "integer"}}, list),
        ],
    )
    def test_value_matches_declared_type(self, schema, expected_type):
        assert isinstance(generate_example(schema), expected_type)

    def test_boolean_is_true(self):
        assert generate_example({"type": "boolean"}) is True

    def test_null_and_untyped_give_none(self):
        assert generate_example({"type": "null"}) is None
        assert generate_example({}) is None
        assert generate_example({"description": "anything"}) is None

    def test_type_list_uses_first_non_null(self):
        assert generate_example({"type": ["null", "integer"]}) == 0
        assert generate_example({"type": ["null"]}) is None

    def test_nullable_still_produces_a_value(self):
        assert generate_example({"type": "string", "nullable": True}) == "string"


class TestExplicitValues:
    def test_example_is_returned_unchanged(self):
        schema = {"type": "object", "example": {"a": [1, 2], "b": {"c": None}}}
        result = generate_example(schema)
        assert result == {"a": [1, 2], "b": {"c": None}}
        assert result is not schema["example"]
        assert result["a"] is not schema["example"]["a"]

    def test_examples_list_uses_first(self):
        assert generate_example({"type": "integer", "examples": [42, 7]}) == 42

    def test_examples_mapping_uses_first_value(self):
        schema = {"type": "integer", "examples": {"first": {"value": 3}, "second": {"value": 4}}}
        assert generate_example(schema) == 3

    def test_default_then_const(self):
        assert generate_example({"type": "string", "default": "fallback"}) == "fallback"
        assert generate_example({"type": "string", "const": "fixed"}) == "fixed"

    def test_example_wins_over_enum(self):
        assert generate_example({"type": "string", "enum": ["a", "b"], "example": "b"}) == "b"

    def test_examples_ignored_when_not_preferred(self):
        options = ExampleOptions(prefer_examples=False)
        assert generate_example({"type": "string", "example": "x"}, options) == "string"

    def test_enum_first_entry(self):
        assert generate_example({"type": "string", "enum": ["available", "pending"]}) == "available"

    def test_const_beats_enum_without_examples(self):
        options = ExampleOptions(prefer_examples=False)
        assert generate_example({"const": 5, "enum": [1, 2]}, options) == 5


class TestNumbers:
    def test_unconstrained_is_zero(self):
        assert generate_example({"type": "integer"}) == 0
        assert generate_example({"type": "number"}) == 0

    def test_default_wins_even_without_preferring_examples(self):
        options = ExampleOptions(prefer_examples=False)
        assert generate_example({"type": "integer", "default": 7, "minimum": 1}, options) == 7

    @pytest.mark.parametrize(
        "schema, expected",
        [
            ({"type": "integer", "minimum": 5}, 5),
            ({"type": "integer", "minimum": -10}, 0),
            ({"type": "integer", "maximum": 100}, 0),
            ({"type": "integer", "minimum": 0, "exclusiveMinimum": True}, 1),
            ({"type": "integer", "exclusiveMinimum": 0}, 1),
            ({"type": "integer", "maximum": -3}, -3),
            ({"type": "integer", "exclusiveMaximum": -3}, -4),
            ({"type": "integer", "maximum": 0, "exclusiveMaximum": True}, -1),
            ({"type": "integer", "minimum": 0.5}, 1),
            ({"type": "integer", "exclusiveMinimum": 0.5}, 1),
            ({"type": "integer", "exclusiveMaximum": -2.5}, -3),
            ({"type": "integer", "maximum": -2.5}, -3),
            ({"type": "integer", "minimum": 3, "multipleOf": 5}, 5),
            ({"type": "number", "exclusiveMinimum": 0, "exclusiveMaximum": 1}, 0.5),
        ],
    )
    def test_boundary_rule(self, schema, expected):
        assert generate_example(schema) == expected

    def test_integer_result_is_int(self):
        assert isinstance(generate_example({"type": "integer", "minimum": 0.5}), int)


class TestStrings:
    @pytest.mark.parametrize(
        "fmt, expected",
        [
            ("date", "1970-01-01"),
            ("date-time", "1970-01-01T00:00:00Z"),
            ("email", "hello@example.com"),
            ("uri", "https://example.com"),
            ("ipv4", "127.0.0.1"),
            ("binary", "@filename"),
            ("uuid", CANONICAL_UUID),
        ],
    )
    def test_known_formats(self, fmt, expected):
        assert generate_example({"type": "string", "format": fmt}) == expected

    def test_unknown_format_uses_placeholder(self):
        assert generate_example({"type": "string", "format": "something-custom"}) == "string"

    def test_seeded_uuid_is_deterministic(self):
        schema = {"type": "string", "format": "uuid"}
        first = generate_example(schema, ExampleOptions(seed=1))
        second = generate_example(schema, ExampleOptions(seed=1))
        assert first == second
        assert first != CANONICAL_UUID
        assert uuid.UUID(first).version == 4

    def test_length_limits(self):
        assert generate_example({"type": "string", "minLength": 10}) == "stringxxxx"
        assert generate_example({"type": "string", "maxLength": 3}) == "str"


class TestArrays:
    def test_single_item(self):
        assert generate_example({"type": "array", "items": {"type": "integer"}}) == [0]

    def test_two_items_when_min_items_above_one(self):
        assert generate_example({"type": "array", "minItems": 3, "items": {"type": "string"}}) == ["string", "string"]

    def test_tuple_items(self):
        schema = {"type": "array", "items": [{"type": "string"}, {"type": "integer"}]}
        assert generate_example(schema) == ["string", 0]

    def test_prefix_items(self):
        schema = {"type": "array", "prefixItems": [{"type": "boolean"}, {"type": "string", "format": "date"}]}
        assert generate_example(schema) == [True, "1970-01-01"]

    def test_no_items(self):
        assert generate_example({"type": "array"}) == []


class TestObjects:
    def test_required_property_always_present(self):
        schema = {
            "type": "object",
            "required": ["a"],
            "properties": {"a": {"type": "string"}, "b": {"type": "string"}},
        }
        assert "a" in generate_example(schema)
        assert generate_example(schema, ExampleOptions(omit_optional=True)) == {"a": "string"}

    def test_optional_properties_stop_at_depth_budget(self):
        schema = {
            "type": "object",
            "required": ["child"],
            "properties": {
                "child": {
                    "type": "object",
                    "required": ["a"],
                    "properties": {"a": {"type": "string"}, "b": {"type": "string"}},
                }
            },
        }
        assert generate_example(schema, ExampleOptions(max_depth=1)) == {"child": {"a": "string"}}
        assert generate_example(schema) == {"child": {"a": "string", "b": "string"}}

    def test_additional_properties(self):
        schema = {"type": "object", "additionalProperties": {"type": "integer"}}
        assert generate_example(schema) == {"additionalProperty": 0}

    def test_write_mode_skips_read_only(self):
        schema = {
            "type": "object",
            "properties": {
                "id": {"type": "integer", "readOnly": True},
                "password": {"type": "string", "writeOnly": True},
            },
        }
        assert generate_example(schema, ExampleOptions(mode="write")) == {"password": "string"}
        assert generate_example(schema, ExampleOptions(mode="read")) == {"id": 0}
        assert generate_example(schema) == {"id": 0, "password": "string"}


class TestCombinators:
    def test_one_of_uses_first_branch(self):
        assert generate_example({"oneOf": [{"type": "string"}, {"type": "integer"}]}) == "string"

    def test_any_of_uses_first_branch(self):
        assert generate_example({"anyOf": [{"type": "integer"}, {"type": "string"}]}) == 0

    def test_all_of_merges_referenced_branches(self, petstore):
        assert generate_example(_ref("Pet"), root=petstore) == {
            "name": "doggie",
            "tag": "string",
            "status": "available",
            "id": 0,
        }

    def test_all_of_later_scalars_overwrite(self):
        schema = {
            "allOf": [
                {"type": "object", "required": ["a"], "properties": {"a": {"type": "string", "example": "x"}}},
                {"required": ["a"], "properties": {"a": {"example": "y"}}},
            ]
        }
        assert generate_example(schema) == {"a": "y"}

    def test_all_of_merges_nested_objects(self):
        schema = {
            "allOf": [
                {"required": ["meta"], "properties": {"meta": {"required": ["x"], "properties": {"x": {"type": "integer"}}}}},
                {"required": ["meta"], "properties": {"meta": {"required": ["y"], "properties": {"y": {"type": "boolean"}}}}},
            ]
        }
        assert generate_example(schema) == {"meta": {"x": 0, "y": True}}

    def test_all_of_includes_own_properties(self):
        schema = {
            "type": "object",
            "required": ["own"],
            "properties": {"own": {"type": "string"}},
            "allOf": [{"required": ["extra"], "properties": {"extra": {"type": "integer"}}}],
        }
        assert generate_example(schema) == {"own": "string", "extra": 0}


class TestCycles:
    def test_self_referential_ref_terminates(self, petstore):
        result = generate_example(_ref("TreeNode"), ExampleOptions(max_depth=3), root=petstore)
        assert result == {
            "value": "string",
            "children": [{"value": "string", "children": [{"value": "string", "children": [None]}]}],
        }

    def test_default_budget_terminates(self, petstore):
        result = generate_example(_ref("TreeNode"), root=petstore)
        levels = 0
        node = result
        while isinstance(node, dict):
            levels += 1
            node = node["children"][0]
        assert levels == ExampleOptions().max_depth

    def test_object_cycle_without_refs(self):
        schema = {"type": "object", "required": ["self"], "properties": {}}
        schema["properties"]["self"] = schema
        assert generate_example(schema, ExampleOptions(max_depth=2)) == {"self": {"self": None}}


class TestResolution:
    def test_unresolved_ref_raises(self):
        with pytest.raises(SchemaResolutionError):
            generate_example(_ref("Missing"), root={"components": {"schemas": {}}})

    def test_ref_without_root_raises(self):
        with pytest.raises(SchemaResolutionError):
            generate_example(_ref("Pet"))

    def test_external_ref_raises(self):
        with pytest.raises(SchemaResolutionError) as exc_info:
            generate_example({"$ref": "other.yaml#/Pet"}, root={})
        assert exc_info.value.ref == "other.yaml#/Pet"

    def test_document_is_not_mutated(self, petstore):
        before = copy.deepcopy(petstore)
        generate_example(_ref("Pet"), root=petstore)
        generate_example(_ref("TreeNode"), root=petstore)
        assert petstore == before


def _count_objects(value) -> int:
    if isinstance(value, dict):
        return 1 + sum(_count_objects(v) for v in value.values())
    if isinstance(value, list):
        return sum(_count_objects(v) for v in value)
    return 0


class TestRecursionBreadth:
    def test_optional_self_references_are_left_out(self):
        links = ("parent", "source", "template", "fork_of", "mirror_of", "upstream")
        root = {
            "components": {
                "schemas": {
                    "Repo": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            **{link: _ref("Repo") for link in links},
                            "forks": {"type": "array", "items": _ref("Repo")},
                        },
                    }
                }
            }
        }
        assert generate_example(_ref("Repo"), root=root) == {"name": "string"}

    def test_optional_reference_to_an_ancestor_is_left_out(self):
        root = {
            "components": {
                "schemas": {
                    "Owner": {
                        "type": "object",
                        "required": ["repo"],
                        "properties": {"login": {"type": "string"}, "repo": _ref("Repo")},
                    },
                    "Repo": {
                        "type": "object",
                        "properties": {"name": {"type": "string"}, "owner": _ref("Owner")},
                    },
                }
            }
        }
        assert generate_example(_ref("Owner"), root=root) == {"login": "string", "repo": {"name": "string"}}

    def test_required_mutual_recursion_is_bounded(self):
        def node(target: str) -> dict:
            return {
                "type": "object",
                "required": ["left", "right"],
                "properties": {"left": _ref(target), "right": _ref(target)},
            }

        root = {"components": {"schemas": {"A": node("B"), "B": node("C"), "C": node("A")}}}
        result = generate_example(_ref("A"), root=root)
        # three fresh levels plus max_depth - 1 re-entries, each level doubling
        assert _count_objects(result) == 2 ** 12 - 1
