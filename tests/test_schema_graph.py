"""
Tests for the schema engine.
"""
import pytest

from specplan.core.errors import InvalidError, NotFoundError, SchemaMismatchError
from specplan.services.schema_graph import SchemaGraph, SchemaKind, numeric_bounds, ref_name, schema_kind

DEFINITIONS = {
    "Category": {
        "type": "object",
        "properties": {
            "id": {"type": "integer", "x-specplan": "Category.id"},
            "name": {"type": "string"},
        },
    },
    "Pet": {
        "type": "object",
        "required": ["name"],
        "properties": {
            "name": {"type": "string", "pattern": "^[a-z]+$"},
            "status": {"type": "string", "enum": ["available", "pending", "sold"]},
            "category": {"$ref": "#/components/schemas/Category"},
            "tags": {"type": "array", "items": {"type": "string"}},
        },
    },
    "Letters": {
        "type": "object",
        "properties": {
            "a": {"type": "string"},
            "b": {"type": "string"},
            "c": {"type": "string"},
        },
    },
    "AB": {
        "type": "object",
        "properties": {"a": {"type": "string"}, "b": {"type": "string"}},
    },
    "Combined": {
        "allOf": [
            {"$ref": "#/components/schemas/AB"},
            {"type": "object", "properties": {"c": {"type": "string"}}},
        ]
    },
    "Node": {
        "type": "object",
        "properties": {
            "label": {"type": "string"},
            "parent": {"$ref": "#/components/schemas/Node", "x-specplan": "weak"},
            "children": {"type": "array", "items": {"$ref": "#/components/schemas/Node"}},
        },
    },
    "Hidden": {"type": "object", "description": "<specplan weak>", "properties": {}},
    "Holder": {
        "type": "object",
        "properties": {"hidden": {"$ref": "#/definitions/Hidden"}},
    },
}


@pytest.fixture
def graph():
    return SchemaGraph(DEFINITIONS)


def test_schema_kinds():
    assert schema_kind({"$ref": "#/definitions/Pet"}) == SchemaKind.REFERENCE
    assert schema_kind(DEFINITIONS["Combined"]) == SchemaKind.COMPOSITE
    assert schema_kind({"type": "array", "items": {}}) == SchemaKind.ARRAY
    assert schema_kind({"properties": {"a": {}}}) == SchemaKind.OBJECT
    assert schema_kind({"type": ["string", "null"]}) == SchemaKind.PRIMITIVE


def test_ref_name():
    assert ref_name("#/components/schemas/Pet") == "Pet"
    assert ref_name("#/definitions/a~1b") == "a/b"


def test_resolve_unknown_reference(graph):
    with pytest.raises(NotFoundError):
        graph.resolve({"$ref": "#/definitions/Owner"})


def test_get_properties_follows_refs_and_merges_all_of(graph):
    """allOf parts are flattened into one property map."""
    assert set(graph.get_properties({"$ref": "#/definitions/Pet"})) == {"name", "status", "category", "tags"}
    assert set(graph.get_properties(DEFINITIONS["Combined"])) == {"a", "b", "c"}


def test_matches_valid_pet(graph):
    pet = {"name": "rex", "status": "sold", "category": {"id": 3, "name": "dogs"}, "tags": ["x"]}
    assert graph.matches(DEFINITIONS["Pet"], pet)


def test_none_always_parses(graph):
    assert graph.matches(DEFINITIONS["Pet"], None)


def test_required_field_missing(graph):
    with pytest.raises(SchemaMismatchError) as excinfo:
        graph.parses(DEFINITIONS["Pet"], {"status": "sold"}, {})
    assert "required field not present: name" in str(excinfo.value)


def test_type_mismatch_names_schema_and_object(graph):
    """Diagnostics carry both sides, pretty printed."""
    with pytest.raises(SchemaMismatchError) as excinfo:
        graph.parses({"type": "string"}, 12, {})
    message = str(excinfo.value)
    assert "Schema:\n{\n    \"type\": \"string\"\n}" in message
    assert "Object:\n12" in message
    assert excinfo.value.obj == 12


def test_numbers_are_interchangeable(graph):
    """Integers and floats both fit integer and number schemas."""
    assert graph.matches({"type": "integer"}, 2.0)
    assert graph.matches({"type": "number"}, 2)
    assert not graph.matches({"type": "integer"}, True)
    assert graph.matches({"type": "boolean"}, False)
    assert not graph.matches({"type": "boolean"}, 0)


def test_pattern_and_enum_values(graph):
    assert not graph.matches(DEFINITIONS["Pet"], {"name": "Rex"})
    assert not graph.matches(DEFINITIONS["Pet"], {"name": "rex", "tags": "x"})


def test_object_against_non_object_schema(graph):
    assert not graph.matches({"type": "string"}, {"a": 1})
    assert not graph.matches({"type": "string"}, ["a"])


def test_array_needs_item_schema(graph):
    with pytest.raises(SchemaMismatchError):
        graph.parses({"type": "array"}, ["a"], {})


def test_threshold_boundary_for_objects(graph):
    """At least 75% of the fields must be recognized: 4k >= 3n."""
    schema = DEFINITIONS["Letters"]
    # k = 2, n = 3: 4k = 3n - 1
    assert not graph.matches(schema, {"a": "x", "b": "y", "z": 1})
    # k = 3, n = 4: 4k = 3n
    assert graph.matches(schema, {"a": "x", "b": "y", "c": "z", "z": 1})


def test_threshold_boundary_for_composites(graph):
    """Fields of all the allOf parts count together."""
    schema = DEFINITIONS["Combined"]
    assert not graph.matches(schema, {"a": "x", "c": "y", "z": 1})
    assert graph.matches(schema, {"a": "x", "b": "y", "c": "z", "z": 1})


def test_composite_rejects_non_maps(graph):
    with pytest.raises(SchemaMismatchError) as excinfo:
        graph.parses(DEFINITIONS["Combined"], ["a"], {})
    assert "object is not a map" in str(excinfo.value)


def test_composite_checks_each_part(graph):
    assert not graph.matches(DEFINITIONS["Combined"], {"a": 1, "b": "y", "c": "z"})


def test_parses_collects_objects_by_schema_name(graph):
    """Referenced objects are collected under the definition name."""
    pet = {"name": "rex", "category": {"id": 7, "name": "dogs"}}
    collection = {}
    graph.parses({"$ref": "#/definitions/Pet"}, pet, collection)

    assert collection["Pet"] == [pet]
    assert collection["Category"] == [{"id": 7, "name": "dogs"}]
    # Tagged scalars are attributed to their semantic slot
    assert collection["Category.id"] == [7]


def test_parses_composite_collects_whole_object(graph):
    obj = {"a": "x", "b": "y", "c": "z"}
    collection = {}
    graph.parses({"$ref": "#/definitions/Combined"}, obj, collection)
    assert collection["Combined"] == [obj]
    # Parts are anonymous, only the referenced AB part has a name
    assert collection["AB"] == [{"a": "x", "b": "y"}]


def test_parses_without_following_refs(graph):
    """Shallow scans don't descend into references."""
    pet = {"name": "rex", "category": {"id": "not a number"}}
    collection = {}
    graph.parses(DEFINITIONS["Pet"], pet, collection, name="Pet", follow_ref=False)
    assert collection == {"Pet": [pet]}
    assert not graph.matches(DEFINITIONS["Pet"], pet)


def test_validate_string_length_counts_codepoints(graph):
    schema = {"type": "string", "minLength": 2, "maxLength": 3}
    assert graph.validate(schema, "été")
    assert not graph.validate(schema, "é")
    assert not graph.validate(schema, "étés")
    assert graph.validate({"type": "string", "minLength": 1}, "x" * 1000)


def test_validate_numeric_range(graph):
    schema = {"type": "number", "minimum": 5, "maximum": 10}
    assert graph.validate(schema, 5)
    assert graph.validate(schema, 10)
    assert not graph.validate(schema, 4.99)
    assert not graph.validate(schema, 10.01)
    assert graph.validate({"type": "integer"}, -10 ** 12)


def test_validate_exclusive_bounds(graph):
    assert not graph.validate({"type": "number", "minimum": 5, "exclusiveMinimum": True}, 5)
    assert not graph.validate({"type": "number", "exclusiveMaximum": 10}, 10)
    assert graph.validate({"type": "number", "exclusiveMaximum": 10}, 9.5)


def test_validate_pattern(graph):
    """The pattern only needs to be found in the value."""
    assert graph.validate({"type": "string", "pattern": "[0-9]+"}, "abc123")
    assert not graph.validate({"type": "string", "pattern": "^[0-9]+$"}, "abc123")
    assert graph.validate({"type": "integer", "pattern": "^4"}, 42)
    with pytest.raises(InvalidError):
        graph.validate({"type": "string", "pattern": "["}, "a")


def test_iterate_skips_weak_edges(graph):
    """A weak self reference is not followed by default."""
    visited = []
    graph.iterate(DEFINITIONS["Node"], lambda name, node, ctx: visited.append((name, node)))

    names = [name for name, _ in visited]
    assert names.count("Node") == 1  # through children items, visited once
    assert not any(node is DEFINITIONS["Node"]["properties"]["parent"] for _, node in visited)


def test_iterate_forcing_weak_edges(graph):
    """Referents are visited but never expanded, so traversal ends."""
    visited = []
    graph.iterate(DEFINITIONS["Node"], lambda name, node, ctx: visited.append(name), follow_weak=True)
    assert visited.count("Node") == 2


def test_iterate_checks_weak_referent(graph):
    visited = []
    graph.iterate(DEFINITIONS["Holder"], lambda name, node, ctx: visited.append(name))
    assert "Hidden" not in visited

    visited = []
    graph.iterate(DEFINITIONS["Holder"], lambda name, node, ctx: visited.append(name), follow_weak=True)
    assert "Hidden" in visited


def test_iterate_passes_context_and_aborts_on_error(graph):
    """A raising visitor stops the traversal."""
    seen = []

    def visit(name, node, context):
        context.append(node)
        if node.get("type") == "string":
            raise RuntimeError("stop")

    with pytest.raises(RuntimeError):
        graph.iterate(DEFINITIONS["Letters"], visit, seen)
    assert len(seen) == 2


def test_iterate_composite_visits_parts(graph):
    visited = []
    graph.iterate(DEFINITIONS["Combined"], lambda name, node, ctx: visited.append(name))
    assert visited == ["", "", "AB", "", ""]


def test_contains(graph):
    assert graph.contains(DEFINITIONS["Pet"], "Category")
    assert not graph.contains(DEFINITIONS["Pet"], "Node")
    assert graph.contains(DEFINITIONS["Holder"], "Hidden")


def test_numeric_bounds_forms():
    assert numeric_bounds({"minimum": 1, "exclusiveMinimum": True}) == (1, None, True, False)
    assert numeric_bounds({"exclusiveMaximum": 3}) == (None, 3, False, True)
    assert numeric_bounds({}) == (None, None, False, False)


def test_broken_schemas_never_match(graph):
    """Dangling references and bad patterns are mismatches, not errors."""
    dangling = {"type": "object", "properties": {"x": {"$ref": "#/definitions/Missing"}}}
    assert not graph.matches(dangling, {"x": "s"})
    assert not graph.matches({"type": "string", "pattern": "["}, "a")
    with pytest.raises(NotFoundError):
        graph.parses(dangling, {"x": "s"}, {})
