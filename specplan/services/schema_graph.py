"""
Schema engine: matching, parsing and traversal of schema nodes.

Nodes are the plain schema dicts of the document. Named definitions live in
one index and ``$ref`` nodes are resolved by name, so recursive definitions
never turn into recursive Python objects.
"""
import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from specplan.core.errors import InvalidError, NotFoundError, SchemaMismatchError, SpecPlanError
from specplan.services.schema_tags import get_tag

logger = logging.getLogger(__name__)

# Objects must have at least 75% of their fields recognized by the schema.
MATCH_NUMERATOR = 3
MATCH_DENOMINATOR = 4

NUMERIC_TYPES = {"integer", "number"}

Collection = Dict[str, List[Any]]
SchemaVisitor = Callable[[str, Dict[str, Any], Any], None]


class SchemaKind(str, Enum):
    """Schema node kinds."""
    REFERENCE = "reference"
    COMPOSITE = "composite"
    OBJECT = "object"
    ARRAY = "array"
    PRIMITIVE = "primitive"


def schema_types(node: Mapping[str, Any]) -> Set[str]:
    """Declared types of a node. OpenAPI 3.1 allows a list."""
    declared = node.get("type")
    if not declared:
        return set()
    if isinstance(declared, str):
        return {declared}
    return set(declared)


def schema_kind(node: Mapping[str, Any]) -> SchemaKind:
    if "$ref" in node:
        return SchemaKind.REFERENCE
    if node.get("allOf"):
        return SchemaKind.COMPOSITE
    types = schema_types(node)
    if "array" in types:
        return SchemaKind.ARRAY
    if "object" in types or (not types and "properties" in node):
        return SchemaKind.OBJECT
    return SchemaKind.PRIMITIVE


def ref_name(ref: str) -> str:
    """Definition name a local $ref points at."""
    name = ref.rsplit("/", 1)[-1]
    return name.replace("~1", "/").replace("~0", "~")


def numeric_bounds(node: Mapping[str, Any]) -> Tuple[Optional[float], Optional[float], bool, bool]:
    """
    Numeric constraints of a node.

    Returns:
        (minimum, maximum, exclusive_minimum, exclusive_maximum). Handles both
        the boolean exclusivity flags of Swagger 2 / OpenAPI 3.0 and the
        numeric form of OpenAPI 3.1.
    """
    minimum = node.get("minimum")
    maximum = node.get("maximum")
    exclusive_min = node.get("exclusiveMinimum", False)
    exclusive_max = node.get("exclusiveMaximum", False)

    if not isinstance(exclusive_min, bool):
        minimum, exclusive_min = exclusive_min, True
    if not isinstance(exclusive_max, bool):
        maximum, exclusive_max = exclusive_max, True
    return minimum, maximum, exclusive_min, exclusive_max


def _string_form(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class _Found(Exception):
    """Stops a traversal once the searched schema is seen."""


class SchemaGraph:
    """Named schema definitions with resolve-by-name lookup."""

    def __init__(self, definitions: Optional[Mapping[str, Dict[str, Any]]] = None):
        self.definitions: Dict[str, Dict[str, Any]] = dict(definitions or {})

    @classmethod
    def from_parser(cls, parser) -> "SchemaGraph":
        return cls(parser.get_schemas())

    def resolve(self, node: Mapping[str, Any]) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        """
        Follow a reference node.

        Returns:
            (name, definition) for a $ref node, (None, None) otherwise
        """
        ref = node.get("$ref")
        if ref is None:
            return None, None
        name = ref_name(ref)
        if name not in self.definitions:
            raise NotFoundError(f"Schema {name} referenced by {ref} is not defined")
        return name, self.definitions[name]

    def get_properties(self, node: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """First level properties, following $refs and merging allOf parts."""
        if node.get("properties"):
            return node["properties"]
        _, referred = self.resolve(node)
        if referred is not None:
            return self.get_properties(referred)
        properties: Dict[str, Dict[str, Any]] = {}
        for part in node.get("allOf") or []:
            properties.update(self.get_properties(part))
        return properties

    def matches(self, node: Mapping[str, Any], obj: Any) -> bool:
        """
        Check whether the object fits the schema.

        Any error while parsing counts as a mismatch, including dangling
        references and invalid patterns.
        """
        try:
            self.parses(node, obj, {})
        except SchemaMismatchError:
            return False
        except SpecPlanError as e:
            logger.debug(f"Schema can't be matched: {str(e)}")
            return False
        return True

    def parses(
        self,
        node: Mapping[str, Any],
        obj: Any,
        collection: Collection,
        name: str = "",
        follow_ref: bool = True,
    ) -> None:
        """
        Parse the object against the schema.

        Raises SchemaMismatchError when they don't match. Otherwise every
        object recognized on the way is appended to ``collection`` under its
        schema name, and tagged scalars under ``Class.property``.

        Args:
            node: Schema node
            obj: Decoded JSON value
            collection: Receives the recognized objects
            name: Schema name of ``node``, empty for anonymous nodes
            follow_ref: Descend into referenced schemas
        """
        if obj is None:
            return

        def mismatch(reason: str) -> SchemaMismatchError:
            return SchemaMismatchError(reason, node, obj)

        ref_schema_name, referred = self.resolve(node)
        if referred is not None:
            if not follow_ref:
                return
            return self.parses(referred, obj, collection, ref_schema_name, follow_ref)

        if node.get("allOf"):
            # allOf can only combine objects.
            if not isinstance(obj, Mapping):
                raise mismatch("object is not a map")
            count = 0
            for part in node["allOf"]:
                properties = self.get_properties(part)
                if not properties:
                    continue
                subset = {k: v for k, v in obj.items() if k in properties}
                count += len(subset)
                # The name is handled at this level, not by the parts.
                self.parses(part, subset, collection, "", follow_ref)
            if count * MATCH_DENOMINATOR < len(obj) * MATCH_NUMERATOR:
                raise mismatch("too many mismatched fields")
            if name:
                collection.setdefault(name, []).append(obj)
            return

        types = schema_types(node)
        if isinstance(obj, bool):
            if "boolean" not in types:
                raise mismatch("schema is not a boolean")
        elif isinstance(obj, (int, float)):
            # JSON doesn't tell integers and floats apart reliably.
            if not types & NUMERIC_TYPES:
                raise mismatch("schema is not a number")
            if not self.validate(node, obj):
                raise mismatch("number validation failed")
        elif isinstance(obj, str):
            if "string" not in types:
                raise mismatch("schema is not a string")
            if not self.validate(node, obj):
                raise mismatch("string validation failed")
        elif isinstance(obj, Mapping):
            self._parses_object(node, obj, collection, name, follow_ref, mismatch)
            return
        elif isinstance(obj, list):
            if "array" not in types:
                raise mismatch("schema is not an array")
            items = node.get("items")
            if items is None:
                raise mismatch("item schema is null")
            for item in obj:
                self.parses(items, item, collection, "", follow_ref)
            return
        else:
            raise mismatch(f"unknown type: {type(obj).__name__}")

        tag = get_tag(node)
        if tag is not None and tag.key:
            collection.setdefault(tag.key, []).append(obj)

    def _parses_object(self, node, obj, collection, name, follow_ref, mismatch):
        types = schema_types(node)
        if types and "object" not in types:
            raise mismatch("schema is not an object")
        for required in node.get("required") or []:
            if required not in obj:
                raise mismatch(f"required field not present: {required}")

        properties = node.get("properties") or {}
        count = 0
        for property_name, value in obj.items():
            property_schema = properties.get(property_name)
            if property_schema is not None:
                count += 1
                self.parses(property_schema, value, collection, "", follow_ref)
        if count * MATCH_DENOMINATOR < len(obj) * MATCH_NUMERATOR:
            raise mismatch("too many mismatched fields")

        if name:
            collection.setdefault(name, []).append(obj)

    def validate(self, node: Mapping[str, Any], value: Any) -> bool:
        """Check string length, numeric range and pattern constraints."""
        types = schema_types(node)
        if "string" in types and isinstance(value, str):
            length = len(value)
            max_length = node.get("maxLength")
            if node.get("minLength", 0) > length or (max_length is not None and length > max_length):
                return False
        elif types & NUMERIC_TYPES and not isinstance(value, bool):
            minimum, maximum, exclusive_min, exclusive_max = numeric_bounds(node)
            if minimum is not None and (value < minimum or (exclusive_min and value == minimum)):
                return False
            if maximum is not None and (value > maximum or (exclusive_max and value == maximum)):
                return False

        pattern = node.get("pattern")
        if pattern:
            try:
                if re.search(pattern, _string_form(value)) is None:
                    return False
            except re.error as e:
                raise InvalidError(f"Invalid pattern {pattern}: {e}")
        return True

    def iterate(
        self,
        node: Mapping[str, Any],
        visitor: SchemaVisitor,
        context: Any = None,
        follow_weak: bool = False,
    ) -> None:
        """
        Walk the schema parent first and call ``visitor(name, node, context)``.

        Weak tagged nodes are skipped unless ``follow_weak`` is set. Referenced
        definitions are visited once, under their name, and never expanded.
        The visitor stops the walk by raising; the exception propagates.
        Forcing weak edges on a graph whose inline nodes form a cycle doesn't
        terminate.
        """
        tag = get_tag(node)
        if tag is not None and tag.weak and not follow_weak:
            return

        visitor("", node, context)

        if node.get("allOf"):
            for part in node["allOf"]:
                self.iterate(part, visitor, context, follow_weak)
            return

        reference_name, referred = self.resolve(node)
        if referred is not None:
            tag = get_tag(referred)
            if tag is not None and tag.weak and not follow_weak:
                return
            visitor(reference_name, referred, context)
            return

        kind = schema_kind(node)
        if kind == SchemaKind.OBJECT:
            for property_schema in (node.get("properties") or {}).values():
                self.iterate(property_schema, visitor, context, follow_weak)
        elif kind == SchemaKind.ARRAY and node.get("items") is not None:
            self.iterate(node["items"], visitor, context, follow_weak)

    def contains(self, node: Mapping[str, Any], name: str) -> bool:
        """Check whether the schema refers to the named definition."""
        def visit(schema_name, schema, context):
            if schema_name == name:
                raise _Found()

        try:
            self.iterate(node, visit, follow_weak=True)
        except _Found:
            return True
        return False
