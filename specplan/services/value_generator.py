"""
Parameter value generation from schema constraints.
"""
import base64
import logging
import math
import re
from datetime import timezone
from typing import Any, Dict, Optional

import rstr
from faker import Faker

from specplan.core.errors import InvalidError, UnsupportedError
from specplan.services.schema_graph import SchemaGraph, SchemaKind, numeric_bounds, schema_kind, schema_types

logger = logging.getLogger(__name__)

# Exclusive bounds are shrunk by this much.
EXCLUSIVE_EPSILON = 0.01

# Generated dates fall in the 30 days before now.
DATE_RANGE = "-30d"

DEFAULT_DIGITS = 5


class ValueGenerator:
    """Generate values that satisfy a schema's constraints."""

    def __init__(self, graph: Optional[SchemaGraph] = None, seed: Optional[int] = None):
        """
        Initialize generator.

        Args:
            graph: Schema graph used to resolve $refs
            seed: Seed for reproducible values
        """
        self.graph = graph
        self.faker = Faker()
        if seed is not None:
            self.faker.seed_instance(seed)
        self.random = self.faker.random
        # Pattern strings share the Faker seed
        self.xeger = rstr.Rstr(self.random)

    def generate_parameter(self, param: Dict[str, Any]) -> Any:
        """
        Generate a value for an OpenAPI parameter.

        OpenAPI 3 parameters and Swagger 2 body parameters carry a schema;
        Swagger 2 simple parameters carry the constraints themselves.
        """
        name = param.get('name', '')
        if 'content' in param and 'schema' not in param:
            raise UnsupportedError(f"Generating parameter {name} from content is not implemented")
        return self.generate(param.get('schema', param), prefix=f"{name}-")

    def generate(self, schema: Dict[str, Any], prefix: str = "") -> Any:
        """
        Generate one value for the schema.

        Args:
            schema: Schema node
            prefix: Prefix of strings generated without a declared pattern
        """
        if '$ref' in schema:
            if self.graph is None:
                raise InvalidError(f"Can't resolve {schema['$ref']} without schema definitions")
            _, schema = self.graph.resolve(schema)

        kind = schema_kind(schema)
        if kind in (SchemaKind.COMPOSITE, SchemaKind.OBJECT):
            raise UnsupportedError("Generating objects is not implemented")

        enum = schema.get('enum')
        if enum:
            return self.faker.random_element(enum)

        types = [t for t in sorted(schema_types(schema)) if t != 'null']
        if not types:
            raise InvalidError(f"Schema doesn't have a type: {schema}")

        schema_type = types[0]
        if schema_type == 'array':
            return self.generate_array(schema, prefix)
        if schema_type == 'boolean':
            return self.generate_bool()
        if schema_type == 'integer':
            return self.generate_int(schema)
        if schema_type == 'number':
            return self.generate_float(schema)
        if schema_type == 'string':
            return self.generate_string(schema, prefix)
        raise InvalidError(f"Unsupported schema type: {schema_type}")

    def generate_bool(self) -> bool:
        return self.faker.pybool()

    def generate_float(self, schema: Dict[str, Any]) -> float:
        """Uniform float in [min, max)."""
        minimum, maximum, exclusive_min, exclusive_max = numeric_bounds(schema)

        real_min = 0.0
        if minimum is not None:
            real_min = minimum + (EXCLUSIVE_EPSILON if exclusive_min else 0)
        real_max = 0.0
        if maximum is not None:
            real_max = maximum - (EXCLUSIVE_EPSILON if exclusive_max else 0)

        if real_min >= real_max:
            if minimum is None and maximum is None:
                real_min, real_max = -1.0, 1.0
            elif maximum is None:
                real_max = real_min + abs(real_min)
            elif minimum is None:
                real_min = real_max - abs(real_max)
            else:
                raise InvalidError(f"Specified min value {minimum} is bigger than max {maximum}")

        return self.random.random() * (real_max - real_min) + real_min

    def generate_int(self, schema: Dict[str, Any]) -> int:
        """
        Truncated float from the schema's range, bumped above the minimum.

        The result is capped at the largest integer the maximum allows.
        """
        minimum, maximum, exclusive_min, exclusive_max = numeric_bounds(schema)
        upper = None
        if maximum is not None:
            upper = math.ceil(maximum) - 1 if exclusive_max else math.floor(maximum)
            if minimum is not None:
                lower = math.floor(minimum) + 1 if exclusive_min else math.ceil(minimum)
                if lower > upper:
                    raise InvalidError(f"No integer between {minimum} and {maximum}")

        value = int(self.generate_float(schema))
        if minimum is not None and value <= int(minimum):
            value += 1
        if upper is not None and value > upper:
            value = upper
        return value

    def generate_string(self, schema: Dict[str, Any], prefix: str = "") -> str:
        """
        Generate a string.

        Dates are drawn from the last 30 days. Other strings match the
        declared pattern, or the prefix followed by a few digits.
        """
        string_format = schema.get('format', '')
        if string_format == 'date-time':
            moment = self.faker.date_time_between(start_date=DATE_RANGE, end_date='now', tzinfo=timezone.utc)
            return moment.isoformat(timespec='seconds')
        if string_format == 'date':
            return self.faker.date_between(start_date=DATE_RANGE, end_date='today').isoformat()

        pattern = schema.get('pattern')
        if not pattern:
            pattern = re.escape(prefix) + r"\d{1,%d}" % DEFAULT_DIGITS
        value = self._from_regex(pattern)

        if not string_format or string_format == 'password':
            return value
        if string_format == 'byte':
            return base64.b64encode(value.encode()).decode('ascii')
        if string_format == 'binary':
            return value.encode().hex()
        raise InvalidError(f"Invalid format string: {string_format}")

    def _from_regex(self, pattern: str) -> str:
        try:
            re.compile(pattern)
        except re.error as e:
            raise InvalidError(f"Invalid pattern {pattern}: {e}")
        try:
            return self.xeger.xeger(pattern)
        except KeyError as e:
            # Regex constructs rstr has no generator for
            raise UnsupportedError(f"Can't generate strings for pattern {pattern}: {e}")

    def generate_array(self, schema: Dict[str, Any], prefix: str = "") -> list:
        items = schema.get('items')
        if items is None:
            raise InvalidError("Array schema doesn't have items")

        min_items = max(schema.get('minItems') or 0, 0)
        max_items = schema.get('maxItems')
        max_items = min_items if max_items is None else max(max_items, 0)

        if min_items == max_items and min_items != 0:
            count = min_items
        elif max_items > min_items:
            count = self.random.randint(min_items, max_items)
        else:
            count = 1

        return [self.generate(items, f"{prefix}-") for _ in range(count)]
