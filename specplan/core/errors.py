"""
Error taxonomy shared by the schema engine, object store, generator and runner.
"""
import json
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error kinds."""
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"
    SCHEMA_MISMATCH = "schema_mismatch"
    TRANSPORT = "transport"


class SpecPlanError(Exception):
    """Base error. Every error carries a kind."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidError(SpecPlanError):
    """Malformed constraint, conflicting bounds, unsupported format."""
    kind = ErrorKind.INVALID


class UnsupportedError(InvalidError):
    """Functionality that is not implemented yet."""


class UnsupportedMethodError(InvalidError):
    """The test step declares an HTTP method the runner can't issue."""


class DuplicateCaseError(InvalidError):
    """A test case name is already taken in the plan."""


class NotFoundError(SpecPlanError):
    kind = ErrorKind.NOT_FOUND


class InternalError(SpecPlanError):
    kind = ErrorKind.INTERNAL


class TransportError(SpecPlanError):
    """The outbound HTTP call failed before a response was received."""
    kind = ErrorKind.TRANSPORT


def pretty(value: Any) -> str:
    """Pretty-print a decoded JSON value for diagnostics."""
    return json.dumps(value, indent=4, sort_keys=True, default=str)


class SchemaMismatchError(SpecPlanError):
    """
    Structural or constraint mismatch between a schema and an object.

    The message names both the schema and the object, pretty-printed.
    """
    kind = ErrorKind.SCHEMA_MISMATCH

    def __init__(self, reason: str, schema: Any, obj: Any):
        self.reason = reason
        self.schema = schema
        self.obj = obj
        super().__init__(
            f"schema and object don't match - {reason}\n"
            f"Schema:\n{pretty(schema)}\n"
            f"Object:\n{pretty(obj)}\n"
        )
