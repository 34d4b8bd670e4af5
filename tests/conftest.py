"""
Shared fixtures: a small pet store document and a stub HTTP session.
"""
import copy

import pytest
import requests

from specplan.services.object_store import ObjectStore
from specplan.services.openapi_parser import OpenAPIParser
from specplan.services.schema_graph import SchemaGraph
from specplan.services.value_generator import ValueGenerator

BASE_URL = "http://petstore.test/v2"

PET_STATUSES = ["available", "pending", "sold"]

PETSTORE_SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Pet Store", "version": "1.0.0"},
    "servers": [{"url": BASE_URL}],
    "paths": {
        "/pet/findByStatus": {
            "get": {
                "operationId": "findPetsByStatus",
                "parameters": [
                    {
                        "name": "status",
                        "in": "query",
                        "required": True,
                        "schema": {"type": "string", "enum": PET_STATUSES},
                    }
                ],
                "responses": {"200": {"description": "Pets with the status"}},
            }
        },
        "/pet/{petId}": {
            "parameters": [
                {
                    "name": "petId",
                    "in": "path",
                    "required": True,
                    "schema": {"type": "integer", "minimum": 1, "maximum": 1000},
                }
            ],
            "get": {
                "operationId": "getPetById",
                "responses": {"200": {"description": "A pet"}},
            },
            "delete": {
                "operationId": "deletePet",
                "responses": {"200": {"description": "Deleted"}},
            },
        },
        "/pet": {
            "post": {
                "operationId": "addPet",
                "parameters": [
                    {
                        "name": "dryRun",
                        "in": "query",
                        "schema": {"type": "boolean"},
                    }
                ],
                "responses": {"200": {"description": "Created"}},
            }
        },
        "/user/login": {
            "get": {
                "operationId": "loginUser",
                "parameters": [
                    {"name": "username", "in": "query", "schema": {"type": "string"}},
                    {"name": "password", "in": "query", "schema": {"type": "string", "format": "password"}},
                ],
                "responses": {"200": {"description": "Logged in"}},
            }
        },
        "/pet/findByTags": {
            "get": {
                "operationId": "findPetsByTags",
                "parameters": [
                    {
                        "name": "includeSold",
                        "in": "query",
                        "required": True,
                        "schema": {"type": "boolean"},
                    }
                ],
                "responses": {"200": {"description": "Pets with the tags"}},
            }
        },
        "/pet/search": {
            "get": {
                "operationId": "searchPets",
                "parameters": [
                    {
                        "name": "filter",
                        "in": "query",
                        "schema": {"$ref": "#/components/schemas/Pet"},
                    }
                ],
                "responses": {"200": {"description": "Matching pets"}},
            }
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "pattern": "^[a-z]+$"},
                    "status": {"type": "string", "enum": PET_STATUSES},
                },
            },
            "Category": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer", "x-specplan": "Category.id"},
                    "name": {"type": "string"},
                },
            },
            "Tag": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "label": {"type": "string"},
                },
            },
        }
    },
}


class StubResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code


class StubSession:
    """Records GET calls instead of sending them."""

    def __init__(self, status_code: int = 200, error: Exception = None):
        self.status_code = status_code
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if self.error is not None:
            raise self.error
        return StubResponse(self.status_code)


@pytest.fixture
def petstore_spec():
    return copy.deepcopy(PETSTORE_SPEC)


@pytest.fixture
def parser(petstore_spec):
    parser = OpenAPIParser(spec_dict=petstore_spec)
    parser.parse()
    return parser


@pytest.fixture
def graph(parser):
    return SchemaGraph.from_parser(parser)


@pytest.fixture
def store(graph):
    return ObjectStore(graph)


@pytest.fixture
def generator(graph):
    return ValueGenerator(graph, seed=1234)


@pytest.fixture
def session():
    return StubSession()


@pytest.fixture
def failing_session():
    return StubSession(error=requests.ConnectionError("connection refused"))
