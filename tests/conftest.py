"""Shared fixtures: a small users API document and a recording upstream."""

from __future__ import annotations

import copy
import json
from typing import Any, Callable

import httpx
import pytest

from apimcp.config import OpenAPIParams
from apimcp.loader import load_spec_from_dict
from apimcp.openapi_source import OpenAPISource

BASE_URL = "https://api.ex.com"

USERS_SPEC: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Users API", "version": "2.1.0"},
    "paths": {
        "/users": {
            "get": {
                "operationId": "listUsers",
                "summary": "List users",
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer"},
                     "description": "Maximum number of users"},
                ],
            },
            "post": {
                "operationId": "createUser",
                "summary": "Create a user",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/NewUser"}},
                    },
                },
            },
        },
        "/users/{userId}": {
            "parameters": [
                {"name": "userId", "in": "path", "required": True, "schema": {"type": "string"},
                 "description": "User identifier"},
            ],
            "get": {
                "operationId": "getUser",
                "description": "Fetch one user.\nIncludes profile data.",
                "parameters": [
                    {"name": "X-Request-Id", "in": "header", "schema": {"type": "string"}},
                    {"name": "session", "in": "cookie", "schema": {"type": "string"}},
                ],
            },
            "post": {
                "operationId": "updateUser",
                "summary": "Update a user",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "required": ["name", "email"],
                                "properties": {
                                    "name": {"type": "string"},
                                    "email": {"type": "string", "description": "Contact address"},
                                },
                            },
                        },
                    },
                },
            },
            "delete": {
                "summary": "Delete a user",
            },
        },
        "/users/{userId}/avatar": {
            "put": {
                "operationId": "uploadAvatar",
                "parameters": [
                    {"name": "userId", "in": "path", "required": True, "schema": {"type": "string"}},
                ],
                "requestBody": {
                    "content": {"text/plain": {"schema": {"type": "string"}}},
                },
            },
        },
    },
    "components": {
        "schemas": {
            "NewUser": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "age": {"type": "integer"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "manager": {"$ref": "#/components/schemas/NewUser"},
                },
            },
        },
    },
}


@pytest.fixture
def users_spec() -> dict[str, Any]:
    return copy.deepcopy(USERS_SPEC)


@pytest.fixture
def users_doc(users_spec):
    return load_spec_from_dict(users_spec, location="users.json")


@pytest.fixture
def openapi_params() -> OpenAPIParams:
    return OpenAPIParams(spec_location="users.json", base_url=BASE_URL)


@pytest.fixture
def users_app(users_doc, openapi_params):
    return OpenAPISource().build_from_document(users_doc, openapi_params)


class Recorder:
    """Collects requests seen by an httpx.MockTransport."""

    def __init__(self, status_code: int = 200, body: bytes = b'{"ok":true}'):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def mock_transport(recorder) -> httpx.MockTransport:
    return httpx.MockTransport(recorder)


@pytest.fixture
async def attached_app(users_app, mock_transport):
    OpenAPISource().attach_handlers(users_app, transport=mock_transport)
    yield users_app
    await users_app.aclose()


@pytest.fixture
def write_spec(tmp_path) -> Callable[[Any, str], str]:
    def _write(spec: Any, name: str = "spec.json") -> str:
        path = tmp_path / name
        if isinstance(spec, str):
            path.write_text(spec, encoding="utf-8")
        else:
            path.write_text(json.dumps(spec), encoding="utf-8")
        return str(path)

    return _write
