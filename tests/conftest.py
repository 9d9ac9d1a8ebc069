"""Shared fixtures for the adapter tests."""

import copy
from typing import Any, Dict

import pytest

from openapi_adapter.config import Settings


PAYOUTS_SPEC: Dict[str, Any] = {
    "openapi": "3.0.0",
    "info": {"title": "Payouts API", "version": "2024-01-01"},
    "servers": [{"url": "https://api.example.com"}],
    "security": [{"ClientId": [], "ClientSecret": []}],
    "components": {
        "securitySchemes": {
            "ClientId": {"type": "apiKey", "in": "header", "name": "x-client-id"},
            "ClientSecret": {"type": "apiKey", "in": "header", "name": "x-client-secret"},
        },
        "schemas": {
            "Person": {
                "type": "object",
                "properties": {"age": {"type": "integer", "minimum": 0}},
                "required": ["age"],
            },
        },
        "parameters": {
            "UserId": {"name": "user_id", "in": "path", "required": True, "schema": {"type": "string"}},
        },
    },
    "paths": {
        "/users/{user_id}": {
            "parameters": [{"$ref": "#/components/parameters/UserId"}],
            "get": {
                "summary": "Get User",
                "description": "Fetch one user",
                "x-mcp": {"enabled": True},
                "parameters": [
                    {"name": "verbose", "in": "query", "schema": {"type": "boolean"}},
                    {"name": "x-request-id", "in": "header", "schema": {"type": "string"}},
                ],
            },
            "delete": {"summary": "Delete User"},
        },
        "/people": {
            "post": {
                "x-mcp": {
                    "enabled": True,
                    "config": {
                        "elicitation": {
                            "enabled": True,
                            "fields": {
                                "email": {
                                    "required": True,
                                    "message": "Which email should be notified?",
                                    "schema": {"type": "string", "minLength": 3},
                                    "mapping": {"target": "body.email"},
                                }
                            },
                        }
                    },
                },
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Person"}}},
                },
            },
            "trace": {"x-mcp": {"enabled": True}},
        },
        "/broken": {
            "get": {
                "x-mcp": {"enabled": True},
                "parameters": [{"$ref": "#/components/parameters/Missing"}],
            }
        },
    },
}


@pytest.fixture
def payouts_spec() -> Dict[str, Any]:
    return copy.deepcopy(PAYOUTS_SPEC)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openapi_dir="does-not-exist",
        integrations_path=None,
        environment="sandbox",
        elicitation_enabled=True,
    )
