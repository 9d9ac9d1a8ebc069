"""OpenAPI document loader and operation normalizer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .config import Settings
from .models import PARAMETER_LOCATIONS, SecurityParameter
from .references import ReferenceResolver


logger = logging.getLogger(__name__)

RESERVED_METHODS = {"parameters", "trace"}
EXTENSION_KEY = "x-mcp"

_DOCUMENT_PATTERNS = ("openapi-*.json", "openapi-*.yaml", "openapi-*.yml")
_COPIED_KEYS = (
    "title",
    "description",
    "format",
    "pattern",
    "minLength",
    "maxLength",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "minItems",
    "maxItems",
    "enum",
    "default",
)
_ENUM_TYPES = {"string", "number", "integer"}


@dataclass(frozen=True)
class DocumentValidation:
    valid: bool
    errors: List[str]
    specification: Optional[Dict[str, Any]]


@dataclass
class NormalizedOperation:
    path: str
    method: str
    title: Optional[str]
    description: str
    server_url: Optional[str]
    parameters: Dict[str, Dict[str, Dict[str, Any]]]
    security: List[SecurityParameter] = field(default_factory=list)
    body: Optional[List[Dict[str, Any]]] = None
    extension: Dict[str, Any] = field(default_factory=dict)
    operation: Dict[str, Any] = field(default_factory=dict)


class OpenAPILoader:
    def discover(self, settings: Settings) -> List[Path]:
        explicit = settings.document_paths()
        if explicit:
            return [Path(item) for item in explicit]

        directory = Path(settings.openapi_dir)
        if not directory.is_dir():
            logger.warning("OpenAPI directory not found: %s", directory)
            return []
        found = {path for pattern in _DOCUMENT_PATTERNS for path in directory.glob(pattern)}
        return sorted(found)

    def load(self, path: Union[str, Path]) -> DocumentValidation:
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                if path.suffix in {".yaml", ".yml"}:
                    document = yaml.safe_load(handle)
                else:
                    document = json.load(handle)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            return DocumentValidation(valid=False, errors=[f"{path}: {exc}"], specification=None)
        return self.validate(document)

    def validate(self, document: Any) -> DocumentValidation:
        """Structural check of a parsed document; not a full OpenAPI validation."""
        if not isinstance(document, dict):
            return DocumentValidation(False, ["Document is not an object"], None)

        errors: List[str] = []
        if not isinstance(document.get("openapi") or document.get("swagger"), str):
            errors.append("Missing 'openapi' version string")
        if not isinstance(document.get("info"), dict):
            errors.append("Missing 'info' object")
        paths = document.get("paths")
        if not isinstance(paths, dict) or not paths:
            errors.append("Missing or empty 'paths' object")

        return DocumentValidation(valid=not errors, errors=errors, specification=document)


def integration_id(specification: Mapping[str, Any], index: int) -> str:
    info = specification.get("info") or {}
    title, version = info.get("title"), info.get("version")
    if title and version:
        return f"{title} - {version}"
    return str(index)


def iter_operations(specification: Mapping[str, Any]):
    """Yield `(path, method, operation)` for every candidate operation."""
    for path, path_item in (specification.get("paths") or {}).items():
        if not isinstance(path_item, Mapping):
            continue
        for method, operation in path_item.items():
            if method in RESERVED_METHODS or not isinstance(operation, Mapping):
                continue
            yield path, method, operation


def is_enabled(operation: Mapping[str, Any]) -> bool:
    extension = operation.get(EXTENSION_KEY)
    return isinstance(extension, Mapping) and extension.get("enabled") is True


def normalize_operation(
    specification: Mapping[str, Any],
    resolver: ReferenceResolver,
    path: str,
    method: str,
    operation: Mapping[str, Any],
) -> NormalizedOperation:
    """Turn a resolved operation into schema nodes grouped by parameter location."""
    path_item = specification["paths"][path]
    shared = resolver.resolve_all(path_item.get("parameters") or [])
    parameters = _merge_parameters(shared, operation.get("parameters") or [])

    return NormalizedOperation(
        path=path,
        method=method.upper(),
        title=operation.get("summary"),
        description=operation.get("description") or "",
        server_url=_server_url(operation, path_item, specification),
        parameters=parameters,
        security=_security_parameters(specification, resolver, operation),
        body=_body_schema(operation.get("requestBody")),
        extension=dict(operation.get(EXTENSION_KEY) or {}),
        operation=dict(operation),
    )


def schema_alternatives(schema: Any, required: bool = False) -> List[Dict[str, Any]]:
    """Expand one JSON schema into the list of alternative schema nodes it allows."""
    if not isinstance(schema, Mapping):
        return [{"required": required}]

    for keyword in ("oneOf", "anyOf"):
        if isinstance(schema.get(keyword), list) and schema[keyword]:
            base = {key: value for key, value in schema.items() if key not in {"oneOf", "anyOf"}}
            alternatives: List[Dict[str, Any]] = []
            for option in schema[keyword]:
                merged = {**base, **option} if isinstance(option, Mapping) else option
                alternatives.extend(schema_alternatives(merged, required))
            return alternatives

    if isinstance(schema.get("allOf"), list):
        return schema_alternatives(_merge_all_of(schema), required)

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        alternatives = []
        for item in schema_type:
            alternatives.extend(schema_alternatives({**schema, "type": item}, required))
        return alternatives

    alternatives = [normalize_schema(schema, required)]
    if schema.get("nullable") is True and schema_type != "null":
        alternatives.append({"type": "null", "required": required})
    return alternatives


def normalize_schema(schema: Mapping[str, Any], required: bool = False) -> Dict[str, Any]:
    node: Dict[str, Any] = {key: schema[key] for key in _COPIED_KEYS if key in schema}
    node["required"] = required

    schema_type = schema.get("type")
    if schema_type is None:
        if "properties" in schema:
            schema_type = "object"
        elif "items" in schema:
            schema_type = "array"

    if schema_type is not None:
        node["type"] = schema_type
    if schema_type in _ENUM_TYPES and isinstance(schema.get("enum"), list):
        node["type"] = f"enum<{schema_type}>"

    # OpenAPI 3.0 expresses exclusive bounds as booleans next to minimum/maximum
    for bound, exclusive in (("minimum", "exclusiveMinimum"), ("maximum", "exclusiveMaximum")):
        if schema.get(exclusive) is True and bound in schema:
            node[exclusive] = node.pop(bound)
        elif isinstance(schema.get(exclusive), bool):
            node.pop(exclusive, None)

    if schema_type == "object":
        properties = schema.get("properties") or {}
        node["properties"] = {name: schema_alternatives(prop) for name, prop in properties.items()}
        if isinstance(schema.get("required"), list):
            node["requiredProperties"] = list(schema["required"])
    elif schema_type == "array" and "items" in schema:
        node["items"] = schema_alternatives(schema["items"])

    return node


def _merge_all_of(schema: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {key: value for key, value in schema.items() if key != "allOf"}
    properties: Dict[str, Any] = dict(merged.get("properties") or {})
    required: List[str] = list(merged.get("required") or [])

    for part in schema["allOf"]:
        if not isinstance(part, Mapping):
            continue
        if isinstance(part.get("allOf"), list):
            part = _merge_all_of(part)
        properties.update(part.get("properties") or {})
        required.extend(name for name in part.get("required") or [] if name not in required)
        merged.update({key: value for key, value in part.items() if key not in {"properties", "required"}})

    if properties:
        merged["properties"] = properties
        merged.setdefault("type", "object")
    if required:
        merged["required"] = required
    return merged


def _merge_parameters(
    shared: List[Mapping[str, Any]], own: List[Mapping[str, Any]]
) -> Dict[str, Dict[str, Dict[str, Any]]]:
    by_key: Dict[tuple, Mapping[str, Any]] = {}
    for parameter in [*shared, *own]:
        if isinstance(parameter, Mapping) and parameter.get("name") and parameter.get("in"):
            by_key[(parameter["name"], parameter["in"])] = parameter

    grouped: Dict[str, Dict[str, Dict[str, Any]]] = {location: {} for location in PARAMETER_LOCATIONS}
    for (name, location), parameter in by_key.items():
        if location not in grouped:
            continue
        required = location == "path" or parameter.get("required") is True
        grouped[location][name] = {
            "schema": schema_alternatives(_parameter_schema(parameter), required),
            "required": required,
            "description": parameter.get("description"),
        }
    return grouped


def _parameter_schema(parameter: Mapping[str, Any]) -> Any:
    if "schema" in parameter:
        return parameter["schema"]
    for media in (parameter.get("content") or {}).values():
        if isinstance(media, Mapping) and "schema" in media:
            return media["schema"]
    return None


def _security_parameters(
    specification: Mapping[str, Any],
    resolver: ReferenceResolver,
    operation: Mapping[str, Any],
) -> List[SecurityParameter]:
    requirements = operation.get("security")
    if requirements is None:
        requirements = specification.get("security") or []
    if not requirements or not isinstance(requirements[0], Mapping):
        return []

    schemes = (specification.get("components") or {}).get("securitySchemes") or {}
    parameters: List[SecurityParameter] = []
    for scheme_name in requirements[0]:
        scheme = resolver.resolve_all(schemes.get(scheme_name) or {})
        scheme_type = scheme.get("type")
        if scheme_type == "apiKey" and scheme.get("in") in {"query", "header", "cookie"} and scheme.get("name"):
            parameters.append(SecurityParameter(name=scheme["name"], location=scheme["in"], type="apiKey"))
        elif scheme_type == "http":
            parameters.append(
                SecurityParameter(
                    name="Authorization",
                    location="header",
                    type="http",
                    scheme=str(scheme.get("scheme") or "").lower() or None,
                )
            )
        else:
            logger.debug("Ignoring unsupported security scheme %s (%s)", scheme_name, scheme_type)
    return parameters


def _body_schema(request_body: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(request_body, Mapping):
        return None
    media = (request_body.get("content") or {}).get("application/json") or {}
    if "schema" not in media:
        return None
    return schema_alternatives(media["schema"], request_body.get("required") is True)


def _server_url(
    operation: Mapping[str, Any], path_item: Mapping[str, Any], specification: Mapping[str, Any]
) -> Optional[str]:
    for source in (operation, path_item, specification):
        servers = source.get("servers") or []
        if servers and isinstance(servers[0], Mapping) and servers[0].get("url"):
            return servers[0]["url"]
    return None
