"""Elicitation of missing call arguments from the calling agent.

For endpoints whose `x-mcp.config.elicitation` block is enabled, every
configured field that has no value in the call arguments is requested from
the client in a single `elicitation/create` round trip. Accepted values are
validated against each field's primitive schema and written back into the
arguments at the field's dotted mapping target.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from .errors import ElicitationCancelled, ElicitationValidationFailed
from .models import CompiledEndpoint, ElicitationConfiguration, ElicitationField


logger = logging.getLogger(__name__)

ElicitFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]

_FALSE_STRINGS = {"", "false", "0", "no", "off"}


@dataclass(frozen=True)
class ElicitationRequest:
    message: str
    requested_schema: Dict[str, Any]

    def params(self) -> Dict[str, Any]:
        return {"message": self.message, "requestedSchema": self.requested_schema}


class ElicitationEngine:
    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    async def run(
        self,
        endpoint: CompiledEndpoint,
        arguments: Dict[str, Any],
        elicit: ElicitFn,
    ) -> Dict[str, Any]:
        """Return `arguments` completed with elicited values.

        Raises:
            ElicitationCancelled: the client declined, cancelled or sent no content.
            ElicitationValidationFailed: one or more returned values broke their schema.
        """
        config = self.config_for(endpoint)
        if config is None:
            return arguments

        missing = self.missing_fields(config, arguments)
        if not missing:
            return arguments

        request = self.build_request(endpoint.title or endpoint.path, missing, config)
        logger.info("Eliciting %s for tool=%s", missing, endpoint.title)
        result = await elicit(request.message, request.requested_schema)

        action = getattr(result, "action", None)
        content = getattr(result, "content", None)
        if action != "accept" or not content:
            logger.info("Elicitation not accepted for tool=%s (action=%s)", endpoint.title, action)
            raise ElicitationCancelled()

        errors = self.validate_response(config, content)
        if errors:
            raise ElicitationValidationFailed(errors)

        return self.apply_mappings(config, content, arguments)

    def config_for(self, endpoint: CompiledEndpoint) -> Optional[ElicitationConfiguration]:
        config = endpoint.elicitation
        if not self.enabled or config is None or not config.enabled or not config.fields:
            return None
        return config

    def missing_fields(self, config: ElicitationConfiguration, arguments: Mapping[str, Any]) -> List[str]:
        missing: List[str] = []
        for name, field in config.fields.items():
            target = field.mapping.target if field.mapping else name
            present = (
                has_value_at_path(arguments, target)
                or has_value_at_path(arguments, name)
                or arguments.get(name) not in (None, "")
            )
            if not present:
                missing.append(name)
        return missing

    def build_request(
        self,
        tool_name: str,
        missing: List[str],
        config: ElicitationConfiguration,
        message: Optional[str] = None,
    ) -> ElicitationRequest:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name in missing:
            field = config.fields.get(name)
            if field is None:
                continue
            schema = dict(field.schema_)
            if field.message and "description" not in schema:
                schema["description"] = field.message
            properties[name] = schema
            if field.required:
                required.append(name)

        requested_schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            requested_schema["required"] = required
        return ElicitationRequest(
            message=message or f"Please provide the required parameters for {tool_name}:",
            requested_schema=requested_schema,
        )

    def validate_response(self, config: ElicitationConfiguration, content: Mapping[str, Any]) -> List[str]:
        errors: List[str] = []
        for name, value in content.items():
            field = config.fields.get(name)
            if field is not None and field.schema_:
                errors.extend(_validate_value(name, field.schema_, value))
        return errors

    def apply_mappings(
        self,
        config: ElicitationConfiguration,
        content: Mapping[str, Any],
        arguments: Mapping[str, Any],
    ) -> Dict[str, Any]:
        mapped = copy.deepcopy(dict(arguments))
        for name, value in content.items():
            field = config.fields.get(name) or _match_by_last_segment(config, name)
            if field is not None and field.mapping is not None:
                set_value_at_path(mapped, field.mapping.target, value, field.mapping.transform)
            else:
                mapped[name] = value
        return mapped


def has_value_at_path(data: Any, path: str) -> bool:
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return False
        current = current[part]
    return current is not None and current != ""


def set_value_at_path(data: Dict[str, Any], path: str, value: Any, transform: Optional[str] = None) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = apply_transform(value, transform) if transform else value


def apply_transform(value: Any, transform: str) -> Any:
    if transform == "number":
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.warning("Cannot convert elicited value %r to a number", value)
            return value
        return int(number) if number.is_integer() else number
    if transform == "boolean":
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_STRINGS
        return bool(value)
    if transform == "string":
        return str(value)
    if transform == "array":
        return value if isinstance(value, list) else [value]
    return value


def _match_by_last_segment(config: ElicitationConfiguration, name: str) -> Optional[ElicitationField]:
    for configured, field in config.fields.items():
        if configured.split(".")[-1] == name:
            return field
    return None


def _validate_value(name: str, schema: Mapping[str, Any], value: Any) -> List[str]:
    errors: List[str] = []
    schema_type = schema.get("type")

    if schema_type == "string":
        pattern = schema.get("pattern")
        if isinstance(pattern, str) and isinstance(value, str) and not re.search(pattern, value):
            errors.append(f"Field {name} does not match required pattern")
        if isinstance(value, str):
            min_length, max_length = schema.get("minLength"), schema.get("maxLength")
            if min_length and len(value) < min_length:
                errors.append(f"Field {name} is too short (minimum {min_length} characters)")
            if max_length and len(value) > max_length:
                errors.append(f"Field {name} is too long (maximum {max_length} characters)")
        enum = schema.get("enum")
        if isinstance(enum, list) and value not in enum:
            errors.append(f"Field {name} must be one of: {', '.join(str(item) for item in enum)}")

    if schema_type in {"number", "integer"} and isinstance(value, (int, float)) and not isinstance(value, bool):
        minimum, maximum = schema.get("minimum"), schema.get("maximum")
        if minimum is not None and value < minimum:
            errors.append(f"Field {name} is too small (minimum {minimum})")
        if maximum is not None and value > maximum:
            errors.append(f"Field {name} is too large (maximum {maximum})")

    return errors
