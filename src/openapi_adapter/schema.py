"""Conversion of schema nodes into pydantic validators.

A schema node is the normalized form produced by `openapi.normalize_schema`:
a mapping with a `type` tag (`null`, `boolean`, `string`, `number`,
`integer`, `enum<string>`, `enum<number>`, `enum<integer>`, `array`,
`object`, `file`, `any`), a `required` flag and the constraints that apply to
that type. A list of nodes is a set of alternatives for the same slot.

Every converted node becomes a `Validator`: a type annotation (with
constraints attached through `Annotated` metadata) plus the required/default
information pydantic needs to build a field from it.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from functools import cached_property
from typing import Annotated, Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, AnyUrl, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, create_model
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from .errors import ConversionError


logger = logging.getLogger(__name__)

MODEL_CONFIG = ConfigDict(populate_by_name=True, protected_namespaces=())

_URL_ADAPTER = TypeAdapter(AnyUrl)
_RESERVED_NAMES = set(dir(BaseModel))


@dataclass(eq=False)
class Validator:
    annotation: Any
    required: bool = True
    default: Any = PydanticUndefined
    default_factory: Optional[Callable[[], Any]] = None
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not PydanticUndefined or self.default_factory is not None

    @property
    def type_hint(self) -> Any:
        if self.required or self.has_default:
            return self.annotation
        return Optional[self.annotation]

    def as_optional(self) -> "Validator":
        return replace(self, required=False)

    def as_required(self) -> "Validator":
        return replace(self, required=True)

    def field(self, alias: Optional[str] = None, description: Optional[str] = None) -> Tuple[Any, FieldInfo]:
        """Return a `(type, FieldInfo)` pair suitable for `create_model`."""
        description = description or self.description
        if self.default_factory is not None:
            info = Field(default_factory=self.default_factory, alias=alias, description=description)
        elif self.default is not PydanticUndefined:
            info = Field(self.default, alias=alias, description=description)
        elif self.required:
            info = Field(..., alias=alias, description=description)
        else:
            info = Field(None, alias=alias, description=description)
        return self.type_hint, info

    @cached_property
    def _model(self) -> type[BaseModel]:
        return create_model("Value", __config__=MODEL_CONFIG, value=self.field())

    def validate(self, *value: Any) -> Any:
        """Validate one value; call with no argument to validate absence."""
        data = {"value": value[0]} if value else {}
        return self._model.model_validate(data).value


def python_field_name(name: str, taken: set[str]) -> str:
    """Map an arbitrary property name onto a unique pydantic field name."""
    candidate = re.sub(r"\W", "_", name) or "field"
    if candidate[0].isdigit() or candidate.startswith("_"):
        candidate = f"f{candidate}"
    if candidate in _RESERVED_NAMES:
        candidate = f"{candidate}_"
    base, counter = candidate, 1
    while candidate in taken:
        candidate = f"{base}_{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


def build_model(name: str, validators: Mapping[str, Validator], **kwargs: Any) -> type[BaseModel]:
    """Create a pydantic model whose fields are aliased to the property names."""
    fields: Dict[str, Tuple[Any, FieldInfo]] = {}
    taken: set[str] = set()
    for key, validator in validators.items():
        fields[python_field_name(key, taken)] = validator.field(alias=key)
    return create_model(_model_name(name), __config__=kwargs.pop("__config__", MODEL_CONFIG), **kwargs, **fields)


def to_validator(node: Any) -> Validator:
    """Convert one schema node."""
    if isinstance(node, list):
        return to_validator_from_alternatives(node)
    if not isinstance(node, Mapping) or "type" not in node:
        return _any(node if isinstance(node, Mapping) else {})

    converter = _CONVERTERS.get(node["type"], _any)
    try:
        validator = converter(node)
    except ConversionError as exc:
        logger.debug("Falling back to an untyped validator for %s: %s", node.get("type"), exc)
        validator = _any(node)
    if isinstance(node.get("description"), str):
        validator.description = node["description"]
    return validator


def to_validator_from_alternatives(nodes: Sequence[Any]) -> Validator:
    """Convert a list of alternative schema nodes into a single validator."""
    if not nodes:
        return Validator(List[Any], required=True)
    validators = [to_validator(node) for node in nodes]
    if len(validators) == 1:
        return validators[0]
    return Validator(
        Union[tuple(v.annotation for v in validators)],  # type: ignore[misc]
        required=any(v.required for v in validators),
    )


def _required(node: Mapping[str, Any]) -> bool:
    return node.get("required") is True


def _simple(annotation: Any) -> Callable[[Mapping[str, Any]], Validator]:
    def convert(node: Mapping[str, Any]) -> Validator:
        return Validator(annotation, required=_required(node))

    return convert


def _any(node: Mapping[str, Any]) -> Validator:
    return Validator(Any, required=_required(node))


def _enum_key(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: str) -> Union[int, float]:
    number = float(value)
    return int(number) if number.is_integer() and "." not in value else number


def _literal(values: Sequence[Any]) -> Any:
    if not values:
        raise ConversionError("enum without values")
    return Literal[tuple(values)]  # type: ignore[misc]


def _string_enum(values: Sequence[Any]) -> Any:
    return _literal([str(value) for value in values])


def _numeric_enum(values: Sequence[Any]) -> Any:
    keys = list(dict.fromkeys(_enum_key(value) for value in values))
    return Annotated[_literal(keys), BeforeValidator(_enum_key), AfterValidator(_to_number)]


def _enum(numeric: bool) -> Callable[[Mapping[str, Any]], Validator]:
    def convert(node: Mapping[str, Any]) -> Validator:
        values = node.get("enum") or []
        annotation = _numeric_enum(values) if numeric else _string_enum(values)
        return Validator(annotation, required=_required(node))

    return convert


def _matches(pattern: str) -> Callable[[str], str]:
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ConversionError(f"invalid pattern {pattern!r}: {exc}") from exc

    def check(value: str) -> str:
        if not compiled.search(value):
            raise ValueError(f"String should match pattern '{pattern}'")
        return value

    return check


def _email(value: str) -> str:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"Invalid email: {exc}") from exc
    return value


def _url(value: str) -> str:
    _URL_ADAPTER.validate_python(value)
    return value


def _uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError as exc:
        raise ValueError("Invalid uuid") from exc
    return value


_FORMAT_CHECKS: Dict[str, Callable[[str], str]] = {
    "email": _email,
    "uri": _url,
    "url": _url,
    "uuid": _uuid,
}


def _string(node: Mapping[str, Any]) -> Validator:
    required = _required(node)
    if isinstance(node.get("enum"), list):
        return Validator(_string_enum(node["enum"]), required=required)

    fmt = node.get("format")
    if fmt == "binary":
        return Validator(bytes, required=required)
    if fmt == "date-time":
        return Validator(datetime, required=required)

    metadata: List[Any] = []
    schema_extra: Dict[str, Any] = {}
    length = {
        key: node[source]
        for key, source in (("min_length", "minLength"), ("max_length", "maxLength"))
        if isinstance(node.get(source), int)
    }
    if length:
        metadata.append(Field(**length))
    if isinstance(node.get("pattern"), str):
        metadata.append(AfterValidator(_matches(node["pattern"])))
        schema_extra["pattern"] = node["pattern"]
    if fmt in _FORMAT_CHECKS:
        metadata.append(AfterValidator(_FORMAT_CHECKS[fmt]))
        schema_extra["format"] = fmt
    if schema_extra:
        metadata.append(Field(json_schema_extra=schema_extra))

    annotation = Annotated[tuple([str, *metadata])] if metadata else str
    if "default" in node:
        return Validator(annotation, required=required, default=node["default"])
    return Validator(annotation, required=required)


def _bound(node: Mapping[str, Any], key: str) -> Optional[float]:
    value = node.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _number(node: Mapping[str, Any]) -> Validator:
    required = _required(node)
    if isinstance(node.get("enum"), list):
        return Validator(_numeric_enum(node["enum"]), required=required)

    base = int if node.get("type") == "integer" else float
    bounds = {
        key: _bound(node, source)
        for key, source in (
            ("ge", "minimum"),
            ("le", "maximum"),
            ("gt", "exclusiveMinimum"),
            ("lt", "exclusiveMaximum"),
        )
    }
    bounds = {key: value for key, value in bounds.items() if value is not None}
    annotation = Annotated[base, Field(**bounds)] if bounds else base
    return Validator(annotation, required=required)


def _array(node: Mapping[str, Any]) -> Validator:
    items = node.get("items")
    if isinstance(items, list):
        item_type = to_validator_from_alternatives(items).type_hint
    elif isinstance(items, Mapping):
        item_type = to_validator(items).type_hint
    else:
        item_type = Any

    sizes = {
        key: node[source]
        for key, source in (("min_length", "minItems"), ("max_length", "maxItems"))
        if isinstance(node.get(source), int)
    }
    annotation = Annotated[List[item_type], Field(**sizes)] if sizes else List[item_type]
    return Validator(annotation, required=_required(node))


def _object(node: Mapping[str, Any]) -> Validator:
    required = _required(node)
    properties = node.get("properties") or {}
    if not properties:
        if required:
            return Validator(Dict[str, Any], required=True)
        return Validator(Dict[str, Any], required=False, default_factory=dict)

    required_properties = set(node.get("requiredProperties") or [])
    shape: Dict[str, Validator] = {}
    for key, prop in properties.items():
        validator = to_validator(prop)
        if key in required_properties or _declares_required(prop):
            shape[key] = validator.as_required()
        else:
            shape[key] = validator.as_optional()

    model = build_model(node.get("title") or "Object", shape)
    return Validator(model, required=required)


def _declares_required(prop: Any) -> bool:
    if isinstance(prop, list):
        return any(_declares_required(alternative) for alternative in prop)
    return isinstance(prop, Mapping) and _required(prop)


def _model_name(name: str) -> str:
    words = re.split(r"[^0-9A-Za-z]+", name)
    joined = "".join(word[:1].upper() + word[1:] for word in words if word)
    if not joined or joined[0].isdigit():
        joined = f"Model{joined}"
    return joined


_CONVERTERS: Dict[str, Callable[[Mapping[str, Any]], Validator]] = {
    "null": _simple(None),
    "boolean": _simple(bool),
    "string": _string,
    "number": _number,
    "integer": _number,
    "enum<string>": _enum(numeric=False),
    "enum<number>": _enum(numeric=True),
    "enum<integer>": _enum(numeric=True),
    "array": _array,
    "object": _object,
    "file": _simple(bytes),
    "any": _any,
}
