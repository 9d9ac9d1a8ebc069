"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Mapping
from urllib.parse import quote, quote_plus


_SENSITIVE_KEYS = re.compile(
    r"(token|secret|api[_-]?key|password|authorization|client[_-]?id)", re.IGNORECASE
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # httpx logs full request URLs, query credentials included
    logging.getLogger("httpx").setLevel(logging.WARNING)


def redact_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if _SENSITIVE_KEYS.search(key):
            redacted[key] = "***REDACTED***"
        elif isinstance(value, Mapping):
            redacted[key] = redact_payload(value)
        else:
            redacted[key] = value
    return redacted


def redact_fields(data: Any, patterns: Iterable[str], marker: str) -> Any:
    """Replace the value of every object key matching one of `patterns`."""
    compiled = [re.compile(pattern) for pattern in patterns]
    if not compiled:
        return data
    return _redact(data, compiled, marker)


def _redact(data: Any, patterns: list[re.Pattern[str]], marker: str) -> Any:
    if isinstance(data, Mapping):
        return {
            key: marker
            if any(pattern.fullmatch(str(key)) for pattern in patterns)
            else _redact(value, patterns, marker)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [_redact(item, patterns, marker) for item in data]
    return data


def mask_keys(data: Mapping[str, Any], names: Iterable[str], marker: str) -> Dict[str, Any]:
    """Case-insensitive masking of header, query or cookie values by name."""
    lowered = {name.lower() for name in names}
    return {
        key: marker if key.lower() in lowered and value else value
        for key, value in data.items()
    }


def scrub_values(text: str, values: Iterable[str], marker: str) -> str:
    """Replace every occurrence of a secret value, raw or percent-encoded."""
    for value in sorted({value for value in values if value}, key=len, reverse=True):
        for form in {value, quote(value, safe=""), quote_plus(value)}:
            text = text.replace(form, marker)
    return text
