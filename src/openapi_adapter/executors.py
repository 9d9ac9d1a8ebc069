"""Execution layer for compiled endpoint calls."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
from urllib.parse import quote

import httpx

from .auth import CredentialInjector, signature_headers
from .config import IntegrationEnvironment, Settings
from .errors import ExecutionError
from .logging import mask_keys, redact_fields, scrub_values
from .models import CompiledEndpoint, ToolResult

logger = logging.getLogger(__name__)


@dataclass
class PreparedRequest:
    method: str
    url: str
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    # location -> names of credential-bearing inputs
    credentials: Dict[str, Set[str]] = field(default_factory=dict)

    def secret_values(self) -> List[str]:
        sources = {"header": self.headers, "query": self.params, "cookie": self.cookies}
        return [
            str(sources[location][name])
            for location, names in self.credentials.items()
            for name in names
            if location in sources and sources[location].get(name) not in (None, "")
        ]

    def echo(self, masked: Iterable[str], marker: str) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "params": mask_keys(self.params, self.credentials.get("query", set()), marker),
            "headers": mask_keys(self.headers, {*masked, *self.credentials.get("header", set())}, marker),
            "cookies": mask_keys(self.cookies, self.credentials.get("cookie", set()), marker),
            "data": self.body,
        }


class RequestExecutor:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.clock = clock

    async def execute(
        self,
        endpoint: CompiledEndpoint,
        arguments: Dict[str, Any],
        environment: IntegrationEnvironment,
    ) -> ToolResult:
        request = self.build_request(endpoint, arguments, environment)
        try:
            response = await self._dispatch(request)
        except ExecutionError as exc:
            logger.warning("Request failed for %s %s: %s", request.method, endpoint.path, exc)
            return ToolResult.error(self._format_error(exc))
        return ToolResult.text(self._format_success(response))

    def build_request(
        self,
        endpoint: CompiledEndpoint,
        arguments: Dict[str, Any],
        environment: IntegrationEnvironment,
    ) -> PreparedRequest:
        arguments = dict(arguments)
        request = PreparedRequest(method=endpoint.method, url=endpoint.url)
        if "body" in arguments:
            request.body = arguments.pop("body")

        for key, value in arguments.items():
            if value is None:
                continue
            if key in endpoint.paths:
                request.url = request.url.replace(f"{{{key}}}", quote(_to_text(value), safe=""))
            elif key in endpoint.queries:
                request.params[key] = value
            elif key in endpoint.headers:
                request.headers[key] = _to_text(value)
            elif key in endpoint.cookies:
                request.cookies[key] = _to_text(value)

        for parameter in endpoint.security:
            name = "Authorization" if parameter.type == "http" and parameter.scheme == "bearer" else parameter.name
            request.credentials.setdefault(parameter.location, set()).add(name)

        auth_headers, auth_query, auth_cookies = CredentialInjector(environment).build_auth(endpoint.security)
        request.headers.update(auth_headers)
        request.params.update(auth_query)
        request.cookies.update(auth_cookies)
        request.headers.update(signature_headers(environment, self.clock))

        echo = request.echo(self.settings.masked_header_names(), self.settings.redaction_marker)
        logger.debug(
            "Prepared %s %s params=%s headers=%s", request.method, request.url, echo["params"], echo["headers"]
        )
        return request

    async def _dispatch(self, request: PreparedRequest) -> httpx.Response:
        marker = self.settings.redaction_marker
        echo = request.echo(self.settings.masked_header_names(), marker)
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                transport=self.transport,
                cookies=request.cookies or None,
            ) as client:
                response = await client.request(
                    request.method,
                    request.url,
                    params=request.params or None,
                    headers=request.headers,
                    json=request.body,
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            url = exc.request.url
            for name in request.credentials.get("query", set()):
                url = url.copy_remove_param(name)
            raise ExecutionError(_status_message(exc.response, url), echo, _decode(exc.response)) from exc
        except httpx.HTTPError as exc:
            message = scrub_values(str(exc), request.secret_values(), marker)
            raise ExecutionError(message or type(exc).__name__, echo) from exc
        return response

    def _format_success(self, response: httpx.Response) -> str:
        data = _decode(response)
        if isinstance(data, str):
            return data
        data = redact_fields(data, self.settings.sensitive_field_patterns(), self.settings.redaction_marker)
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _format_error(self, exc: ExecutionError) -> str:
        payload = exc.response_payload if exc.response_payload is not None else {}
        if not isinstance(payload, str):
            payload = redact_fields(payload, self.settings.sensitive_field_patterns(), self.settings.redaction_marker)
        received = payload if isinstance(payload, str) else json.dumps(payload, indent=2, ensure_ascii=False)
        details = json.dumps({"message": str(exc), "config": exc.request}, indent=2, default=str)
        return f"receivedPayload: {received}\n\n errorMessage: {exc}\n\n{details}"


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _status_message(response: httpx.Response, url: httpx.URL) -> str:
    kind = {4: "Client error", 5: "Server error"}.get(response.status_code // 100, "Unexpected status")
    return f"{kind} '{response.status_code} {response.reason_phrase}' for url '{url}'"


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text
