"""Compilation of OpenAPI operations into callable endpoints."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .config import IntegrationEnvironment
from .models import CompiledEndpoint, ElicitationConfiguration, SecurityParameter
from .openapi import NormalizedOperation, is_enabled, iter_operations, normalize_operation
from .references import ReferenceResolver
from .schema import Validator, to_validator, to_validator_from_alternatives


logger = logging.getLogger(__name__)


def convert_str_to_title(value: str) -> str:
    """`get-user_byId` -> `Get User By Id`."""
    spaced = re.sub(r"[-_]", " ", value)
    words = [word for word in re.split(r"(?=[A-Z])|\s+", spaced) if word]
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def security_key(parameter: SecurityParameter) -> Optional[str]:
    """Composite key under which an integration stores a security credential."""
    if parameter.type == "apiKey":
        return f"{parameter.location}.{parameter.name}.API_KEY"
    if parameter.type == "http":
        return f"{parameter.location}.{parameter.name}.HTTP.{parameter.scheme}"
    return None


class EndpointCompiler:
    def __init__(
        self,
        environment: Optional[IntegrationEnvironment] = None,
        deployment: str = "sandbox",
    ) -> None:
        self.environment = environment or IntegrationEnvironment()
        self.deployment = deployment

    def compile(self, specification: Mapping[str, Any], integration_id: str) -> List[CompiledEndpoint]:
        resolver = ReferenceResolver(specification)
        endpoints: List[CompiledEndpoint] = []

        for path, method, raw_operation in iter_operations(specification):
            try:
                operation = resolver.resolve_all(raw_operation)
                if not is_enabled(operation):
                    continue
                normalized = normalize_operation(specification, resolver, path, method, operation)
                endpoints.append(self._compile_operation(integration_id, normalized))
            except Exception as exc:
                logger.error("Error processing endpoint %s %s: %s", method.upper(), path, exc)

        logger.info("Compiled %s endpoint(s) for %s", len(endpoints), integration_id)
        return endpoints

    def _compile_operation(self, integration_id: str, operation: NormalizedOperation) -> CompiledEndpoint:
        groups: Dict[str, Dict[str, Validator]] = {}
        for location, parameters in operation.parameters.items():
            groups[location] = {
                name: self._parameter_validator(parameter) for name, parameter in parameters.items()
            }

        for parameter in operation.security:
            if self._supplied_by_environment(parameter):
                continue
            groups.setdefault(parameter.location, {})[parameter.name] = Validator(str, required=True)

        body = to_validator(operation.body[0]) if operation.body else None

        base_url = self.environment.resolve_base_url(self.deployment) or operation.server_url or ""
        title = operation.title or f"{operation.method} {convert_str_to_title(operation.path)}"

        return CompiledEndpoint(
            integration_id=integration_id,
            url=f"{base_url}{operation.path}",
            path=operation.path,
            method=operation.method,
            title=title,
            description=operation.description,
            paths=groups.get("path", {}),
            queries=groups.get("query", {}),
            headers=groups.get("header", {}),
            cookies=groups.get("cookie", {}),
            body=body,
            security=operation.security,
            elicitation=self._elicitation(operation.extension),
            operation=operation.operation,
        )

    def _parameter_validator(self, parameter: Mapping[str, Any]) -> Validator:
        validator = to_validator_from_alternatives(parameter["schema"])
        if parameter.get("description"):
            validator.description = parameter["description"]
        return validator

    def _supplied_by_environment(self, parameter: SecurityParameter) -> bool:
        if self.environment.location(parameter.location).get(parameter.name):
            return True
        key = security_key(parameter)
        return bool(key and self.environment.secret(key))

    def _elicitation(self, extension: Mapping[str, Any]) -> Optional[ElicitationConfiguration]:
        config = (extension.get("config") or {}).get("elicitation")
        if not config:
            return None
        return ElicitationConfiguration.model_validate(config)
