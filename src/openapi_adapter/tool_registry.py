"""Tool registry for the OpenAPI adapter."""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ConfigDict

from .compiler import EndpointCompiler
from .config import IntegrationEnvironment, Settings
from .models import AdapterTool, CompiledEndpoint
from .openapi import OpenAPILoader, integration_id
from .schema import MODEL_CONFIG, build_model


logger = logging.getLogger(__name__)

SUFFIX_SEPARATOR = "---"
INPUT_MODEL_CONFIG = ConfigDict(**MODEL_CONFIG, extra="allow")


def dashify(title: str) -> str:
    """`GET /users/{id}` -> `get--users--id`; runs of dashes are kept."""
    value = re.sub(r"([a-z])([A-Z])", r"\1-\2", title.strip())
    value = re.sub(r"[^A-Za-z0-9_]", "-", value)
    return value.strip("-").lower()


def find_next_iteration(names: Iterable[str], title: str) -> int:
    prefix = f"{title}{SUFFIX_SEPARATOR}"
    highest = 0
    for name in names:
        if name.startswith(prefix) and name[len(prefix):].isdigit():
            highest = max(highest, int(name[len(prefix):]))
    return highest + 1


class ToolNameRegistry:
    """Process-wide set of claimed tool titles.

    Grows for the life of the process; claims are serialized so concurrent
    compilation passes never hand out the same suffix twice.
    """

    def __init__(self, max_length: int = 64) -> None:
        self.max_length = max_length
        self._names: set[str] = set()
        self._lock = threading.Lock()

    def claim(self, title: str) -> str:
        with self._lock:
            if title in self._names:
                title = f"{title}{SUFFIX_SEPARATOR}{find_next_iteration(self._names, title)}"
            name = title[-self.max_length:]
            # distinct titles can share a tail once truncated
            base, iteration = name, find_next_iteration(self._names, name)
            while name in self._names:
                name = f"{base}{SUFFIX_SEPARATOR}{iteration}"[-self.max_length:]
                iteration += 1
            self._names.add(name)
            return name

    def __contains__(self, title: object) -> bool:
        return title in self._names

    def __len__(self) -> int:
        return len(self._names)


class ToolRegistry:
    def __init__(
        self,
        settings: Settings,
        integrations: Dict[str, IntegrationEnvironment],
        openapi_loader: Optional[OpenAPILoader] = None,
        names: Optional[ToolNameRegistry] = None,
    ) -> None:
        self.settings = settings
        self.integrations = integrations
        self.openapi_loader = openapi_loader or OpenAPILoader()
        self.names = names or ToolNameRegistry(settings.tool_name_max_length)
        self._tools: List[AdapterTool] = []

    async def load_tools(self) -> List[AdapterTool]:
        if self._tools:
            return self._tools

        paths = self.openapi_loader.discover(self.settings)
        compiled = await asyncio.gather(
            *(asyncio.to_thread(self._compile_document, path, index) for index, path in enumerate(paths))
        )

        tools: List[AdapterTool] = []
        for endpoints in compiled:
            tools.extend(self.register(endpoint) for endpoint in endpoints)

        self._tools = tools
        return tools

    def register(self, endpoint: CompiledEndpoint) -> AdapterTool:
        endpoint.title = self.names.claim(endpoint.title)
        tool_name = dashify(endpoint.title)
        input_model = build_model(
            f"{tool_name}Input",
            endpoint.argument_validators(),
            __config__=INPUT_MODEL_CONFIG,
        )
        logger.info("Registered tool: %s (%s %s)", tool_name, endpoint.method, endpoint.url)
        return AdapterTool(
            tool_name=tool_name,
            description=endpoint.description or endpoint.title,
            endpoint=endpoint,
            input_model=input_model,
        )

    def _compile_document(self, path: Path, index: int) -> List[CompiledEndpoint]:
        validation = self.openapi_loader.load(path)
        if not validation.valid or validation.specification is None:
            logger.warning("Invalid OpenAPI file or missing paths: %s %s", path, validation.errors)
            return []

        key = integration_id(validation.specification, index)
        compiler = EndpointCompiler(self.integrations.get(key), self.settings.environment)
        return compiler.compile(validation.specification, key)
