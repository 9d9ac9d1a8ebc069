"""Core adapter service logic."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from .config import IntegrationEnvironment, Settings
from .elicitation import ElicitationEngine, ElicitFn
from .errors import ElicitationError
from .executors import RequestExecutor
from .logging import redact_payload
from .models import AdapterTool, ToolResult

logger = logging.getLogger(__name__)


class AdapterService:
    """Runs one tool call: elicitation first, then the HTTP request."""

    def __init__(
        self,
        settings: Settings,
        integrations: Dict[str, IntegrationEnvironment],
        executor: Optional[RequestExecutor] = None,
        elicitation: Optional[ElicitationEngine] = None,
    ) -> None:
        self.settings = settings
        self.integrations = integrations
        self.executor = executor or RequestExecutor(settings)
        self.elicitation = elicitation or ElicitationEngine(settings.elicitation_enabled)
        self.semaphore = asyncio.Semaphore(settings.adapter_max_concurrency)

    async def execute_tool(
        self,
        tool: AdapterTool,
        payload: Dict[str, Any],
        elicit: ElicitFn,
    ) -> ToolResult:
        async with self.semaphore:
            logger.info("Executing tool=%s payload=%s", tool.tool_name, redact_payload(payload))
            try:
                arguments = await self.elicitation.run(tool.endpoint, payload, elicit)
            except ElicitationError as exc:
                logger.warning("Elicitation failed for tool=%s: %s", tool.tool_name, exc)
                return ToolResult.error(str(exc))

            environment = self.integrations.get(tool.endpoint.integration_id) or IntegrationEnvironment()
            return await self.executor.execute(tool.endpoint, arguments, environment)
