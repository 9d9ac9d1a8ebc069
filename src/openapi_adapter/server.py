"""MCP server setup for the OpenAPI adapter."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import Settings, load_integrations
from .models import AdapterTool
from .service import AdapterService
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

# accepted ADAPTER_TRANSPORT spellings -> fastmcp transport name
HTTP_TRANSPORTS = {
    "http": "http",
    "streamable-http": "streamable-http",
    "streamablehttp": "streamable-http",
    "sse": "sse",
}

INSTRUCTIONS = (
    "OpenAPI tool adapter. "
    "Each tool calls one enabled operation of the configured OpenAPI documents; "
    "missing inputs may be requested through elicitation."
)


async def build_server(settings: Settings) -> tuple[FastMCP, Optional[Starlette]]:
    integrations = load_integrations(settings.integrations_path)
    registry = ToolRegistry(settings, integrations)
    service = AdapterService(settings, integrations)

    mcp = FastMCP(settings.service_name, instructions=INSTRUCTIONS)
    for tool in await registry.load_tools():
        mcp.tool(name=tool.tool_name, description=tool.description)(_tool_handler(service, tool))
    logger.info("Registered %s tool(s) for %s integration(s)", len(registry.names), len(integrations))

    app = _http_app(mcp, settings)
    if app is not None:
        _attach_auth(app, settings)
        app.add_route("/health", _healthcheck, methods=["GET"])
    return mcp, app


def _tool_handler(service: AdapterService, tool: AdapterTool) -> Callable[..., Awaitable[str]]:
    async def handler(payload: tool.input_model, ctx: Context) -> str:
        async def elicit(message: str, requested_schema: Dict[str, Any]) -> Any:
            return await ctx.session.elicit(
                message=message,
                requestedSchema=requested_schema,
                related_request_id=ctx.request_id,
            )

        arguments = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        result = await service.execute_tool(tool, arguments, elicit)
        if result.is_error:
            raise ToolError(result.joined_text)
        return result.joined_text

    handler.__name__ = tool.tool_name.replace("-", "_")
    return handler


def _http_app(mcp: FastMCP, settings: Settings) -> Optional[Starlette]:
    transport = HTTP_TRANSPORTS.get(settings.adapter_transport.lower())
    if transport is None:
        return None
    # sessions stay on: elicitation needs a server-to-client request channel
    app = mcp.http_app(transport=transport)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


def _attach_auth(app: Starlette, settings: Settings) -> None:
    if not settings.adapter_auth_token:
        logger.warning("ADAPTER_AUTH_TOKEN not set; HTTP transport is unauthenticated")
        return

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS" or request.url.path.endswith("/health"):
            return await call_next(request)

        token = request.headers.get("authorization", "").replace("Bearer", "").strip()
        if token == settings.adapter_auth_token:
            return await call_next(request)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)


async def _healthcheck(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})
