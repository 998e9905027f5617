"""
README service for NuGet packages.

Exposes the package tools over HTTP:

- GET  /tools        tool definitions with JSON input schemas
- POST /tools/call   run a tool, body ``{"name": ..., "arguments": {...}}``

plus the shared /health and /metrics endpoints.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.error_classifier import classify_exception
from shared.errors import PackageReadmeError, ValidationError
from shared.logging import set_tool_context
from shared.retry import Sleep

from .adapters.github_client import GitHubClient
from .adapters.nuget_client import NuGetClient
from .caching.memory_cache import MemoryCache
from .domain.package_service import PackageQueryService
from .tools.definitions import (
    GET_INFO_TOOL,
    GET_README_TOOL,
    SEARCH_TOOL,
    TOOL_DEFINITIONS,
    ToolCallRequest,
)


ToolHandler = Callable[[Dict[str, Any]], Awaitable[BaseModel]]


class ReadmeService(BaseService):
    """README service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        nuget: Optional[NuGetClient] = None,
        github: Optional[GitHubClient] = None,
        cache: Optional[MemoryCache] = None,
        sleep: Optional[Sleep] = None,
    ):
        super().__init__("readme", 8000, config)

        self.cache = cache or MemoryCache(
            default_ttl_ms=self.config.cache_ttl_ms,
            max_bytes=self.config.cache_max_size_bytes,
            sweep_interval_ms=self.config.cache_sweep_interval_ms,
            metrics=self.metrics,
        )
        self.package_service = PackageQueryService(
            nuget or NuGetClient(self.config),
            github or GitHubClient(self.config),
            self.cache,
            self.config,
            sleep=sleep,
            metrics=self.metrics,
        )

        self._tool_handlers: Dict[str, ToolHandler] = {
            GET_README_TOOL: self._get_readme,
            GET_INFO_TOOL: self._get_package_info,
            SEARCH_TOOL: self._search_packages,
        }

        self._setup_tool_routes()

    async def on_startup(self):
        self.cache.start()
        self.logger.info("README service started", tools=list(self._tool_handlers))

    async def on_shutdown(self):
        await self.cache.destroy()
        await self.package_service.close()
        self.logger.info("README service stopped")

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {"cache": self.cache.get_stats()}

    def _setup_tool_routes(self):
        """Set up tool routes."""

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            error = ValidationError(
                "Invalid tool call request",
                "INVALID_REQUEST",
                details={"errors": [err.get("msg", "") for err in exc.errors()]},
            )
            self.logger.warning("Invalid tool call request", errors=error.details["errors"])
            return JSONResponse(status_code=400, content=error.to_response().model_dump())

        @self.app.get("/tools")
        async def list_tools():
            """List available tools."""
            return {"tools": [tool.model_dump(by_alias=True) for tool in TOOL_DEFINITIONS]}

        @self.app.post("/tools/call")
        async def call_tool(call: ToolCallRequest):
            """Run a tool by name."""
            result = await self.call_tool(call.name, call.arguments)
            return {"result": result}

    async def call_tool(self, name: str, arguments: Any) -> Dict[str, Any]:
        """Dispatch a tool call and return its JSON-ready result."""
        handler = self._tool_handlers.get(name)
        if handler is None:
            raise ValidationError(f"Unknown tool: {name}", "UNKNOWN_TOOL", details={"tool": name})

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ValidationError("Tool arguments must be an object", "INVALID_ARGUMENTS")

        set_tool_context(name)
        start_time = time.time()
        outcome = "error"
        try:
            result = await handler(arguments)
            outcome = "success"
            return result.model_dump(mode="json", exclude_none=True)
        except PackageReadmeError as exc:
            outcome = exc.code
            raise
        except Exception as exc:
            self.logger.error("Tool failed with unexpected error", tool=name, error=str(exc), exc_info=True)
            raise classify_exception(exc, f"tool {name}") from exc
        finally:
            self.metrics.record_tool_call(name, outcome, time.time() - start_time)

    async def _get_readme(self, arguments: Dict[str, Any]) -> BaseModel:
        return await self.package_service.get_readme(
            arguments.get("package_name"),
            arguments.get("version", "latest"),
            arguments.get("include_examples", True),
        )

    async def _get_package_info(self, arguments: Dict[str, Any]) -> BaseModel:
        return await self.package_service.get_info(
            arguments.get("package_name"),
            arguments.get("include_dependencies", True),
            arguments.get("include_dev_dependencies", False),
        )

    async def _search_packages(self, arguments: Dict[str, Any]) -> BaseModel:
        return await self.package_service.search(
            arguments.get("query"),
            arguments.get("limit", 20),
            arguments.get("quality"),
            arguments.get("popularity"),
        )


def create_app():
    """Create FastAPI application."""
    service = ReadmeService()
    return service.app


def main():
    service = ReadmeService()
    service.run()


if __name__ == "__main__":
    main()
