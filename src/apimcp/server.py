# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import mcp.types as types
import uvicorn
from fastapi import FastAPI
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from .config import TRANSPORT_HTTP
from .exceptions import ConfigurationError, UnknownToolError
from .models import App, LifecycleState, ToolDescriptor

logger = logging.getLogger(__name__)

HTTP_HOST = "0.0.0.0"
MCP_HTTP_PATH = "/mcp"


class StreamableHTTPEndpoint:
    """ASGI endpoint forwarding every request to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope, receive, send):
        await self.session_manager.handle_request(scope, receive, send)


class MCPServer:
    def __init__(self, app: App):
        self.app = app
        self.server = Server(app.name, version=app.version)
        self.registered_tools: Dict[str, ToolDescriptor] = {}
        self.register_tools()
        self._register_handlers()

    def register_tools(self) -> int:
        for tool in self.app.tools:
            if tool.handler is None:
                raise ConfigurationError(f"Tool '{tool.name}' has no handler attached")
            self.registered_tools[tool.name] = tool
            logger.debug("Registered tool %s", tool.name)
        logger.info("Registered %d tools for %s v%s", len(self.registered_tools), self.app.name, self.app.version)
        return len(self.registered_tools)

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def handle_list_tools() -> List[types.Tool]:
            return self.list_tools()

        # arguments are routed by prefix, not checked against the schema
        @self.server.call_tool(validate_input=False)
        async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
            return await self.call_tool(name, arguments)

    def list_tools(self) -> List[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
                annotations=types.ToolAnnotations(**tool.annotations.to_dict()),
            )
            for tool in self.registered_tools.values()
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        tool = self.registered_tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        try:
            text = await tool.handler(arguments or {})
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            raise
        return [types.TextContent(type="text", text=text)]

    async def run_stdio(self) -> None:
        logger.info("Serving %s over stdio", self.app.name)
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(read_stream, write_stream, self.server.create_initialization_options())

    def create_http_app(self) -> FastAPI:
        session_manager = StreamableHTTPSessionManager(app=self.server)

        @asynccontextmanager
        async def lifespan(_: FastAPI):
            async with session_manager.run():
                yield

        http_app = FastAPI(title=self.app.name, version=self.app.version, lifespan=lifespan)

        @http_app.get("/health")
        async def health() -> Dict[str, Any]:
            return {
                "status": "ok",
                "name": self.app.name,
                "version": self.app.version,
                "tools": len(self.registered_tools),
            }

        http_app.add_route(MCP_HTTP_PATH, StreamableHTTPEndpoint(session_manager))
        return http_app

    async def run_http(self) -> None:
        logger.info("Serving %s over streamable HTTP on %s:%d%s", self.app.name, HTTP_HOST, self.app.port, MCP_HTTP_PATH)
        config = uvicorn.Config(self.create_http_app(), host=HTTP_HOST, port=self.app.port, log_level="info")
        await uvicorn.Server(config).serve()

    async def serve(self) -> None:
        self.app.state = LifecycleState.SERVING
        try:
            if self.app.transport == TRANSPORT_HTTP:
                await self.run_http()
            else:
                await self.run_stdio()
        except Exception:
            self.app.state = LifecycleState.FAILED
            raise
        finally:
            if self.app.state is LifecycleState.SERVING:
                self.app.state = LifecycleState.STOPPED
            await self.app.aclose()
            logger.info("Server %s stopped", self.app.name)

    def run(self) -> None:
        asyncio.run(self.serve())
