"""Tests for MCP tool registration and call handling."""

import mcp.types as types
import pytest
from fastapi.testclient import TestClient

from apimcp.exceptions import ConfigurationError, MissingPathParamError, UnknownToolError
from apimcp.models import LifecycleState
from apimcp.server import MCPServer


class TestRegistration:
    def test_requires_handlers(self, users_app):
        with pytest.raises(ConfigurationError, match="no handler"):
            MCPServer(users_app)

    def test_lists_every_tool(self, attached_app):
        server = MCPServer(attached_app)
        tools = server.list_tools()
        assert [t.name for t in tools] == [t.name for t in attached_app.tools]
        by_name = {t.name: t for t in tools}
        delete = by_name["DELETE_/users/{userId}"]
        assert delete.annotations.destructiveHint is True
        assert delete.annotations.readOnlyHint is None
        assert by_name["listUsers"].inputSchema["properties"]["query__limit"]["type"] == "integer"

    def test_server_identity(self, attached_app):
        server = MCPServer(attached_app)
        assert server.server.name == "Users API"
        assert server.server.version == "2.1.0"


class TestCalls:
    async def test_call_returns_text(self, attached_app, recorder):
        server = MCPServer(attached_app)
        content = await server.call_tool("listUsers", {"query__limit": 10})
        assert len(content) == 1
        assert isinstance(content[0], types.TextContent)
        assert content[0].text.startswith("HTTP GET https://api.ex.com/users?limit=10\nStatus: 200")

    async def test_unknown_tool(self, attached_app):
        server = MCPServer(attached_app)
        with pytest.raises(UnknownToolError, match="nope"):
            await server.call_tool("nope", {})

    async def test_handler_errors_propagate_and_server_keeps_serving(self, attached_app, recorder):
        server = MCPServer(attached_app)
        with pytest.raises(MissingPathParamError):
            await server.call_tool("updateUser", {"body__name": "A"})
        content = await server.call_tool("listUsers", None)
        assert "Status: 200" in content[0].text

    async def test_error_becomes_is_error_result(self, attached_app):
        server = MCPServer(attached_app)
        handler = server.server.request_handlers[types.CallToolRequest]
        request = types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(name="updateUser", arguments={"body__name": "A"}),
        )
        result = await handler(request)
        assert result.root.isError is True
        assert "userId" in result.root.content[0].text


class TestLifecycle:
    async def test_serve_marks_stopped(self, attached_app, monkeypatch):
        server = MCPServer(attached_app)
        seen = []

        async def fake_stdio():
            seen.append(attached_app.state)

        monkeypatch.setattr(server, "run_stdio", fake_stdio)
        await server.serve()
        assert seen == [LifecycleState.SERVING]
        assert attached_app.state is LifecycleState.STOPPED
        assert attached_app.http_client is None

    async def test_serve_marks_failed(self, attached_app, monkeypatch):
        server = MCPServer(attached_app)

        async def broken():
            raise OSError("address in use")

        attached_app.source_params.transport = "http"
        monkeypatch.setattr(server, "run_http", broken)
        with pytest.raises(OSError):
            await server.serve()
        assert attached_app.state is LifecycleState.FAILED


class TestHttpApp:
    def test_health(self, users_app, mock_transport):
        from apimcp.openapi_source import OpenAPISource
        OpenAPISource().attach_handlers(users_app, transport=mock_transport)
        http_app = MCPServer(users_app).create_http_app()
        with TestClient(http_app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "name": "Users API", "version": "2.1.0", "tools": 6}

    def test_mcp_route_mounted(self, users_app, mock_transport):
        from apimcp.openapi_source import OpenAPISource
        OpenAPISource().attach_handlers(users_app, transport=mock_transport)
        http_app = MCPServer(users_app).create_http_app()
        assert "/mcp" in [route.path for route in http_app.routes]
