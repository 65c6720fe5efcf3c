# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

"""In-memory catalog types: the App aggregate and its tool descriptors.

Descriptors are plain, JSON-shaped records. Handlers are attached after
construction (or after loading a catalog file) and are never serialized.
"""

import enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config import SharedParams

LOCATIONS = ("path", "query", "header", "cookie", "body")
PARAM_LOCATIONS = ("path", "query", "header", "cookie")
PREFIX_SEPARATOR = "__"

ToolHandler = Callable[[Dict[str, Any]], Awaitable[str]]


def prefixed_name(location: str, name: str) -> str:
    return f"{location}{PREFIX_SEPARATOR}{name}"


class LifecycleState(enum.Enum):
    UNCONFIGURED = "unconfigured"
    CATALOG_BUILT = "catalog_built"
    PERSISTED = "persisted"
    HANDLERS_ATTACHED = "handlers_attached"
    SERVING = "serving"
    STOPPED = "stopped"
    FAILED = "failed"


class ToolAnnotations:
    """Behaviour hints; unset hints stay None and are omitted on export."""

    HINTS = ("readOnlyHint", "destructiveHint", "idempotentHint", "openWorldHint")

    def __init__(
        self,
        title: str = "",
        read_only: Optional[bool] = None,
        destructive: Optional[bool] = None,
        idempotent: Optional[bool] = None,
        open_world: Optional[bool] = None,
    ):
        self.title = title
        self.read_only = read_only
        self.destructive = destructive
        self.idempotent = idempotent
        self.open_world = open_world

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title}
        values = (self.read_only, self.destructive, self.idempotent, self.open_world)
        for key, value in zip(self.HINTS, values):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolAnnotations":
        return cls(
            title=data.get("title", ""),
            read_only=data.get("readOnlyHint"),
            destructive=data.get("destructiveHint"),
            idempotent=data.get("idempotentHint"),
            open_world=data.get("openWorldHint"),
        )


class CallSite:
    """Everything besides the schema needed to rebuild the upstream request."""

    def __init__(
        self,
        method: str,
        path: str,
        params_by_location: Optional[Dict[str, List[str]]] = None,
        body_content_type: Optional[str] = None,
        raw_body: bool = False,
    ):
        self.method = method.upper()
        self.path = path
        self.params_by_location = params_by_location or {loc: [] for loc in LOCATIONS}
        self.body_content_type = body_content_type
        self.raw_body = raw_body

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "path": self.path,
            "paramsByLocation": {loc: list(names) for loc, names in self.params_by_location.items()},
            "bodyContentType": self.body_content_type,
            "rawBody": self.raw_body,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CallSite":
        return cls(
            method=data["method"],
            path=data["path"],
            params_by_location={
                loc: list(names) for loc, names in (data.get("paramsByLocation") or {}).items()
            },
            body_content_type=data.get("bodyContentType"),
            raw_body=bool(data.get("rawBody", False)),
        )


class ToolDescriptor:
    def __init__(
        self,
        name: str,
        description: str,
        input_schema: Dict[str, Any],
        annotations: ToolAnnotations,
        call_site: CallSite,
        source_fragment: Any = None,
    ):
        self.name = name
        self.description = description
        self.input_schema = input_schema
        self.annotations = annotations
        self.call_site = call_site
        self.source_fragment = source_fragment
        self.handler: Optional[ToolHandler] = None

    @property
    def required(self) -> List[str]:
        return list(self.input_schema.get("required", []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "annotations": self.annotations.to_dict(),
            "callSite": self.call_site.to_dict(),
            "sourceFragment": self.source_fragment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolDescriptor":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            input_schema=data["inputSchema"],
            annotations=ToolAnnotations.from_dict(data.get("annotations") or {}),
            call_site=CallSite.from_dict(data["callSite"]),
            source_fragment=data.get("sourceFragment"),
        )

    def __repr__(self) -> str:
        return f"ToolDescriptor({self.name!r}, {self.call_site.method} {self.call_site.path})"


class App:
    """Top-level aggregate: app metadata, tool catalog and source parameters."""

    def __init__(
        self,
        name: str,
        version: str,
        source_params: SharedParams,
        tools: Optional[List[ToolDescriptor]] = None,
    ):
        self.name = name
        self.version = version
        self.source_params = source_params
        self.tools: List[ToolDescriptor] = list(tools or [])
        self.state = LifecycleState.UNCONFIGURED
        # shared upstream client, set when handlers are attached
        self.http_client: Optional[Any] = None

    @property
    def source_type(self) -> str:
        return self.source_params.source_type

    @property
    def transport(self) -> str:
        return self.source_params.transport

    @property
    def port(self) -> int:
        return self.source_params.port

    def get_tool(self, name: str) -> Optional[ToolDescriptor]:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "sourceType": self.source_type,
            "tools": [tool.to_dict() for tool in self.tools],
            "config": self.source_params.to_dict(),
        }
