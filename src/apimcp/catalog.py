# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

"""Translate OpenAPI operations into tool descriptors.

Every argument a tool accepts is named ``{location}__{param}`` so that the
request dispatcher can route it without consulting the OpenAPI document.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import CatalogBuildError, DuplicateToolNameError
from .loader import SpecDocument
from .models import (
    LOCATIONS,
    PARAM_LOCATIONS,
    CallSite,
    ToolAnnotations,
    ToolDescriptor,
    prefixed_name,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

RAW_BODY_PARAM = "payload"

PLACEHOLDER_RE = re.compile(r"\{([^{}]*)\}")
PROPERTY_KEY_RE = re.compile(r"^(path|query|header|cookie|body)__[^_].*$")

SECTION_TITLES = {
    "path": "Path Parameters:",
    "query": "Query Parameters:",
    "header": "Header Parameters:",
    "cookie": "Cookie Parameters:",
    "body": "Body Parameters:",
}

EXAMPLE_VALUES = {
    "string": "example string",
    "integer": 42,
    "number": 3.14,
    "boolean": True,
    "array": [],
    "object": {},
}

PREFIX_INSTRUCTION = (
    "IMPORTANT: When calling this tool, provide every argument as "
    "'location__name' where location is one of path, query, header, cookie or body "
    "(e.g. 'path__user_id', 'body__email'), as shown in the example above."
)


def tool_name(method: str, path: str, operation: Dict[str, Any]) -> str:
    operation_id = operation.get("operationId")
    if isinstance(operation_id, str) and operation_id.strip():
        return operation_id
    return f"{method.upper()}_{path}"


def path_placeholders(path: str) -> List[str]:
    """Placeholder names of a path template, in order of appearance."""
    depth = 0
    for ch in path:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        if depth not in (0, 1):
            raise CatalogBuildError(f"Unbalanced braces in path template '{path}'")
    if depth != 0:
        raise CatalogBuildError(f"Unbalanced braces in path template '{path}'")
    names = PLACEHOLDER_RE.findall(path)
    if any(not name for name in names):
        raise CatalogBuildError(f"Empty placeholder in path template '{path}'")
    return names


def schema_type(schema: Optional[Dict[str, Any]]) -> str:
    """First declared JSON-schema type, or 'string'."""
    if not isinstance(schema, dict):
        return "string"
    declared = schema.get("type")
    if isinstance(declared, list):
        declared = declared[0] if declared else None
    if isinstance(declared, str) and declared:
        return declared
    return "string"


def merge_parameters(path_item: Dict[str, Any], operation: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Path-level parameters overridden by operation-level ones with the same (name, in)."""
    merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for source in (path_item.get("parameters") or [], operation.get("parameters") or []):
        for param in source:
            if not isinstance(param, dict):
                continue
            name, location = param.get("name"), param.get("in")
            if not name or location not in PARAM_LOCATIONS:
                logger.warning("Skipping parameter %r with location %r", name, location)
                continue
            merged[(name, location)] = param
    return list(merged.values())


def _parameter_schema(param: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if isinstance(param.get("schema"), dict):
        return param["schema"]
    for media in (param.get("content") or {}).values():
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media["schema"]
    return None


def is_json_media_type(media_type: str) -> bool:
    base = media_type.split(";", 1)[0].strip().lower()
    return base == "application/json" or (base.startswith("application/") and base.endswith("+json"))


def choose_body_media(request_body: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
    content = request_body.get("content") or {}
    if not content:
        return None, {}
    if "application/json" in content:
        return "application/json", content["application/json"] or {}
    for media_type, media in content.items():
        if is_json_media_type(media_type):
            return media_type, media or {}
    media_type = next(iter(content))
    return media_type, content[media_type] or {}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _object_properties(schema: Any) -> Dict[str, Any]:
    """Declared top-level properties of an object schema, or an empty dict."""
    if not isinstance(schema, dict) or not (schema.get("type") == "object" or "properties" in schema):
        return {}
    properties = schema.get("properties")
    return properties if isinstance(properties, dict) else {}


def _property(type_name: str, description: Optional[str], location: str) -> Dict[str, Any]:
    prop: Dict[str, Any] = {"type": type_name}
    if description:
        prop["description"] = _text(description)
    prop["location"] = location
    return prop


def build_input_schema(
    method: str, path: str, path_item: Dict[str, Any], operation: Dict[str, Any]
) -> Tuple[Dict[str, Any], CallSite]:
    properties: Dict[str, Any] = {}
    required: List[str] = []
    by_location: Dict[str, List[str]] = {loc: [] for loc in LOCATIONS}
    placeholders = path_placeholders(path)

    def add(location: str, name: str, prop: Dict[str, Any], is_required: bool) -> None:
        key = prefixed_name(location, name)
        if not PROPERTY_KEY_RE.match(key):
            raise CatalogBuildError(
                f"{location} parameter '{name}' of {method.upper()} {path} cannot be exposed as '{key}'"
            )
        if key not in properties:
            by_location[location].append(name)
        properties[key] = prop
        if is_required and key not in required:
            required.append(key)

    params = merge_parameters(path_item, operation)
    for location in PARAM_LOCATIONS:
        for param in params:
            if param["in"] != location:
                continue
            name = str(param["name"])
            prop = _property(schema_type(_parameter_schema(param)), param.get("description"), location)
            is_required = bool(param.get("required")) or (location == "path" and name in placeholders)
            add(location, name, prop, is_required)
        if location == "path":
            for name in placeholders:
                if prefixed_name("path", name) not in properties:
                    add("path", name, _property("string", None, "path"), True)

    body_content_type = None
    raw_body = False
    request_body = operation.get("requestBody")
    if isinstance(request_body, dict):
        body_content_type, media = choose_body_media(request_body)
        schema = media.get("schema")
        body_properties = _object_properties(schema)
        if body_content_type and is_json_media_type(body_content_type) and body_properties:
            schema_required = schema.get("required") or []
            for prop_name, prop_schema in body_properties.items():
                prop_schema = prop_schema if isinstance(prop_schema, dict) else {}
                prop = _property(schema_type(prop_schema), prop_schema.get("description"), "body")
                add("body", str(prop_name), prop, prop_name in schema_required)
        elif body_content_type:
            raw_body = True
            description = request_body.get("description") or f"Raw {body_content_type} request body"
            add("body", RAW_BODY_PARAM, _property("string", description, "body"),
                bool(request_body.get("required")))

    input_schema = {"type": "object", "properties": properties, "required": required}
    call_site = CallSite(
        method=method,
        path=path,
        params_by_location=by_location,
        body_content_type=body_content_type,
        raw_body=raw_body,
    )
    return input_schema, call_site


def tool_annotations(method: str, name: str, operation: Dict[str, Any]) -> ToolAnnotations:
    annotations = ToolAnnotations(title=name)
    method = method.upper()
    if method in ("GET", "HEAD", "OPTIONS"):
        annotations.read_only = True
        annotations.idempotent = True
    elif method == "PUT":
        annotations.idempotent = True
    elif method == "DELETE":
        annotations.destructive = True
        annotations.idempotent = True
    description = _text(operation.get("description"))
    if "open world" in description.lower():
        annotations.open_world = True
    return annotations


def example_input(input_schema: Dict[str, Any]) -> str:
    example = {
        key: EXAMPLE_VALUES.get(prop.get("type"), "example string")
        for key, prop in input_schema.get("properties", {}).items()
    }
    return json.dumps(example, indent=2)


def _parameter_sections(input_schema: Dict[str, Any]) -> str:
    required = set(input_schema.get("required", []))
    grouped: Dict[str, List[str]] = {loc: [] for loc in LOCATIONS}
    for key, prop in input_schema.get("properties", {}).items():
        location, _, name = key.partition("__")
        if location not in grouped:
            continue
        flag = "Required" if key in required else "Optional"
        line = f"- {name} ({flag})"
        if prop.get("description"):
            line += f": {prop['description']}"
        grouped[location].append(line)

    sections = []
    for location in LOCATIONS:
        if grouped[location]:
            sections.append(SECTION_TITLES[location] + "\n\n" + "\n".join(grouped[location]))
    return "\n\n".join(sections)


def build_description(
    method: str, path: str, operation: Dict[str, Any], input_schema: Dict[str, Any], call_site: CallSite
) -> str:
    parts = []
    summary = _text(operation.get("summary")).strip()
    description = _text(operation.get("description")).strip()
    if summary:
        parts.append(summary)
    if description:
        parts.append(description.replace("\n", "\n\n"))
    if not parts:
        parts.append(f"{method.upper()} {path}")
    if call_site.raw_body:
        parts.append(
            f"The request body is sent as {call_site.body_content_type}; "
            f"pass it in body__{RAW_BODY_PARAM}."
        )

    if input_schema.get("properties"):
        parts.append(_parameter_sections(input_schema))
        parts.append("Example input:\n" + example_input(input_schema))
        parts.append(PREFIX_INSTRUCTION)
    return "\n\n".join(parts)


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def build_tool(
    method: str,
    path: str,
    path_item: Dict[str, Any],
    operation: Dict[str, Any],
    raw_operation: Any = None,
) -> ToolDescriptor:
    name = tool_name(method, path, operation)
    input_schema, call_site = build_input_schema(method, path, path_item, operation)
    return ToolDescriptor(
        name=name,
        description=build_description(method, path, operation, input_schema, call_site),
        input_schema=input_schema,
        annotations=tool_annotations(method, name, operation),
        call_site=call_site,
        source_fragment=_json_safe(raw_operation if raw_operation is not None else operation),
    )


def build_catalog(doc: SpecDocument) -> List[ToolDescriptor]:
    """One descriptor per (path, method) operation; names must be unique."""
    tools: List[ToolDescriptor] = []
    origins: Dict[str, str] = {}
    raw_paths = doc.raw.get("paths") or {}
    for path, path_item in doc.paths.items():
        if not isinstance(path_item, dict):
            logger.warning("Skipping path %s: path item is not an object", path)
            continue
        raw_item = raw_paths.get(path) if isinstance(raw_paths.get(path), dict) else {}
        for method, operation in path_item.items():
            if method.lower() not in HTTP_METHODS:
                continue
            if not isinstance(operation, dict):
                raise CatalogBuildError(f"Operation {method.upper()} {path} is not an object")
            tool = build_tool(method, path, path_item, operation, raw_item.get(method))
            origin = f"{tool.call_site.method} {path}"
            if tool.name in origins:
                raise DuplicateToolNameError(tool.name, origins[tool.name], origin)
            origins[tool.name] = origin
            logger.debug("Built tool %s for %s", tool.name, origin)
            tools.append(tool)
    logger.info("Built %d tools from %s", len(tools), doc.location)
    return tools
