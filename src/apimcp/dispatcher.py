# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

"""Turn a prefixed argument map into an upstream HTTP request and run it."""

import json
import logging
import math
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from .catalog import PLACEHOLDER_RE, RAW_BODY_PARAM, is_json_media_type
from .exceptions import ArgumentTypeError, MarshalError, MissingPathParamError, TransportError
from .models import LOCATIONS, PREFIX_SEPARATOR, CallSite, ToolHandler

logger = logging.getLogger(__name__)

BODYLESS_METHODS = ("GET", "DELETE")
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
MULTIPART_MEDIA_TYPE = "multipart/form-data"
TRUNCATION_MARKER = "\n...[response truncated after {limit} bytes]"


def partition_arguments(arguments: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Split 'location__name' keys into per-location buckets.

    Keys without a recognised prefix go to the query bucket unchanged.
    """
    buckets: Dict[str, Dict[str, Any]] = {loc: {} for loc in LOCATIONS}
    for key, value in (arguments or {}).items():
        location, sep, name = key.partition(PREFIX_SEPARATOR)
        if sep and name and location in buckets:
            buckets[location][name] = value
        else:
            buckets["query"][key] = value
    return buckets


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _scalar(key: str, value: Any) -> str:
    if isinstance(value, (list, tuple, dict)):
        raise ArgumentTypeError(key, f"expected a scalar value, got {type(value).__name__}")
    return format_value(value)


def substitute_path(path: str, path_args: Dict[str, Any]) -> str:
    for name, value in path_args.items():
        escaped = quote(_scalar(f"path__{name}", value), safe="")
        path = path.replace("{" + name + "}", escaped)
    missing = PLACEHOLDER_RE.findall(path)
    if missing:
        raise MissingPathParamError(missing, path)
    return path


def encode_query(query_args: Dict[str, Any]) -> str:
    pairs: List[Tuple[str, str]] = []
    for key in sorted(query_args):
        value = query_args[key]
        if isinstance(value, (list, tuple)):
            pairs.extend((key, format_value(item)) for item in value)
        else:
            pairs.append((key, format_value(value)))
    return urlencode(pairs)


def build_url(base_url: str, call_site: CallSite, buckets: Dict[str, Dict[str, Any]]) -> str:
    url = base_url + substitute_path(call_site.path, buckets["path"])
    query = encode_query(buckets["query"])
    if query:
        url += ("&" if "?" in url else "?") + query
    return url


def _dump_json(key: str, value: Any) -> bytes:
    try:
        return json.dumps(value, allow_nan=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise MarshalError(f"Could not encode {key} as JSON: {e}") from e


def _base_media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _multipart_fields(payload: Dict[str, Any]) -> List[Tuple[str, Tuple[None, str]]]:
    fields = []
    for name, value in payload.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        fields.extend((name, (None, format_value(item))) for item in values)
    return fields


def build_body(call_site: CallSite, body_args: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """Request keyword arguments carrying the body, and the content type to set.

    Multipart bodies return no content type; httpx sets it with the boundary.
    """
    if call_site.method in BODYLESS_METHODS or not body_args:
        return {}, None

    if not call_site.raw_body:
        content_type = call_site.body_content_type
        if not content_type or not is_json_media_type(content_type):
            content_type = "application/json"
        return {"content": _dump_json("request body", body_args)}, content_type

    content_type = call_site.body_content_type or "application/octet-stream"
    media_type = _base_media_type(content_type)
    payload = body_args[RAW_BODY_PARAM] if RAW_BODY_PARAM in body_args else dict(body_args)
    if media_type == MULTIPART_MEDIA_TYPE:
        if not isinstance(payload, dict):
            raise ArgumentTypeError(
                f"body__{RAW_BODY_PARAM}",
                f"{MULTIPART_MEDIA_TYPE} bodies take an object of form fields, got {type(payload).__name__}",
            )
        return {"files": _multipart_fields(payload)}, None
    if isinstance(payload, str):
        return {"content": payload.encode("utf-8")}, content_type
    if isinstance(payload, dict) and media_type == FORM_MEDIA_TYPE:
        encoded = urlencode({k: format_value(v) for k, v in payload.items()})
        return {"content": encoded.encode("ascii")}, content_type
    if isinstance(payload, (dict, list)):
        return {"content": _dump_json(f"body__{RAW_BODY_PARAM}", payload)}, content_type
    if isinstance(payload, float) and not math.isfinite(payload):
        raise MarshalError(f"Could not encode body__{RAW_BODY_PARAM}: {payload} is not a finite number")
    return {"content": format_value(payload).encode("utf-8")}, content_type


def build_headers(buckets: Dict[str, Dict[str, Any]]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for name, value in buckets["header"].items():
        text = _scalar(f"header__{name}", value)
        if "\r" in text or "\n" in text:
            raise ArgumentTypeError(f"header__{name}", "header values must not contain line breaks")
        headers[name] = text

    cookies = []
    for name, value in buckets["cookie"].items():
        text = _scalar(f"cookie__{name}", value)
        if any(ch in text for ch in "\r\n;"):
            raise ArgumentTypeError(f"cookie__{name}", "cookie values must not contain ';' or line breaks")
        cookies.append(f"{name}={text}")
    if cookies:
        existing = next((v for k, v in headers.items() if k.lower() == "cookie"), None)
        headers = {k: v for k, v in headers.items() if k.lower() != "cookie"}
        headers["Cookie"] = "; ".join(([existing] if existing else []) + cookies)
    return headers


def prepare_request(
    client: httpx.AsyncClient, call_site: CallSite, base_url: str, arguments: Optional[Dict[str, Any]]
) -> httpx.Request:
    buckets = partition_arguments(arguments)
    url = build_url(base_url, call_site, buckets)
    headers = build_headers(buckets)
    body, content_type = build_body(call_site, buckets["body"])
    if body:
        headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
    if content_type:
        headers["Content-Type"] = content_type
    return client.build_request(call_site.method, url, headers=headers, **body)


async def read_body(response: httpx.Response, max_bytes: Optional[int] = None) -> str:
    chunks = []
    size = 0
    truncated = False
    async for chunk in response.aiter_bytes():
        if max_bytes is not None and size + len(chunk) > max_bytes:
            chunks.append(chunk[: max_bytes - size])
            truncated = True
            break
        chunks.append(chunk)
        size += len(chunk)
    text = b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")
    if truncated:
        text += TRUNCATION_MARKER.format(limit=max_bytes)
    return text


def format_result(method: str, url: str, status_code: int, body: str) -> str:
    return f"HTTP {method} {url}\nStatus: {status_code}\nResponse: {body}"


async def execute(
    client: httpx.AsyncClient, request: httpx.Request, max_bytes: Optional[int] = None
) -> str:
    logger.debug("%s %s", request.method, request.url)
    try:
        response = await client.send(request, stream=True)
        try:
            body = await read_body(response, max_bytes)
        finally:
            await response.aclose()
    except httpx.HTTPError as e:
        raise TransportError(f"{request.method} {request.url} failed: {e}") from e
    return format_result(request.method, str(request.url), response.status_code, body)


def make_handler(
    call_site: CallSite,
    base_url: str,
    client: httpx.AsyncClient,
    max_response_bytes: Optional[int] = None,
) -> ToolHandler:
    """Handler coroutine for one tool; captures only what the request needs."""

    async def handler(arguments: Dict[str, Any]) -> str:
        request = prepare_request(client, call_site, base_url, arguments)
        return await execute(client, request, max_response_bytes)

    return handler
