# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import httpx
import yaml

from .config import is_url_location
from .exceptions import SpecLoadError

logger = logging.getLogger(__name__)

CIRCULAR_REF_KEY = "x-circular-ref"
EXTERNAL_REF_KEY = "x-external-ref"


class SpecDocument:
    """A loaded OpenAPI document: raw as read, and with internal refs resolved."""

    def __init__(self, location: str, raw: Dict[str, Any], resolved: Dict[str, Any]):
        self.location = location
        self.raw = raw
        self.resolved = resolved

    @property
    def title(self) -> str:
        return str(self.resolved.get("info", {}).get("title") or "")

    @property
    def version(self) -> str:
        return str(self.resolved.get("info", {}).get("version", ""))

    @property
    def paths(self) -> Dict[str, Any]:
        return self.resolved.get("paths") or {}


def _parse_text(text: str, location: str, content_type: str = "") -> Dict[str, Any]:
    try:
        if content_type.startswith("application/json"):
            spec = json.loads(text)
        else:
            try:
                spec = json.loads(text)
            except ValueError:
                spec = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise SpecLoadError(location, f"syntax error: {e}") from e
    if not isinstance(spec, dict):
        raise SpecLoadError(location, "document root is not an object")
    return spec


def _read_location(location: str) -> Dict[str, Any]:
    if is_url_location(location):
        try:
            resp = httpx.get(location, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise SpecLoadError(location, str(e)) from e
        return _parse_text(resp.text, location, resp.headers.get("Content-Type", ""))

    path = location
    if location.startswith("file://"):
        path = unquote(urlparse(location).path)
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SpecLoadError(location, str(e)) from e
    return _parse_text(text, location)


def _check_version(spec: Dict[str, Any], location: str, strict: bool) -> None:
    version = str(spec.get("openapi", ""))
    if not version.startswith("3."):
        if "swagger" in spec:
            raise SpecLoadError(location, f"Swagger {spec['swagger']} documents are not supported")
        raise SpecLoadError(location, f"not an OpenAPI 3.x document (openapi: {version or 'missing'})")
    if "paths" not in spec:
        raise SpecLoadError(location, "missing required property 'paths'")

    problems = []
    if not isinstance(spec.get("paths"), dict):
        problems.append("'paths' is not an object")
    info = spec.get("info")
    if not isinstance(info, dict):
        problems.append("missing 'info' object")
    else:
        for key in ("title", "version"):
            if key not in info:
                problems.append(f"missing 'info.{key}'")
    if problems and strict:
        raise SpecLoadError(location, "; ".join(problems))
    for problem in problems:
        logger.warning("OpenAPI validation warning (%s): %s", location, problem)


def _resolve_pointer(spec: Dict[str, Any], ref: str, location: str) -> Any:
    node: Any = spec
    for part in ref[2:].split("/") if ref != "#" else []:
        part = unquote(part).replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise SpecLoadError(location, f"unresolvable reference '{ref}'")
    return node


def dereference(spec: Dict[str, Any], location: str = "<memory>") -> Dict[str, Any]:
    """Return a copy of spec with every internal $ref replaced by its target.

    A reference that re-enters one of its own ancestors becomes an opaque
    object node tagged with x-circular-ref instead of recursing.
    """

    def walk(node: Any, stack: List[str]) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str):
                if not ref.startswith("#"):
                    logger.warning("External reference '%s' left unresolved", ref)
                    return {"type": "object", EXTERNAL_REF_KEY: ref}
                if ref in stack:
                    return {"type": "object", CIRCULAR_REF_KEY: ref}
                target = _resolve_pointer(spec, ref, location)
                resolved = walk(target, stack + [ref])
                siblings = {k: v for k, v in node.items() if k != "$ref"}
                if siblings and isinstance(resolved, dict):
                    merged = dict(resolved)
                    merged.update(walk(siblings, stack))
                    return merged
                return resolved
            return {key: walk(value, stack) for key, value in node.items()}
        if isinstance(node, list):
            return [walk(item, stack) for item in node]
        return node

    return walk(spec, [])


def load_spec(location: str, strict: bool = False) -> SpecDocument:
    """Read an OpenAPI 3.x document from a URL or file path and resolve its refs."""
    if not location:
        raise SpecLoadError(location, "no location given")
    logger.info("Loading OpenAPI spec from: %s", location)
    raw = _read_location(location)
    _check_version(raw, location, strict)
    resolved = dereference(raw, location)
    doc = SpecDocument(location, raw, resolved)
    logger.info("Loaded OpenAPI spec: %s v%s", doc.title or "<untitled>", doc.version or "?")
    return doc


def load_spec_from_dict(spec: Dict[str, Any], location: Optional[str] = None, strict: bool = False) -> SpecDocument:
    """Build a SpecDocument from an already parsed document."""
    location = location or "<memory>"
    if not isinstance(spec, dict):
        raise SpecLoadError(location, "document root is not an object")
    _check_version(spec, location, strict)
    return SpecDocument(location, spec, dereference(spec, location))
