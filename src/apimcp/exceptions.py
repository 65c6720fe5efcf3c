# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

"""Exception hierarchy shared by the loader, catalog builder, persistence and dispatcher."""

from typing import Optional


class APIMCPError(Exception):
    """Base class for every error raised by apimcp."""


class ConfigurationError(APIMCPError):
    """Invalid or incomplete source parameters."""


class SpecLoadError(APIMCPError):
    """The OpenAPI document could not be read, parsed or is not OpenAPI 3.x."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Could not load OpenAPI spec from {location}: {reason}")


class CatalogBuildError(APIMCPError):
    """An operation violates an assumption the catalog builder relies on."""


class DuplicateToolNameError(CatalogBuildError):
    def __init__(self, name: str, first: str, second: str):
        self.name = name
        super().__init__(
            f"Duplicate tool name '{name}' derived from {first} and {second}"
        )


class PersistenceError(APIMCPError):
    """A catalog file could not be written or rehydrated."""


class UnknownSourceTypeError(PersistenceError):
    def __init__(self, source_type: Optional[str]):
        self.source_type = source_type
        super().__init__(f"No source adapter registered for source type '{source_type}'")


class ConfigDecodeError(PersistenceError):
    """The catalog file does not match the expected layout."""


class UnknownToolError(APIMCPError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' not found")


class ToolInvocationError(APIMCPError):
    """Base class for errors raised while serving a single tool call."""


class MissingPathParamError(ToolInvocationError):
    def __init__(self, names, path: str):
        self.names = list(names)
        self.path = path
        joined = ", ".join(self.names)
        super().__init__(
            f"Missing path parameter(s) {joined} for '{path}'; "
            f"provide them as {', '.join('path__' + n for n in self.names)}"
        )


class ArgumentTypeError(ToolInvocationError):
    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Invalid argument '{key}': {reason}")


class MarshalError(ToolInvocationError):
    """The request body could not be encoded."""


class TransportError(ToolInvocationError):
    """The upstream request failed before a response was received."""
