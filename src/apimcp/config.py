# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TRANSPORT_STDIO = "stdio"
TRANSPORT_HTTP = "http"
TRANSPORTS = (TRANSPORT_STDIO, TRANSPORT_HTTP)

DEFAULT_PORT = 8080


def normalize_transport(transport: Optional[str]) -> str:
    """Return a known transport name, falling back to stdio."""
    value = (transport or TRANSPORT_STDIO).strip().lower()
    if value not in TRANSPORTS:
        logger.warning("Unknown transport '%s'; falling back to %s", transport, TRANSPORT_STDIO)
        return TRANSPORT_STDIO
    return value


def normalize_base_url(base_url: Optional[str]) -> str:
    return (base_url or "").strip().rstrip("/")


def is_url_location(location: str) -> bool:
    """True when the location parses as an http(s) URL."""
    try:
        scheme = urlparse(location).scheme
    except ValueError:
        return False
    return scheme in ("http", "https")


class SharedParams:
    """Parameters every source type carries."""

    def __init__(
        self,
        source_type: str = "",
        transport: str = TRANSPORT_STDIO,
        port: Optional[int] = DEFAULT_PORT,
        config_only: bool = False,
        dev_mode: bool = False,
        file: str = "",
    ):
        self.source_type = source_type
        self.transport = normalize_transport(transport)
        self.port = DEFAULT_PORT if port is None else int(port)
        self.config_only = bool(config_only)
        self.dev_mode = bool(dev_mode)
        self.file = file or ""

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Port must be between 1 and 65535, got {self.port}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transport": self.transport,
            "port": self.port,
            "configOnly": self.config_only,
            "devMode": self.dev_mode,
            "file": self.file,
            "sourceType": self.source_type,
        }

    @staticmethod
    def _shared_kwargs(data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "transport": data.get("transport", TRANSPORT_STDIO),
            "port": data.get("port", DEFAULT_PORT),
            "config_only": data.get("configOnly", False),
            "dev_mode": data.get("devMode", False),
            "file": data.get("file", ""),
        }


class OpenAPIParams(SharedParams):
    """Source parameters for catalogs built from an OpenAPI document."""

    SOURCE_TYPE = "openapi"

    def __init__(
        self,
        spec_location: str = "",
        base_url: str = "",
        timeout: Optional[float] = None,
        max_response_bytes: Optional[int] = None,
        strict_validate: bool = False,
        **shared: Any,
    ):
        super().__init__(source_type=self.SOURCE_TYPE, **shared)
        self.spec_location = spec_location or ""
        self._base_url = normalize_base_url(base_url)
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes
        self.strict_validate = bool(strict_validate)

    @property
    def base_url(self) -> str:
        """Base URL of the upstream API, without trailing slash."""
        return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self._base_url = normalize_base_url(value)

    def validate(self) -> None:
        super().validate()
        if not self.spec_location:
            raise ConfigurationError(
                "specs parameter is required - provide an OpenAPI specification URL or file path"
            )
        if not self.base_url:
            raise ConfigurationError(
                "base-url parameter is required - provide the API base URL used for tool calls"
            )
        if "://" in self.base_url and not urlparse(self.base_url).netloc:
            raise ConfigurationError(f"Invalid base URL: {self.base_url}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be greater than 0")
        if self.max_response_bytes is not None and self.max_response_bytes <= 0:
            raise ConfigurationError("max-response-bytes must be greater than 0")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "baseUrl": self.base_url,
            "specLocation": self.spec_location,
            "timeout": self.timeout,
            "maxResponseBytes": self.max_response_bytes,
            "strictValidate": self.strict_validate,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpenAPIParams":
        if not isinstance(data, dict):
            raise ConfigurationError("OpenAPI source parameters must be a JSON object")
        return cls(
            spec_location=data.get("specLocation", ""),
            base_url=data.get("baseUrl", ""),
            timeout=data.get("timeout"),
            max_response_bytes=data.get("maxResponseBytes"),
            strict_validate=data.get("strictValidate", False),
            **cls._shared_kwargs(data),
        )
