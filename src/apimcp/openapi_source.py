# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

import logging
from typing import Any, Dict, Optional

import httpx

from . import __version__
from .catalog import build_catalog
from .config import OpenAPIParams
from .dispatcher import make_handler
from .exceptions import ConfigDecodeError, ConfigurationError
from .loader import SpecDocument, load_spec
from .models import App, LifecycleState, ToolDescriptor
from .sources import Source, registry

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "openapi-app"
DEFAULT_APP_VERSION = "0.0.0"


class OpenAPISource(Source):
    name = OpenAPIParams.SOURCE_TYPE

    def build(self, params: OpenAPIParams) -> App:
        params.validate()
        doc = load_spec(params.spec_location, strict=params.strict_validate)
        return self.build_from_document(doc, params)

    def build_from_document(self, doc: SpecDocument, params: OpenAPIParams) -> App:
        tools = build_catalog(doc)
        app = App(
            name=doc.title or DEFAULT_APP_NAME,
            version=doc.version or DEFAULT_APP_VERSION,
            source_params=params,
            tools=tools,
        )
        app.state = LifecycleState.CATALOG_BUILT
        logger.info("Catalog for %s v%s built with %d tools", app.name, app.version, len(tools))
        return app

    def decode(self, data: Dict[str, Any]) -> App:
        try:
            params = OpenAPIParams.from_dict(data["config"])
            tools = [ToolDescriptor.from_dict(tool) for tool in data["tools"]]
            app = App(
                name=str(data["name"]),
                version=str(data["version"]),
                source_params=params,
                tools=tools,
            )
        except ConfigurationError as e:
            raise ConfigDecodeError(str(e)) from e
        except KeyError as e:
            raise ConfigDecodeError(f"Missing required field {e} in catalog file") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigDecodeError(f"Malformed catalog file: {e}") from e
        if not params.base_url:
            raise ConfigDecodeError("Catalog file does not define config.baseUrl")
        app.state = LifecycleState.PERSISTED
        return app

    def attach_handlers(self, app: App, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        params = app.source_params
        if app.http_client is not None:
            logger.debug("Replacing HTTP client for %s", app.name)
        timeout = httpx.Timeout(params.timeout) if params.timeout else None
        client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": f"apimcp/{__version__}"},
            transport=transport,
        )
        for tool in app.tools:
            tool.handler = make_handler(tool.call_site, params.base_url, client, params.max_response_bytes)
        app.http_client = client
        app.state = LifecycleState.HANDLERS_ATTACHED
        logger.info("Attached handlers to %d tools (base URL %s)", len(app.tools), params.base_url)


registry.register(OpenAPISource())
