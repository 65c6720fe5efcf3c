# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

import logging
from typing import Any, Dict, List

from .config import SharedParams
from .exceptions import UnknownSourceTypeError
from .models import App

logger = logging.getLogger(__name__)


class Source:
    """Adapter for one kind of tool source.

    An adapter can build an App from its parameters, decode an App from a
    persisted catalog, and attach request handlers to the App's tools.
    """

    name = ""

    def build(self, params: SharedParams) -> App:
        raise NotImplementedError

    def decode(self, data: Dict[str, Any]) -> App:
        raise NotImplementedError

    def attach_handlers(self, app: App, **options: Any) -> None:
        raise NotImplementedError


class SourceRegistry:
    def __init__(self):
        self._sources: Dict[str, Source] = {}

    def register(self, source: Source) -> Source:
        if not source.name:
            raise ValueError("source adapters must define a name")
        self._sources[source.name] = source
        logger.debug("Registered source adapter: %s", source.name)
        return source

    def get(self, source_type: str) -> Source:
        try:
            return self._sources[source_type]
        except (KeyError, TypeError):
            raise UnknownSourceTypeError(source_type) from None

    def names(self) -> List[str]:
        return sorted(self._sources)

    def __contains__(self, source_type: str) -> bool:
        return source_type in self._sources


registry = SourceRegistry()
