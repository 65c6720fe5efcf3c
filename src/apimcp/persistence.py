# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

"""Write an App to a JSON catalog file and rebuild it from one.

Loading is two-phase: the ``sourceType`` envelope selects a registered
source adapter, which then decodes the rest of the file and re-attaches
request handlers.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from . import openapi_source  # noqa: F401  (registers the openapi adapter)
from .exceptions import ConfigDecodeError, PersistenceError
from .models import App, LifecycleState
from .sources import registry

logger = logging.getLogger(__name__)

CATALOG_SUFFIX = "_makemcp.json"
DIR_MODE = 0o755


def catalog_filename(app: App) -> str:
    if app.source_params.file:
        return f"{app.source_params.file}.json"
    return f"{app.name}{CATALOG_SUFFIX}"


def encode_app(app: App) -> str:
    return json.dumps(app.to_dict(), indent=2)


def save_app(app: App, directory: Optional[str] = None) -> str:
    """Write the catalog under directory (default: cwd) and return its absolute path."""
    path = os.path.abspath(os.path.join(directory or os.getcwd(), catalog_filename(app)))
    try:
        text = encode_app(app)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Could not encode catalog for {app.name}: {e}") from e
    try:
        os.makedirs(os.path.dirname(path), mode=DIR_MODE, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
            f.write("\n")
    except OSError as e:
        raise PersistenceError(f"Could not write catalog file {path}: {e}") from e
    app.state = LifecycleState.PERSISTED
    logger.info("Catalog written to %s", path)
    return path


def decode_app(data: Any) -> App:
    if not isinstance(data, dict):
        raise ConfigDecodeError("Catalog file must contain a JSON object")
    source = registry.get(data.get("sourceType"))
    return source.decode(data)


def read_app(path: str) -> App:
    """Decode a catalog file without attaching handlers."""
    abspath = os.path.abspath(path)
    try:
        with open(abspath, encoding="utf-8") as f:
            data: Dict[str, Any] = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigDecodeError(f"Catalog file {abspath} is not valid JSON: {e}") from e
    except OSError as e:
        raise PersistenceError(f"Could not read catalog file {abspath}: {e}") from e
    logger.info("Loading catalog from %s", abspath)
    return decode_app(data)


def load_app(path: str, **attach_options: Any) -> App:
    """Rebuild an App from a catalog file and attach its request handlers."""
    app = read_app(path)
    registry.get(app.source_type).attach_handlers(app, **attach_options)
    return app
