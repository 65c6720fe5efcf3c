# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import yaml
from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import JsonLexer, YamlLexer
from pygments.styles import get_style_by_name

from . import __version__
from .config import DEFAULT_PORT, TRANSPORTS, OpenAPIParams, normalize_transport
from .exceptions import APIMCPError, ConfigurationError
from .models import App
from .persistence import load_app, read_app, save_app
from .server import MCPServer
from .sources import registry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
STYLE = get_style_by_name("monokai")


def syntax_highlight(data: str, language: str) -> str:
    """Apply syntax highlighting to data in the given language if output is a TTY."""
    if not sys.stdout.isatty():
        return data
    lexers = {
        "json": JsonLexer(),
        "yaml": YamlLexer(),
    }
    lexer = lexers.get(language.lower())
    if lexer:
        return highlight(data, lexer, TerminalFormatter(style=STYLE))
    return data


def configure_logging(level: Optional[str]) -> None:
    level = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    if level not in LOG_LEVELS:
        level = "INFO"
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def _env_port() -> Optional[int]:
    value = os.environ.get("MCP_PORT", "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"MCP_PORT must be an integer, got '{value}'") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apimcp", description="Serve an OpenAPI 3.x API as MCP tools")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", choices=LOG_LEVELS, type=str.upper,
                        help="Logging level (default: LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    openapi_parser = subparsers.add_parser("openapi", help="Build a tool catalog from an OpenAPI spec and serve it")
    openapi_parser.add_argument("-s", "--specs", help="OpenAPI spec URL or file path (default: OPENAPI_URL)")
    openapi_parser.add_argument("-b", "--base-url", help="Base URL of the upstream API (default: API_BASE_URL)")
    openapi_parser.add_argument("-t", "--transport", choices=TRANSPORTS,
                                help="MCP transport (default: MCP_TRANSPORT or stdio)")
    openapi_parser.add_argument("--port", type=int, help=f"Port for the http transport (default: MCP_PORT or {DEFAULT_PORT})")
    openapi_parser.add_argument("--config-only", action="store_true", help="Write the catalog file and exit")
    openapi_parser.add_argument("--dev-mode", action="store_true", help="Mark the catalog as built in development mode")
    openapi_parser.add_argument("--file", default="", help="Catalog file basename (default: <app name>_makemcp)")
    openapi_parser.add_argument("--timeout", type=float, help="Upstream request timeout in seconds (default: none)")
    openapi_parser.add_argument("--max-response-bytes", type=int,
                                help="Truncate upstream response bodies after this many bytes")
    openapi_parser.add_argument("--strict", action="store_true",
                                help="Reject specs with structural problems instead of warning")

    load_parser = subparsers.add_parser("load", help="Serve a previously written catalog file")
    load_parser.add_argument("config_file", help="Catalog file written by the openapi command")
    load_parser.add_argument("-t", "--transport", choices=TRANSPORTS, help="Override the stored transport")
    load_parser.add_argument("--port", type=int, help="Override the stored port")

    list_parser = subparsers.add_parser("list", help="List the tools in a catalog file")
    list_parser.add_argument("config_file", help="Catalog file written by the openapi command")
    list_parser.add_argument("--output", choices=["json", "yaml"], default="json", help="Output format")
    return parser


def params_from_args(args: argparse.Namespace) -> OpenAPIParams:
    port = args.port if args.port is not None else _env_port()
    params = OpenAPIParams(
        spec_location=(args.specs or os.environ.get("OPENAPI_URL", "")).strip(),
        base_url=args.base_url or os.environ.get("API_BASE_URL", ""),
        timeout=args.timeout,
        max_response_bytes=args.max_response_bytes,
        strict_validate=args.strict,
        transport=args.transport or os.environ.get("MCP_TRANSPORT") or "stdio",
        port=port,
        config_only=args.config_only,
        dev_mode=args.dev_mode,
        file=args.file,
    )
    params.validate()
    return params


def catalog_summary(app: App) -> Dict[str, Any]:
    return {
        "name": app.name,
        "version": app.version,
        "sourceType": app.source_type,
        "tools": [
            {
                "name": tool.name,
                "method": tool.call_site.method,
                "path": tool.call_site.path,
                "required": tool.required,
            }
            for tool in app.tools
        ],
    }


def cmd_openapi(args: argparse.Namespace) -> Optional[App]:
    params = params_from_args(args)
    source = registry.get(params.source_type)
    app = source.build(params)
    save_app(app)
    if params.config_only:
        return app
    source.attach_handlers(app)
    MCPServer(app).run()
    return app


def cmd_load(args: argparse.Namespace) -> Optional[App]:
    app = load_app(args.config_file)
    if args.transport:
        app.source_params.transport = normalize_transport(args.transport)
    if args.port is not None:
        app.source_params.port = args.port
    app.source_params.validate()
    MCPServer(app).run()
    return app


def cmd_list(args: argparse.Namespace) -> Optional[App]:
    app = read_app(args.config_file)
    summary = catalog_summary(app)
    if args.output == "yaml":
        result = yaml.dump(summary, allow_unicode=True, default_flow_style=False, sort_keys=False)
    else:
        result = json.dumps(summary, indent=2, ensure_ascii=False)
    print(syntax_highlight(result, args.output))
    return app


COMMANDS = {
    "openapi": cmd_openapi,
    "load": cmd_load,
    "list": cmd_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        COMMANDS[args.command](args)
    except APIMCPError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
