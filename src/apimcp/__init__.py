# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Roger Gujord
# https://github.com/gujord/OpenAPI-MCP

"""apimcp - turn OpenAPI 3.x documents into Model Context Protocol servers."""

__version__ = "1.0.0"
__license__ = "MIT"
