"""MCP server module for the Concept2 Logbook.

This module provides an MCP (Model Context Protocol) server that exposes
Concept2 authentication and profile operations as tools.
"""

from concept2_mcp.mcp.server import mcp, main

__all__ = ["mcp", "main"]
