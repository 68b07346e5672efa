"""Concept2 Logbook MCP server and CLI."""

__version__ = "0.1.0"
