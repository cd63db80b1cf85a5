"""Utility helpers for MCP Conduit."""
