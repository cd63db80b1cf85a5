"""Configuration management for MCP Conduit."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel): # Remains BaseModel, nested under Config (BaseSettings)
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")
    file: Optional[Path] = Field(default=None, description="Log file path")

class MCPClientConfig(BaseModel):
    """Configuration for the MCP client behavior."""
    default_timeout_ms: int = Field(default=20_000, ge=1, description="Per-call deadline used when a server config does not set timeout_ms.")
    max_attempts: int = Field(default=2, ge=1, description="Total attempts for the primary exchange when it fails with a network error or timeout.")
    initial_backoff_seconds: float = Field(default=0.1, ge=0.0, description="Initial backoff delay between attempts.")
    max_backoff_seconds: float = Field(default=1.0, ge=0.0, description="Maximum backoff delay between attempts.")
    connect_timeout_seconds: float = Field(default=10.0, gt=0, description="Upper bound for establishing a TCP connection. The per-call deadline still applies.")
    connection_pool_total_limit: int = Field(default=100, ge=1, description="Total connection pool limit for aiohttp session.")
    connection_pool_per_host_limit: int = Field(default=30, ge=1, description="Per-host connection pool limit for aiohttp session.")
    connection_pool_dns_cache_ttl_seconds: int = Field(default=300, ge=0, description="DNS cache TTL in seconds for aiohttp session.")
    ssl_verify: bool = Field(default=True, description="Enable/disable SSL certificate verification for HTTP clients.")
    session_header: str = Field(default="Mcp-Session-Id", description="Header carrying the SSE session id on POSTed requests.")
    protocol_version: str = Field(default="2024-11-05", description="protocolVersion sent with the initialize handshake.")
    handshake_method: str = Field(default="initialize", description="JSON-RPC method used for the optional handshake.")
    fallback_query_param: str = Field(default="jsonrpc", description="Query parameter carrying the payload on the GET fallback.")


class Config(BaseSettings):
    """Main configuration for MCP Conduit. Loads from environment variables prefixed with MCP_CONDUIT_."""

    model_config = SettingsConfigDict(
        env_prefix='MCP_CONDUIT_',
        env_nested_delimiter='__', # e.g., MCP_CONDUIT_MCP_CLIENT__MAX_ATTEMPTS
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    mcp_client: MCPClientConfig = Field(default_factory=MCPClientConfig)
    agent_name: str = Field(default="MCPConduit", description="Client name sent in User-Agent and clientInfo.")

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Note: This does not layer with environment variables.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
