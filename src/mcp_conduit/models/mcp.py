from collections.abc import Mapping
from typing import Any, Literal, Union
from urllib.parse import urlparse

from pydantic import Field, field_validator

from .common import BasePydanticModel, TransportType

UNKNOWN_TOOL_NAME = "unknown_tool"


def _validate_absolute_url(v: str) -> str:
    v = v.strip()
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL '{v}': expected an absolute http(s) URL")
    return v


class ServerConfig(BasePydanticModel):
    """Connection settings for one MCP server, supplied by the caller per call."""
    url: str = Field(..., description="Primary JSON-RPC endpoint (HTTP) or event stream (SSE).")
    transport: TransportType
    headers: dict[str, str] | None = Field(None, description="Extra headers sent with every request.")
    handshake_url: str | None = Field(None, alias="handshakeUrl", description="Explicit handshake endpoint, tried before url.")
    timeout_ms: int | None = Field(None, alias="timeoutMs", gt=0, description="Per-call deadline in milliseconds.")

    model_config = {
        "extra": "ignore",
        "populate_by_name": True,
        "use_enum_values": True,
        "frozen": True,
    }

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_absolute_url(v)

    @field_validator("handshake_url", mode="before")
    @classmethod
    def validate_handshake_url(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return None
            return _validate_absolute_url(v)
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def drop_non_mapping_headers(cls, v: Any) -> Any:
        # Callers sometimes forward whatever the UI sent; only a mapping is meaningful.
        return dict(v) if isinstance(v, Mapping) else None

    def effective_timeout_ms(self, default_ms: int) -> int:
        return self.timeout_ms if self.timeout_ms is not None else default_ms


class ToolDescriptor(BasePydanticModel):
    name: str = Field(..., description="Name of the tool, unique within the MCP server.")
    description: str | None = None
    input_schema: dict[str, Any] | None = Field(None, alias="inputSchema")

    @classmethod
    def from_raw(cls, raw: Any) -> "ToolDescriptor":
        """Normalize a server-supplied tool record. Never drops a record."""
        record = raw if isinstance(raw, Mapping) else {}
        name = record.get("name")
        description = record.get("description")
        schema = record.get("inputSchema")
        return cls(
            name=name if isinstance(name, str) and name else UNKNOWN_TOOL_NAME,
            description=description if isinstance(description, str) else None,
            input_schema=dict(schema) if isinstance(schema, Mapping) else None,
        )


class _WarningsMixin(BasePydanticModel):
    warnings: list[str] | None = None

    @field_validator("warnings")
    @classmethod
    def normalise_warnings(cls, v: list[str] | None) -> list[str] | None:
        if not v:
            return None
        return list(dict.fromkeys(v))

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, by_alias=True)


class ListToolsSuccess(_WarningsMixin):
    ok: Literal[True] = True
    tools: list[ToolDescriptor] = Field(default_factory=list)


class ListToolsFailure(_WarningsMixin):
    ok: Literal[False] = False
    kind: str
    message: str
    status: int | None = None


ListToolsResult = Union[ListToolsSuccess, ListToolsFailure]


class CallToolResult(BasePydanticModel):
    result: Any = None
