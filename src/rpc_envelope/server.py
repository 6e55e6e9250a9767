"""MCP server entry point for inspecting command envelopes.

Exposes tools and a resource via the Model Context Protocol using the
official Python MCP SDK with stdio transport. Useful for building test
payloads and reading captured queue messages during development.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .protocol.envelope import ENCODING, CommandEnvelope, decode_envelope
from .protocol.functions import functions, parse_function_source

logger = logging.getLogger(__name__)

SERVER_NAME = "rpc-envelope"

mcp = FastMCP(
    SERVER_NAME,
    instructions="Pack and unpack RPC command envelopes sent across message queues",
)


def _describe(value: Any) -> Any:
    """Make revived arguments JSON-safe for tool output."""
    if callable(value):
        return {"callable": getattr(value, "__name__", type(value).__name__)}
    if isinstance(value, list):
        return [_describe(item) for item in value]
    if isinstance(value, dict):
        return {key: _describe(item) for key, item in value.items()}
    return value


# ─── ENVELOPE TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def pack_command(command: str, args: list[Any] | None = None) -> dict[str, Any]:
    """Pack a command and its arguments into a queue payload.

    Args:
        command: RPC command name.
        args: Positional arguments (default: none).
    """
    try:
        data = CommandEnvelope.create(command, args).pack()
    except (TypeError, ValueError) as e:
        return {"error": str(e)}
    return {"payload": data.decode(ENCODING), "size": len(data)}


@mcp.tool()
def unpack_command(payload: str, revive_functions: bool = False) -> dict[str, Any]:
    """Decode a queue payload into its command and arguments.

    Args:
        payload: The message body as text.
        revive_functions: Resolve function text against the registered
            local functions.
    """
    result = decode_envelope(payload.encode(ENCODING), revive_functions)
    if not result:
        return {"error": result.message, "kind": result.error_kind.value}
    return {
        "command": result.envelope.command,
        "args": _describe(result.envelope.args),
    }


@mcp.tool()
def inspect_function(text: str) -> dict[str, Any]:
    """Show how a string would be read as function source text.

    Args:
        text: Candidate function source.
    """
    source = parse_function_source(text)
    if source is None:
        return {"match": False}
    result: dict[str, Any] = {"match": True, "registered": functions.resolve(source) is not None}
    result.update(source.to_dict())
    return result


@mcp.tool()
def list_functions() -> dict[str, list[str]]:
    """List the local functions that function text can be revived into."""
    return {"functions": functions.names()}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("envelope://format")
def resource_format() -> str:
    """Wire format of a command envelope."""
    return json.dumps({
        "encoding": ENCODING,
        "fields": {
            "command": "string, non-empty",
            "args": "array; callables are sent as their source text",
        },
        "example": CommandEnvelope.create("add", [2, 3]).pack().decode(ENCODING),
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting %s MCP server", SERVER_NAME)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
