"""
reportdash_mcp/codec.py
-----------------------
Newline-delimited JSON-RPC 2.0 framing.

Every line written by the relay is exactly one compact JSON document followed
by a single "\\n". Inbound lines are decoded and tagged with the client
platform before they are forwarded.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from reportdash_mcp.config import PLATFORM

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
INTERNAL_ERROR = -32603

_MISSING = object()


class DecodeError(ValueError):
    """An input line that is not valid JSON."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


# ─────────────────────────────────────────────
# Inbound
# ─────────────────────────────────────────────

def with_platform(message: Any, platform: str = PLATFORM) -> Any:
    """Tag an object message with the client platform unless it already has one."""
    if isinstance(message, dict) and message.get("platform") is None:
        message["platform"] = platform
    return message


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def loads(text: str) -> Any:
    """Strict JSON: NaN, Infinity and -Infinity are rejected."""
    return json.loads(text, parse_constant=_reject_constant)


def dumps(message: Any) -> str:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def has_id(message: Any) -> bool:
    # Presence decides request vs notification; id=0 and id=null are requests.
    return isinstance(message, dict) and "id" in message


def decode_line(line: str, platform: str = PLATFORM) -> Optional[Any]:
    """
    Decode one input line.

    Returns None for blank lines, the normalized message otherwise.
    Raises DecodeError when the line is not JSON.
    """
    if not line.strip():
        return None
    try:
        message = loads(line)
    except ValueError as e:
        raise DecodeError(str(e)) from e
    return with_platform(message, platform)


# ─────────────────────────────────────────────
# Outbound
# ─────────────────────────────────────────────

@dataclass
class RpcResult:
    id: Any
    result: Any = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": self.id, "result": self.result}


@dataclass
class RpcError:
    id: Any
    code: int
    message: str
    data: Any = _MISSING

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.data is not _MISSING:
            error["data"] = self.data
        return {"jsonrpc": "2.0", "id": self.id, "error": error}


@dataclass
class Passthrough:
    """A JSON-RPC object returned by the backend, forwarded as-is except for its id."""
    body: Dict[str, Any]
    id: Any

    def to_dict(self) -> Dict[str, Any]:
        message = dict(self.body)
        if message.get("id") is None:
            message["id"] = self.id
        return message


def rpc_error(id: Any = None, code: int = INTERNAL_ERROR, message: str = "Internal error", data: Any = _MISSING) -> RpcError:
    return RpcError(id=id, code=code, message=message, data=data)


def encode(message: Any) -> str:
    """Serialize an outbound message (variant or plain dict) to one framed line."""
    if hasattr(message, "to_dict"):
        message = message.to_dict()
    return dumps(message) + "\n"
