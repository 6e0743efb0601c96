"""
reportdash_mcp/relay.py
-----------------------
Relay engine: one inbound JSON-RPC message → one HTTP POST → at most one
outbound JSON-RPC message.

Outcome mapping (first match wins):
    timeout                 → -32603 "Request timeout after N seconds"
    transport error         → -32603 "Network error: ..."
    204 / empty body        → 2xx: result {}   else: error code = status
    body is not JSON        → -32603 with {statusCode, body} as data
    2xx JSON-RPC object     → passed through, null/missing id replaced
    2xx other JSON          → wrapped as result
    non-2xx JSON            → error code = status, body as data

Notifications (no "id" key) are still posted, but never answered.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from reportdash_mcp.codec import INTERNAL_ERROR, Passthrough, RpcError, RpcResult, dumps, has_id, loads, rpc_error
from reportdash_mcp.config import RelayConfig

logger = logging.getLogger(__name__)

Outbound = Union[RpcResult, RpcError, Passthrough]


@dataclass
class RelayOutcome:
    """What came back from a single HTTP attempt."""
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


class RelayEngine:
    """
    Forwards normalized messages to the configured endpoint.

    Usage:
        async with RelayEngine(config) as engine:
            reply = await engine.dispatch(message)
    """

    def __init__(self, config: RelayConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    async def __aenter__(self) -> "RelayEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ─────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────

    async def dispatch(self, message: Any) -> Optional[Outbound]:
        """Relay one message. Returns None for notifications."""
        is_request = has_id(message)
        req_id = message["id"] if is_request else None
        method = message.get("method") if isinstance(message, dict) else None

        outcome = await self.post(message)

        if not is_request:
            logger.debug(f"Notification {method!r} relayed, outcome discarded")
            return None

        reply = self.map_outcome(outcome, req_id)
        logger.debug(f"Request {method!r} id={req_id!r} → {type(reply).__name__}")
        return reply

    async def post(self, message: Any) -> RelayOutcome:
        """POST the message once. Never raises for network-level failures."""
        body = dumps(message).encode("utf-8")
        try:
            response = await asyncio.wait_for(
                self._client.post(self.config.api_url, content=body, headers=self.config.headers()),
                timeout=self.config.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"POST {self.config.api_url} timed out after {self.config.timeout:g}s")
            return RelayOutcome(timed_out=True)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            detail = str(e) or type(e).__name__
            logger.warning(f"POST {self.config.api_url} failed: {detail}")
            return RelayOutcome(error=detail)

        logger.info(f"POST {self.config.api_url} → {response.status_code}")
        return RelayOutcome(status_code=response.status_code, body=response.text)

    # ─────────────────────────────────────────────
    # Outcome mapping
    # ─────────────────────────────────────────────

    def map_outcome(self, outcome: RelayOutcome, req_id: Any) -> Outbound:
        if outcome.timed_out:
            return rpc_error(
                id=req_id,
                code=INTERNAL_ERROR,
                message=f"Request timeout after {self.config.timeout:g} seconds",
            )

        if outcome.error is not None:
            return rpc_error(id=req_id, code=INTERNAL_ERROR, message=f"Network error: {outcome.error}")

        status = outcome.status_code
        if status == 204 or not outcome.body.strip():
            if outcome.ok:
                return RpcResult(id=req_id, result={})
            return rpc_error(id=req_id, code=status, message=f"API error: {status} (empty body)")

        try:
            parsed = loads(outcome.body)
        except ValueError:
            logger.warning(f"Non-JSON response (status {status}): {outcome.body[:200]!r}")
            return rpc_error(
                id=req_id,
                code=INTERNAL_ERROR,
                message="API returned non-JSON response",
                data={"statusCode": status, "body": outcome.body},
            )

        if not outcome.ok:
            return rpc_error(id=req_id, code=status, message=f"API error: {status}", data=parsed)

        if isinstance(parsed, dict) and parsed.get("jsonrpc") == "2.0":
            return Passthrough(body=parsed, id=req_id)

        return RpcResult(id=req_id, result=parsed)
