"""
reportdash_mcp/proxy.py
-----------------------
MCP stdio-to-HTTP proxy for ReportDash DataStore.

The MCP client spawns this as a stdio server. It reads JSON-RPC 2.0 messages
from stdin, forwards each one to the DataStore HTTP API, and writes responses
back to stdout, one JSON document per line. Notifications (no id) are
forwarded but never answered. Logs go to stderr only.

Usage (claude_desktop_config.json):
    "command": "reportdash-datastore-mcp",
    "env": {"REPORTDASH_API_KEY": "..."}

    reportdash-datastore-mcp --test    # human-readable connectivity check
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, BinaryIO, Set, TextIO, Tuple

from dotenv import load_dotenv

from reportdash_mcp import __version__
from reportdash_mcp.codec import (
    INVALID_REQUEST,
    PARSE_ERROR,
    DecodeError,
    decode_line,
    encode,
    has_id,
    rpc_error,
)
from reportdash_mcp.config import ConfigError, RelayConfig, load_config
from reportdash_mcp.relay import RelayEngine
from reportdash_mcp.selftest import check_connection

logger = logging.getLogger(__name__)

MAX_LINE_BYTES = 16 * 1024 * 1024


def write_message(out: TextIO, message: Any) -> None:
    """Write exactly one JSON object per line (MCP framing)."""
    out.write(encode(message))
    out.flush()


# ─────────────────────────────────────────────
# Server loop
# ─────────────────────────────────────────────

async def _relay(engine: RelayEngine, message: Any, out: TextIO) -> None:
    try:
        reply = await engine.dispatch(message)
    except Exception as e:
        logger.exception("Relay failed")
        if not has_id(message):
            return
        reply = rpc_error(id=message["id"], message=f"Internal error: {e}")

    if reply is not None:
        write_message(out, reply)


async def read_line(reader: asyncio.StreamReader) -> Tuple[bytes, bool]:
    """
    Next line from reader and whether it ran past the reader's limit.

    An oversized line is consumed up to its newline (or EOF) and returned
    empty, so the caller answers it once. Returns (b"", False) at EOF.
    """
    oversized = False
    while True:
        try:
            line = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            line = e.partial
        except asyncio.LimitOverrunError as e:
            oversized = True
            await reader.readexactly(e.consumed)
            continue
        return (b"" if oversized else line), oversized


async def serve(reader: asyncio.StreamReader, out: TextIO, engine: RelayEngine) -> None:
    """
    Relay every line from reader until EOF.

    Each message runs in its own task, so replies may come back out of order.
    Returns once the input is closed and all in-flight relays have finished.
    """
    pending: Set[asyncio.Task] = set()

    while True:
        raw, oversized = await read_line(reader)
        if oversized:
            logger.warning("Dropping oversized line")
            write_message(out, rpc_error(id=None, code=PARSE_ERROR, message="Parse error: line too long"))
            continue
        if not raw:
            break

        line = raw.decode("utf-8", errors="replace")
        try:
            message = decode_line(line, engine.config.platform)
        except DecodeError as e:
            logger.warning(f"Parse error: {e.detail}")
            write_message(out, rpc_error(id=None, code=PARSE_ERROR, message=f"Parse error: {e.detail}"))
            continue
        if message is None:
            continue

        task = asyncio.create_task(_relay(engine, message, out))
        pending.add(task)
        task.add_done_callback(pending.discard)

    if pending:
        logger.debug(f"Input closed, waiting for {len(pending)} in-flight relay(s)")
        await asyncio.gather(*pending)


async def pump_file(reader: asyncio.StreamReader, stream: BinaryIO, chunk_size: int = 64 * 1024) -> None:
    """Feed a blocking binary stream (e.g. stdin redirected from a file) into reader."""
    try:
        while True:
            chunk = await asyncio.to_thread(stream.read1, chunk_size)
            if not chunk:
                break
            reader.feed_data(chunk)
    finally:
        reader.feed_eof()


async def run(config: RelayConfig) -> None:
    """Serve stdin → API → stdout until stdin closes."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
    pump = None
    try:
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    except ValueError:
        # Regular files cannot be watched by the event loop.
        logger.debug("stdin is not a pipe, reading it in a worker thread")
        pump = asyncio.create_task(pump_file(reader, sys.stdin.buffer))

    logger.info(f"Relaying stdio to {config.api_url}")
    async with RelayEngine(config) as engine:
        await serve(reader, sys.stdout, engine)
    if pump is not None:
        await pump
    logger.info("Input closed, exiting")


# ─────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reportdash-datastore-mcp",
        description="Stdio MCP relay for the ReportDash DataStore API",
    )
    parser.add_argument("-V", "--version", action="version", version=f"reportdash-datastore-mcp {__version__}")
    parser.add_argument("--url", default=None, help="API endpoint (overrides REPORTDASH_API_URL)")
    parser.add_argument("--test", action="store_true", help="Check connectivity and API key, then exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return parser


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG
    if not verbose:
        name = os.environ.get("REPORTDASH_LOG_LEVEL", "WARNING").upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def main(argv=None) -> None:
    load_dotenv()
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = load_config(os.environ, api_url=args.url)
    except ConfigError as e:
        # Fatal, but stdout must still carry JSON only.
        logger.error(str(e))
        write_message(sys.stdout, rpc_error(id=None, code=INVALID_REQUEST, message=str(e)))
        sys.exit(1)

    if args.test:
        sys.exit(check_connection(config))

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    sys.exit(0)


if __name__ == "__main__":
    main()
