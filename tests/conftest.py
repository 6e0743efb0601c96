import json
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import httpx
import pytest

from reportdash_mcp.config import RelayConfig
from reportdash_mcp.relay import RelayEngine

API_URL = "https://datastore.test/api/mcp/v1"
API_KEY = "rd_live_0123456789abcdef"


@pytest.fixture
def config():
    return RelayConfig(api_key=API_KEY, api_url=API_URL)


@pytest.fixture
def make_engine(config):
    """Build a RelayEngine whose HTTP calls go to `handler`; sent requests are recorded."""
    def _make(handler, cfg=None):
        sent = []

        def recording(request: httpx.Request):
            sent.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        engine = RelayEngine(cfg or config, client=client)
        engine.sent = sent
        return engine

    return _make


class BackendHandler(BaseHTTPRequestHandler):
    """Echoes the request back inside a JSON-RPC result; records what it saw."""

    received = []

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        msg = json.loads(self.rfile.read(length))
        type(self).received.append({"headers": self.headers, "body": msg})

        if msg.get("method") == "tools/list":
            payload = {
                "jsonrpc": "2.0",
                "id": None,
                "result": {"tools": [{"name": f"tool_{i}", "description": f"Tool {i}"} for i in range(7)]},
            }
        else:
            payload = {"jsonrpc": "2.0", "id": msg.get("id"), "result": {"echo": msg.get("method")}}

        body = json.dumps(payload).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def backend():
    BackendHandler.received = []
    server = HTTPServer(("127.0.0.1", 0), BackendHandler)
    port = server.server_address[1]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{port}/api/mcp/v1"
    server.shutdown()
    server.server_close()
