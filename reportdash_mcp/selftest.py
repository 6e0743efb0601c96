"""
reportdash_mcp/selftest.py
--------------------------
Human-readable connectivity check (``--test``).

Sends a single tools/list request and prints the outcome to stdout.
Never used in relay mode: the output here is not JSON.
"""

import json
import logging

import requests

from reportdash_mcp.codec import with_platform
from reportdash_mcp.config import SELFTEST_TIMEOUT, RelayConfig

logger = logging.getLogger(__name__)

KEY_HINT = "Check your API key in ReportDash DataStore (https://datastore.reportdash.com)> Destinations > API Access"
MAX_LISTED_TOOLS = 5


def _print_tools(tools: list) -> None:
    print(f"📦 Available Tools: {len(tools)}\n")
    for index, tool in enumerate(tools[:MAX_LISTED_TOOLS], start=1):
        print(f"{index}. {tool.get('name')}")
        print(f"   {tool.get('description', '')}\n")
    if len(tools) > MAX_LISTED_TOOLS:
        print(f"... and {len(tools) - MAX_LISTED_TOOLS} more tools")


def check_connection(config: RelayConfig, timeout: float = SELFTEST_TIMEOUT) -> int:
    """Run the check. Returns the process exit code (0 = API reachable and key accepted)."""
    print("🔍 Testing ReportDash DataStore connection...\n")
    print(f"API URL: {config.api_url}")
    print(f"API Key: {config.masked_key()}\n")

    request = with_platform({"jsonrpc": "2.0", "method": "tools/list", "id": "test-connection"}, config.platform)

    print("📡 Sending MCP tools/list request...\n")
    try:
        resp = requests.post(
            config.api_url,
            data=json.dumps(request).encode("utf-8"),
            headers=config.headers(),
            timeout=timeout,
        )
    except requests.exceptions.Timeout:
        logger.debug("Self-test timed out", exc_info=True)
        print("❌ Connection timeout")
        print("\n💡 Check your internet connection")
        return 1
    except requests.exceptions.RequestException as e:
        print(f"❌ Connection error: {e}")
        print("\n💡 Check your internet connection and API URL")
        return 1

    print(f"Response Status: {resp.status_code}\n")

    if not 200 <= resp.status_code < 300:
        print("❌ Connection failed")
        print(f"Status: {resp.status_code}")
        print(f"Response: {resp.text}")
        print(f"\n💡 {KEY_HINT}")
        return 1

    if resp.status_code == 204 or not resp.text.strip():
        print("✅ Connection successful!")
        print("✅ API key is valid")
        print("ℹ️  Server returned 204 No Content\n")
    else:
        try:
            response = resp.json()
        except ValueError:
            print("✅ Connection successful but response parsing failed")
            print(f"Raw response: {resp.text}")
        else:
            print("✅ Connection successful!")
            print("✅ API key is valid\n")
            result = response.get("result") if isinstance(response, dict) else None
            if isinstance(result, dict) and isinstance(result.get("tools"), list):
                _print_tools(result["tools"])
            else:
                print(f"Response: {json.dumps(response, indent=2)}")

    print("\n🎉 You can now use ReportDash DataStore in Claude Desktop!")
    print('\nTry asking Claude: "list my reportdash datastore sources"')
    return 0
