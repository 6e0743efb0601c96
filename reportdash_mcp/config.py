"""
reportdash_mcp/config.py
------------------------
Process-wide relay configuration.

Read once at startup (environment + optional .env file) and handed to the
relay engine as an immutable RelayConfig.

Environment:
    REPORTDASH_API_KEY    → required credential, sent as X-Api-Key
    REPORTDASH_API_URL    → endpoint (default: production DataStore)
    REPORTDASH_LOG_LEVEL  → stderr log level (default: WARNING)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "https://datastore.reportdash.com/api/mcp/v1"
USER_AGENT = "ReportDash-DataStore-MCP/1.0"
PLATFORM = "claude"
RELAY_TIMEOUT = 30.0
SELFTEST_TIMEOUT = 10.0

API_KEY_HELP = (
    "REPORTDASH_API_KEY environment variable is required. Get your API key from "
    "ReportDash DataStore (https://datastore.reportdash.com)> Destinations > API Access."
)


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class RelayConfig:
    """Read-only settings shared by every in-flight relay."""
    api_key: str
    api_url: str = DEFAULT_API_URL
    timeout: float = RELAY_TIMEOUT
    user_agent: str = USER_AGENT
    platform: str = PLATFORM

    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-Api-Key": self.api_key,
            "User-Agent": self.user_agent,
        }

    def masked_key(self) -> str:
        return f"{self.api_key[:10]}...{self.api_key[-4:]}"


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    api_url: Optional[str] = None,
) -> RelayConfig:
    """
    Build the relay configuration.

    When no mapping is given, a local .env file is loaded first and the
    process environment is used. An explicit api_url wins over the
    environment.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    api_key = environ.get("REPORTDASH_API_KEY")
    if not api_key:
        raise ConfigError(API_KEY_HELP)

    url = api_url or environ.get("REPORTDASH_API_URL") or DEFAULT_API_URL
    return RelayConfig(api_key=api_key, api_url=url)
