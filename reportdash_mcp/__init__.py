"""
ReportDash DataStore MCP relay.

Bridges a stdio MCP client to the ReportDash DataStore HTTP API.
"""

__version__ = "1.0.0"
