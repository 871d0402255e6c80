"""MCP application instance.

Tool modules import ``mcp`` from here rather than from server.py so that
``python -m oahu_transit.server`` does not import the server module twice.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "Oahu Transit",
    instructions=(
        "TheBus (Oahu) transit planning - nearby stops, ranked trip itineraries "
        "with fares, and live arrivals"
    ),
)
