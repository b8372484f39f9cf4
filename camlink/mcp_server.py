"""MCP server for camlink."""
import json
import logging
from typing import Optional

import click

from fastmcp import FastMCP

from camlink import CameraLinkClient

logger = logging.getLogger(__name__)

mcp = FastMCP("camlink")

client: CameraLinkClient = CameraLinkClient()


@mcp.tool()
async def scan_devices() -> str:
    """Probe the usual ESP32-CAM addresses and list the cameras that answer."""
    found = await client.scan_for_devices()
    if not found:
        return "No cameras found."
    return "Found cameras:\n" + "\n".join(f"- {address}" for address in found)


@mcp.tool()
async def connect_camera(
    address: Optional[str] = None, port: Optional[int] = None, stream_path: Optional[str] = None,
) -> str:
    """Connect to a camera. Any argument left out uses the ESP32-CAM default.

    Args:
        address: Camera IP address or host name (default: 192.168.4.1)
        port: Camera HTTP port (default: 80)
        stream_path: Path of the MJPEG stream (default: /stream)
    """
    try:
        ok = await client.connect(address=address, port=port, stream_path=stream_path)
    except ValueError as e:
        logger.warning("Rejected camera settings: %s", e)
        return f"Invalid camera settings: {e}"
    if not ok:
        target = client.get_config()
        return f"Could not reach camera at {target.base_url if target else address}"
    return f"Connected. Stream URL: {client.get_stream_url()}"


@mcp.tool()
async def disconnect_camera() -> str:
    """Disconnect from the current camera."""
    await client.disconnect()
    return "Disconnected"


@mcp.tool()
async def camera_status() -> str:
    """Get the connection status and stream URL of the camera link."""
    status = client.get_status().to_dict()
    status["stream_url"] = client.get_stream_url()
    return json.dumps(status, indent=2)


@mcp.tool()
async def start_streaming() -> str:
    """Ask the connected camera to start streaming."""
    if await client.start_streaming():
        return f"Streaming at {client.get_stream_url()}"
    return "Failed to start streaming (is the camera connected?)"


@mcp.tool()
async def stop_streaming() -> str:
    """Ask the connected camera to stop streaming."""
    if await client.stop_streaming():
        return "Streaming stopped"
    return "Failed to stop streaming (is the camera connected?)"


@mcp.tool()
async def capture_photo(embed: bool = False) -> str:
    """Capture a still image from the connected camera.

    Args:
        embed: Return the JPEG as a base64 data URI instead of a URL
    """
    if embed:
        result = await client.capture_photo_base64()
    else:
        result = await client.capture_photo()
    if result is None:
        return "Failed to capture photo (is the camera connected?)"
    return result


@click.command()
@click.option("--host", default="127.0.0.1", help="Host to listen on")
@click.option("--port", default=16385, help="Port to listen on")
@click.option("--stdio", "transport", flag_value="stdio", default=True, help="Use stdio transport (default)")
@click.option("--http", "transport", flag_value="http", help="Use HTTP transport")
def main(host, port, transport):
    """Serve the camlink camera tools over MCP (stdio by default)."""
    if transport == "http":
        mcp.run(transport="http", host=host, port=port)
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
