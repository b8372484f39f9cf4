"""CLI interface for camlink."""

import asyncio
import json
import logging
from pathlib import Path

import click

from camlink import CameraLinkClient, ClientConfig
from camlink.config import DEFAULT_ADDRESS, DEFAULT_PORT, DEFAULT_SCAN_CANDIDATES, DEFAULT_STREAM_PATH
from camlink.emulator import CameraEmulator


def device_options(f):
    """Options naming the camera a command talks to."""
    f = click.option(
        "--stream-path", default=DEFAULT_STREAM_PATH, show_default=True, help="Stream URL path",
    )(f)
    f = click.option("--port", "-p", default=DEFAULT_PORT, show_default=True, help="Camera HTTP port")(f)
    f = click.option("--address", "-a", default=DEFAULT_ADDRESS, show_default=True, help="Camera address")(f)
    return f


def _run_session(ctx, address, port, stream_path, action):
    """Connect, await ``action(client)`` and close.

    Exits with status 1 when the camera does not answer the probe.
    """
    config: ClientConfig = ctx.obj["config"]

    async def runner():
        client = CameraLinkClient(config)
        try:
            if not await client.connect(address=address, port=port, stream_path=stream_path):
                return False, None
            return True, await action(client)
        finally:
            await client.close()

    try:
        connected, result = asyncio.run(runner())
    except ValueError as e:
        raise click.ClickException(str(e))
    if not connected:
        click.echo(f"Could not reach camera at {address}:{port}", err=True)
        ctx.exit(1)
    return result


@click.group()
@click.option("--timeout", "-t", default=5.0, show_default=True, help="Connect probe timeout in seconds")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, timeout, verbose):
    """camlink - Discover and control ESP32-CAM network cameras."""
    ctx.ensure_object(dict)
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    ctx.obj["config"] = ClientConfig(probe_timeout=timeout)


@cli.command()
@click.option("--candidate", "-c", "candidates", multiple=True, help="Address to probe (repeatable)")
@click.option("--port", "-p", default=DEFAULT_PORT, show_default=True, help="Port to probe on each candidate")
@click.option("--timeout", "-t", default=2.0, show_default=True, help="Per-candidate timeout in seconds")
@click.pass_context
def scan(ctx, candidates, port, timeout):
    """Probe the usual camera addresses and list the ones that answer."""
    base: ClientConfig = ctx.obj["config"]
    config = ClientConfig(
        probe_timeout=base.probe_timeout,
        scan_timeout=timeout,
        scan_candidates=tuple(candidates) or DEFAULT_SCAN_CANDIDATES,
        scan_port=port,
    )

    async def do_scan():
        client = CameraLinkClient(config)
        try:
            return await client.scan_for_devices()
        finally:
            await client.close()

    found = asyncio.run(do_scan())
    if found:
        click.echo("Found cameras:")
        for address in found:
            click.echo(f"  - {address}:{port}")
    else:
        click.echo("No cameras found")


@cli.command()
@device_options
@click.pass_context
def probe(ctx, address, port, stream_path):
    """Connect to a camera and print the session status."""

    async def action(client):
        return {**client.get_status().to_dict(), "stream_url": client.get_stream_url()}

    info = _run_session(ctx, address, port, stream_path, action)
    click.echo(json.dumps(info, indent=2))


@cli.command()
@device_options
@click.pass_context
def stream_url(ctx, address, port, stream_path):
    """Print the camera's stream URL."""

    async def action(client):
        return client.get_stream_url()

    click.echo(_run_session(ctx, address, port, stream_path, action))


@cli.command()
@device_options
@click.pass_context
def start_stream(ctx, address, port, stream_path):
    """Ask the camera to start streaming."""

    async def action(client):
        return await client.start_streaming()

    if not _run_session(ctx, address, port, stream_path, action):
        click.echo("Camera refused to start streaming", err=True)
        ctx.exit(1)
    click.echo("Streaming started")


@cli.command()
@device_options
@click.pass_context
def stop_stream(ctx, address, port, stream_path):
    """Ask the camera to stop streaming."""

    async def action(client):
        return await client.stop_streaming()

    if not _run_session(ctx, address, port, stream_path, action):
        click.echo("Camera refused to stop streaming", err=True)
        ctx.exit(1)
    click.echo("Streaming stopped")


@cli.command()
@device_options
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the JPEG to this file")
@click.option("--base64", "as_base64", is_flag=True, help="Print a base64 data URI instead of the URL")
@click.pass_context
def capture(ctx, address, port, stream_path, output, as_base64):
    """Capture a still image."""

    async def action(client):
        if output:
            return await client.capture_photo_bytes()
        if as_base64:
            return await client.capture_photo_base64()
        return await client.capture_photo()

    result = _run_session(ctx, address, port, stream_path, action)
    if result is None:
        click.echo("Capture failed", err=True)
        ctx.exit(1)
    if output:
        Path(output).write_bytes(result)
        click.echo(f"Saved {len(result)} bytes to {output}")
    else:
        click.echo(result)


@cli.command()
@device_options
@click.option("--count", "-n", default=1, show_default=True, type=click.IntRange(min=1), help="Frames to grab")
@click.option(
    "--output-dir", "-d", default=".", show_default=True,
    type=click.Path(file_okay=False), help="Directory for frame_NNNN.jpg files",
)
@click.pass_context
def frames(ctx, address, port, stream_path, count, output_dir):
    """Grab frames from the camera's MJPEG stream."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    async def action(client):
        saved = 0
        async for frame in client.iter_frames(max_frames=count):
            (out / f"frame_{saved:04d}.jpg").write_bytes(frame)
            saved += 1
        return saved

    saved = _run_session(ctx, address, port, stream_path, action)
    click.echo(f"Saved {saved} frame(s) to {out}")
    if saved < count:
        ctx.exit(1)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Host to listen on")
@click.option("--port", "-p", default=8080, show_default=True, help="Port to listen on")
@click.option("--status-code", default=200, show_default=True, help="HTTP status every endpoint answers with")
@click.option("--delay", default=0.0, show_default=True, help="Seconds to wait before answering")
def emulate(host, port, status_code, delay):
    """Run an emulated camera on this machine."""

    async def serve():
        emulator = CameraEmulator(host=host, port=port, status_code=status_code, delay=delay)
        url = await emulator.start()
        click.echo(f"Emulated camera at {url} (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            await emulator.shutdown()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        click.echo("Stopped")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
