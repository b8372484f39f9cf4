"""Local HTTP server that speaks the ESP32-CAM control protocol."""

import asyncio
import logging
from typing import Optional

from aiohttp import web

logger = logging.getLogger(__name__)

STREAM_BOUNDARY = "frame"

# JPEG SOI/APP0/EOI markers around a marker payload; enough for clients that
# sniff the format, not a decodable picture.
PLACEHOLDER_JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00camlink-emulator\xff\xd9"


class CameraEmulator:
    """Emulated camera for development and tests.

    ``status_code`` is returned by every control endpoint, ``delay`` is
    slept before answering, so a large value makes the device look hung.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        status_code: int = 200,
        delay: float = 0.0,
        image: bytes = PLACEHOLDER_JPEG,
        frame_interval: float = 0.05,
    ):
        self.host = host
        self._port = port
        self.status_code = status_code
        self.delay = delay
        self.image = image
        self.frame_interval = frame_interval
        self.streaming = False
        self.requests: list[tuple[str, str]] = []
        self._runner: Optional[web.AppRunner] = None

    @property
    def port(self) -> int:
        """Bound port; resolves an ephemeral ``port=0`` once started."""
        if self._runner and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self._port

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def start(self) -> str:
        """Start serving. Returns the base URL of the emulated device."""
        app = web.Application()
        app.router.add_get("/status", self._handle_status)
        app.router.add_post("/start-stream", self._handle_start_stream)
        app.router.add_post("/stop-stream", self._handle_stop_stream)
        app.router.add_get("/capture", self._handle_capture)
        app.router.add_get("/stream", self._handle_stream)

        # Drop handlers whose client hung up so a "hung" device shuts down fast.
        self._runner = web.AppRunner(app, handler_cancellation=True, shutdown_timeout=1.0)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self._port)
        await site.start()
        logger.info("Camera emulator listening at %s", self.base_url)
        return self.base_url

    async def _answer(self, request: web.Request) -> Optional[web.Response]:
        self.requests.append((request.method, request.path))
        if self.delay:
            await asyncio.sleep(self.delay)
        if not 200 <= self.status_code < 300:
            return web.Response(status=self.status_code)
        return None

    async def _handle_status(self, request: web.Request) -> web.Response:
        failure = await self._answer(request)
        if failure is not None:
            return failure
        return web.json_response({"streaming": self.streaming})

    async def _handle_start_stream(self, request: web.Request) -> web.Response:
        failure = await self._answer(request)
        if failure is not None:
            return failure
        self.streaming = True
        return web.Response(text="OK")

    async def _handle_stop_stream(self, request: web.Request) -> web.Response:
        failure = await self._answer(request)
        if failure is not None:
            return failure
        self.streaming = False
        return web.Response(text="OK")

    async def _handle_capture(self, request: web.Request) -> web.Response:
        failure = await self._answer(request)
        if failure is not None:
            return failure
        return web.Response(body=self.image, content_type="image/jpeg")

    async def _handle_stream(self, request: web.Request) -> web.StreamResponse:
        failure = await self._answer(request)
        if failure is not None:
            return failure

        response = web.StreamResponse(
            status=200,
            headers={"Content-Type": f"multipart/x-mixed-replace; boundary={STREAM_BOUNDARY}"},
        )
        await response.prepare(request)
        try:
            while True:
                await response.write(
                    f"--{STREAM_BOUNDARY}\r\n"
                    f"Content-Type: image/jpeg\r\n"
                    f"Content-Length: {len(self.image)}\r\n\r\n".encode()
                )
                await response.write(self.image + b"\r\n")
                await asyncio.sleep(self.frame_interval)
        except ConnectionResetError:
            logger.debug("Stream client went away")
        return response

    async def shutdown(self):
        """Stop the emulator."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Camera emulator stopped")
