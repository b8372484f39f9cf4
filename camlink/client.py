"""HTTP control client for ESP32-CAM style network cameras."""

import asyncio
import base64
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import AsyncIterator, NamedTuple, Optional

import aiohttp

from .config import ClientConfig, DeviceConfig
from .status import ConnectionStatus

logger = logging.getLogger(__name__)

STATUS_PATH = "/status"
START_STREAM_PATH = "/start-stream"
STOP_STREAM_PATH = "/stop-stream"
CAPTURE_PATH = "/capture"

DEFAULT_IMAGE_MIME = "image/jpeg"

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class _Reply(NamedTuple):
    status: int
    content_type: str
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def encode_data_uri(data: bytes, mime_type: str = DEFAULT_IMAGE_MIME) -> str:
    """Wrap raw image bytes in a self-describing ``data:`` URI."""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


class CameraLinkClient:
    """Session with a single network camera reachable over HTTP.

    Every network operation is fail-soft: timeouts, transport errors and
    non-2xx replies come back as ``False``/``None`` and are logged.

    Operations are meant to be awaited one at a time. Starting a request
    cancels whatever request the session still has in flight, and two
    racing ``connect`` calls leave whichever finished last in place.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()
        self._device: Optional[DeviceConfig] = None
        self._status = ConnectionStatus()
        self._stream_url: Optional[str] = None
        self._inflight: Optional[asyncio.Task] = None
        self._stream_step: Optional[asyncio.Task] = None
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "CameraLinkClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Session ---

    async def connect(self, config: Optional[DeviceConfig] = None, **overrides) -> bool:
        """Probe the device and enter the connected state on an HTTP 2xx.

        ``overrides`` (address, port, username, password, stream_path) are
        merged over ``config``, or over the built-in defaults when no config
        is given. Invalid values raise ``ValueError``.
        """
        device = (config or DeviceConfig()).merged(**overrides)

        self._clear_session_state()
        self._device = device

        reply = await self._request("GET", STATUS_PATH, self.config.probe_timeout)
        if self._device is not device:
            # Superseded by another connect() or by disconnect().
            return False
        if reply is None:
            return False
        if not reply.ok:
            logger.warning("Camera at %s answered probe with HTTP %d", device.base_url, reply.status)
            return False

        self._status.connected = True
        self._status.address = device.address
        self._status.last_connected_at = datetime.now(timezone.utc)
        self._stream_url = device.stream_url
        logger.info("Connected to camera at %s", device.base_url)
        return True

    async def disconnect(self) -> None:
        """Abort any in-flight request and drop the session. Safe to repeat."""
        was_connected = self._status.connected
        self._cancel_inflight()
        self._cancel_stream()
        self._clear_session_state()
        self._device = None
        if was_connected:
            logger.info("Disconnected from camera")

    async def close(self) -> None:
        await self.disconnect()
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # --- Commands ---

    async def start_streaming(self) -> bool:
        if not self._require_connected("start streaming"):
            return False
        reply = await self._request("POST", START_STREAM_PATH, self.config.command_timeout)
        if not self._command_succeeded(reply, "start-stream"):
            return False
        self._status.streaming = True
        logger.info("Camera streaming started")
        return True

    async def stop_streaming(self) -> bool:
        if not self._require_connected("stop streaming"):
            return False
        reply = await self._request("POST", STOP_STREAM_PATH, self.config.command_timeout)
        if not self._command_succeeded(reply, "stop-stream"):
            return False
        self._status.streaming = False
        logger.info("Camera streaming stopped")
        return True

    async def capture_photo(self) -> Optional[str]:
        """Trigger a capture and return the URL the still can be fetched from."""
        reply = await self._capture(read_body=False)
        if reply is None:
            return None
        return self._device.url_for(CAPTURE_PATH)

    async def capture_photo_bytes(self) -> Optional[bytes]:
        reply = await self._capture(read_body=True)
        if reply is None:
            return None
        return reply.body

    async def capture_photo_base64(self) -> Optional[str]:
        """Fetch a still and return it as a ``data:image/...;base64,`` URI."""
        reply = await self._capture(read_body=True)
        if reply is None:
            return None
        mime_type = reply.content_type if reply.content_type.startswith("image/") else DEFAULT_IMAGE_MIME
        return encode_data_uri(reply.body, mime_type)

    async def iter_frames(self, max_frames: Optional[int] = None) -> AsyncIterator[bytes]:
        """Yield JPEG frames from the device's multipart stream.

        Stops after ``max_frames`` frames, on disconnect, or quietly on any
        transport failure.
        """
        if not self._require_connected("read frames"):
            return
        url = self._stream_url
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.config.frame_timeout)
        count = 0
        try:
            async with self._get_session().get(url, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning("Stream %s answered HTTP %d", url, resp.status)
                    return
                reader = aiohttp.MultipartReader(resp.headers, resp.content)
                while max_frames is None or count < max_frames:
                    part = await self._read_stream(reader.next())
                    if part is None or self._stream_url != url:
                        break
                    frame = await self._read_stream(part.read())
                    if frame is None:
                        break
                    count += 1
                    yield bytes(frame)
        except (*_TRANSPORT_ERRORS, ValueError) as e:
            logger.warning("Stream %s ended after %d frame(s): %s", url, count, e)

    # --- Discovery ---

    async def scan_for_devices(self) -> list[str]:
        """Probe the candidate addresses concurrently.

        Returns the candidates that answered ``/status`` with a 2xx inside
        their own time bound, in candidate order. Never raises.
        """
        candidates = list(self.config.scan_candidates)
        results = await asyncio.gather(
            *(self._probe_candidate(address) for address in candidates),
            return_exceptions=True,
        )
        found = []
        for address, result in zip(candidates, results):
            if isinstance(result, BaseException):
                logger.debug("Probe of %s raised %r", address, result)
            elif result:
                found.append(address)
        logger.info("Scan found %d camera(s): %s", len(found), ", ".join(found) or "none")
        return found

    async def _probe_candidate(self, address: str) -> bool:
        url = f"http://{address}:{self.config.scan_port}{STATUS_PATH}"
        timeout = self.config.scan_timeout
        try:
            reply = await asyncio.wait_for(self._fetch("GET", url, timeout), timeout)
        except _TRANSPORT_ERRORS as e:
            logger.debug("No camera at %s: %s", address, str(e) or type(e).__name__)
            return False
        return reply.ok

    # --- State accessors ---

    def get_status(self) -> ConnectionStatus:
        return replace(self._status)

    def get_config(self) -> Optional[DeviceConfig]:
        return self._device

    def get_stream_url(self) -> Optional[str]:
        return self._stream_url

    def update_config(self, **changes) -> None:
        """Merge ``changes`` into the current device config, if there is one."""
        if self._device is None:
            return
        self._device = self._device.merged(**changes)
        if self._status.connected:
            self._status.address = self._device.address
            self._stream_url = self._device.stream_url

    def update_signal_strength(self, value: float) -> None:
        self._status.signal_strength = max(0, min(100, int(round(value))))

    # --- Internals ---

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _clear_session_state(self) -> None:
        self._status.connected = False
        self._status.streaming = False
        self._stream_url = None

    def _cancel_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

    def _cancel_stream(self) -> None:
        if self._stream_step is not None and not self._stream_step.done():
            self._stream_step.cancel()
        self._stream_step = None

    async def _read_stream(self, read):
        """Await one stream read as a task that ``disconnect()`` can cancel.

        Returns None when the read was cancelled that way.
        """
        task = asyncio.ensure_future(read)
        self._stream_step = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._stream_step is task:
                self._stream_step = None
        if task.cancelled():
            return None
        return task.result()

    def _require_connected(self, action: str) -> bool:
        if not self._status.connected or self._device is None:
            logger.warning("Camera not connected; cannot %s", action)
            return False
        return True

    def _command_succeeded(self, reply: Optional[_Reply], command: str) -> bool:
        if reply is None:
            return False
        if not reply.ok:
            logger.warning("Camera rejected %s with HTTP %d", command, reply.status)
            return False
        # A disconnect() racing the reply wins.
        return self._status.connected

    async def _capture(self, read_body: bool) -> Optional[_Reply]:
        if not self._require_connected("capture"):
            return None
        reply = await self._request(
            "GET", CAPTURE_PATH, self.config.capture_timeout, read_body=read_body,
        )
        if not self._command_succeeded(reply, "capture"):
            return None
        return reply

    async def _fetch(self, method: str, url: str, timeout: float, read_body: bool = False) -> _Reply:
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        async with self._get_session().request(method, url, timeout=client_timeout) as resp:
            body = b""
            if read_body and 200 <= resp.status < 300:
                body = await resp.read()
            return _Reply(resp.status, resp.content_type, body)

    async def _request(
        self, method: str, path: str, timeout: float, read_body: bool = False,
    ) -> Optional[_Reply]:
        """Run a request as the session's single in-flight operation.

        The request task is the cancellation handle: it is cancelled when the
        bound elapses, when a newer request starts, or by ``disconnect()``.
        All of those, and transport errors, come back as ``None``.
        """
        url = self._device.url_for(path)
        self._cancel_inflight()
        task = asyncio.ensure_future(self._fetch(method, url, timeout, read_body))
        self._inflight = task
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.warning("%s %s timed out after %.1fs", method, url, timeout)
            return None
        if task.cancelled():
            logger.info("%s %s was cancelled", method, url)
            return None
        exc = task.exception()
        if isinstance(exc, asyncio.TimeoutError):
            logger.warning("%s %s timed out after %.1fs", method, url, timeout)
            return None
        if isinstance(exc, _TRANSPORT_ERRORS):
            logger.warning("%s %s failed: %s", method, url, exc)
            return None
        if exc is not None:
            logger.error("Unexpected error during %s %s", method, url, exc_info=exc)
            return None
        return task.result()
