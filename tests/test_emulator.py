import pytest
import aiohttp

from camlink.emulator import PLACEHOLDER_JPEG, CameraEmulator


@pytest.mark.asyncio
async def test_emulator_binds_ephemeral_port():
    emulator = CameraEmulator()
    url = await emulator.start()
    assert emulator.port != 0
    assert url == f"http://127.0.0.1:{emulator.port}"
    await emulator.shutdown()


@pytest.mark.asyncio
async def test_emulator_serves_protocol(camera):
    async with aiohttp.ClientSession() as session:
        async with session.get(f"{camera.base_url}/status") as resp:
            assert resp.status == 200
        async with session.post(f"{camera.base_url}/start-stream") as resp:
            assert resp.status == 200
        assert camera.streaming is True
        async with session.get(f"{camera.base_url}/capture") as resp:
            assert resp.content_type == "image/jpeg"
            assert await resp.read() == PLACEHOLDER_JPEG
        async with session.post(f"{camera.base_url}/stop-stream") as resp:
            assert resp.status == 200
        assert camera.streaming is False

    assert [path for _, path in camera.requests] == [
        "/status", "/start-stream", "/capture", "/stop-stream",
    ]


@pytest.mark.asyncio
async def test_emulator_status_code_override(camera):
    camera.status_code = 404
    async with aiohttp.ClientSession() as session:
        async with session.get(f"{camera.base_url}/status") as resp:
            assert resp.status == 404
        async with session.post(f"{camera.base_url}/start-stream") as resp:
            assert resp.status == 404
    assert camera.streaming is False


@pytest.mark.asyncio
async def test_emulator_stream_is_multipart(camera):
    async with aiohttp.ClientSession() as session:
        async with session.get(f"{camera.base_url}/stream") as resp:
            assert resp.status == 200
            assert resp.content_type == "multipart/x-mixed-replace"
            first_line = await resp.content.readline()
            assert first_line == b"--frame\r\n"


@pytest.mark.asyncio
async def test_emulator_shutdown_is_idempotent():
    emulator = CameraEmulator()
    await emulator.start()
    await emulator.shutdown()
    await emulator.shutdown()  # should not raise
