import pytest
import pytest_asyncio

from camlink import CameraLinkClient, ClientConfig
from camlink.emulator import CameraEmulator


@pytest.fixture
def fast_config():
    return ClientConfig(
        probe_timeout=0.5,
        command_timeout=0.5,
        capture_timeout=0.5,
        scan_timeout=0.5,
        frame_timeout=1.0,
    )


@pytest_asyncio.fixture
async def camera():
    emulator = CameraEmulator()
    await emulator.start()
    yield emulator
    await emulator.shutdown()


@pytest_asyncio.fixture
async def client(fast_config):
    client = CameraLinkClient(fast_config)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def connected(client, camera):
    assert await client.connect(address=camera.host, port=camera.port)
    return client
