"""camlink - discovery and control client for ESP32-CAM network cameras."""

from .client import CameraLinkClient
from .config import ClientConfig, DeviceConfig
from .status import ConnectionStatus

__version__ = "0.1.0"
__all__ = ["CameraLinkClient", "ClientConfig", "DeviceConfig", "ConnectionStatus"]
