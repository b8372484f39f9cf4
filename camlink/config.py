from dataclasses import dataclass, field, replace
from typing import Optional

DEFAULT_ADDRESS = "192.168.4.1"  # ESP32-CAM soft-AP address
DEFAULT_PORT = 80
DEFAULT_STREAM_PATH = "/stream"

DEFAULT_SCAN_CANDIDATES = (
    DEFAULT_ADDRESS,
    "192.168.1.100",
    "192.168.1.101",
    "192.168.1.102",
)


@dataclass(frozen=True)
class DeviceConfig:
    """Connection settings for a single camera device."""

    address: str = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    stream_path: str = DEFAULT_STREAM_PATH

    def __post_init__(self):
        if not isinstance(self.address, str) or not self.address.strip():
            raise ValueError("address must be a non-empty string.")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError("port must be an integer.")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if not isinstance(self.stream_path, str) or not self.stream_path.startswith("/"):
            raise ValueError("stream_path must start with '/'.")

    @property
    def base_url(self) -> str:
        return f"http://{self.address}:{self.port}"

    @property
    def stream_url(self) -> str:
        return f"{self.base_url}{self.stream_path}"

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def merged(self, **changes) -> "DeviceConfig":
        """Return a copy with the non-None ``changes`` applied."""
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass
class ClientConfig:
    """Tuning for a CameraLinkClient. Timeouts are in seconds."""

    probe_timeout: float = 5.0
    command_timeout: float = 3.0
    capture_timeout: float = 10.0
    scan_timeout: float = 2.0
    frame_timeout: float = 10.0
    scan_candidates: tuple[str, ...] = field(default=DEFAULT_SCAN_CANDIDATES)
    scan_port: int = DEFAULT_PORT
