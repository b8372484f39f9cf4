from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ConnectionStatus:
    """Session state of the camera link. Callers only ever see copies."""

    connected: bool = False
    streaming: bool = False
    signal_strength: int = 0
    address: str = ""
    last_connected_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "connected": self.connected,
            "streaming": self.streaming,
            "signal_strength": self.signal_strength,
            "address": self.address,
            "last_connected_at": (
                self.last_connected_at.isoformat() if self.last_connected_at else None
            ),
        }
