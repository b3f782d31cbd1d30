"""Stream client configuration settings."""

from dataclasses import dataclass


@dataclass
class ClientConfig:
    """Stream client configuration."""

    host: str = "localhost"
    port: int = 9090
    persistent: bool = False

    # Timeouts in milliseconds
    connect_timeout_ms: int = 1000
    send_timeout_ms: int = 100
    recv_timeout_ms: int = 750
