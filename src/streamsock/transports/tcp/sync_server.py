"""Synchronous TCP listener that hands out accepted connections as clients."""

import logging
import socket
from typing import Optional, Tuple

from streamsock.transports.tcp.sync_client import StreamClient

logger = logging.getLogger(__name__)


class SyncTCPServer:
    """Blocking TCP listener. Each accepted connection becomes a StreamClient."""

    def __init__(self, host: str, port: int, backlog: int = 5):
        """
        Initialize TCP server.

        Args:
            host: Bind hostname or IP
            port: Bind port, 0 for an ephemeral port
            backlog: Listen queue length
        """
        self.host = host
        self.port = port
        self.backlog = backlog
        self.socket: Optional[socket.socket] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once started on port 0."""
        if self.socket is None:
            return (self.host, self.port)
        return self.socket.getsockname()[:2]

    def start(self) -> None:
        """Bind and start listening."""
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind((self.host, self.port))
        self.socket.listen(self.backlog)
        logger.info("Server listening on %s:%d", *self.address)

    def accept(self, timeout: Optional[float] = None) -> StreamClient:
        """
        Accept one connection.

        Args:
            timeout: Seconds to wait for a peer, None to wait forever

        Returns:
            Non-persistent StreamClient with the peer socket attached

        Raises:
            ConnectionError: If the server is not started
            socket.timeout: If no peer connected in time
        """
        if not self.socket:
            raise ConnectionError("Not listening")
        self.socket.settimeout(timeout)
        peer_socket, peer_address = self.socket.accept()
        # Accepted sockets inherit the listener's timeout; start them blocking
        peer_socket.settimeout(None)
        logger.debug("Accepted connection from %s:%d", *peer_address[:2])

        client = StreamClient(peer_address[0], peer_address[1])
        client.set_handle(peer_socket)
        return client

    def stop(self) -> None:
        """Stop listening."""
        if self.socket:
            self.socket.close()
            self.socket = None

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()
