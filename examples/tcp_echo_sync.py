"""Example: length-prefixed echo over a blocking StreamClient."""

import logging
import struct
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from streamsock import ReadFailedError, StreamClient, SyncTCPServer


def run_server():
    """Echo every frame back to the peer that sent it."""
    server = SyncTCPServer("127.0.0.1", 8888)
    server.start()
    try:
        while True:
            peer = server.accept()
            peer.set_recv_timeout(0)
            try:
                while True:
                    header = peer.read_exact(4)
                    (size,) = struct.unpack(">I", header)
                    peer.write(header + peer.read_exact(size))
            except ReadFailedError:
                print(f"{peer.host}:{peer.port} disconnected")
            finally:
                peer.close()
    except KeyboardInterrupt:
        print("\nShutting down server...")
    finally:
        server.stop()


def run_client():
    """Send one frame and wait for the echo."""
    with StreamClient("127.0.0.1", 8888) as client:
        message = b"Hello, Server!"
        print(f"Sending: {message.decode()}")
        client.write(struct.pack(">I", len(message)) + message)
        client.flush()
        (size,) = struct.unpack(">I", client.read_exact(4))
        print(f"Received: {client.read_exact(size).decode()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    if len(sys.argv) > 1 and sys.argv[1] == "client":
        run_client()
    else:
        run_server()
