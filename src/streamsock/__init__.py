"""Blocking TCP stream client with timed, byte-exact I/O."""

from streamsock.config.settings import ClientConfig
from streamsock.exceptions import (
    AlreadyOpenError,
    ConnectFailedError,
    ErrorKind,
    FlushFailedError,
    InvalidHostError,
    InvalidPortError,
    NotOpenError,
    OpenError,
    ReadFailedError,
    ReadTimeoutError,
    StreamClientError,
    TransportIOError,
    WriteFailedError,
    WriteTimeoutError,
)
from streamsock.transports.tcp.sync_client import (
    StreamClient,
    TimeoutMode,
    close_all_persistent,
    close_persistent,
)
from streamsock.transports.tcp.sync_server import SyncTCPServer

__version__ = "0.1.0"
__all__ = [
    "StreamClient",
    "SyncTCPServer",
    "TimeoutMode",
    "ClientConfig",
    "close_persistent",
    "close_all_persistent",
    "ErrorKind",
    "StreamClientError",
    "OpenError",
    "AlreadyOpenError",
    "InvalidHostError",
    "InvalidPortError",
    "ConnectFailedError",
    "NotOpenError",
    "TransportIOError",
    "ReadTimeoutError",
    "ReadFailedError",
    "WriteTimeoutError",
    "WriteFailedError",
    "FlushFailedError",
    "__version__",
]
