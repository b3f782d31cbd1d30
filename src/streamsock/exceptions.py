"""Errors raised by stream clients."""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Category of a stream client failure."""

    ALREADY_OPEN = "already_open"
    INVALID_HOST = "invalid_host"
    INVALID_PORT = "invalid_port"
    CONNECT_FAILED = "connect_failed"
    NOT_OPEN = "not_open"
    READ_TIMEOUT = "read_timeout"
    READ_FAILED = "read_failed"
    WRITE_TIMEOUT = "write_timeout"
    WRITE_FAILED = "write_failed"
    FLUSH_FAILED = "flush_failed"


class StreamClientError(Exception):
    """
    Base class for all stream client errors.

    Every error carries the remote endpoint it concerns and an ErrorKind,
    so callers can branch on ``err.kind`` instead of the exception class.
    """

    kind: ErrorKind

    def __init__(self, message: str, host: str = "", port: int = 0):
        super().__init__(message)
        self.host = host
        self.port = port


class OpenError(StreamClientError):
    """Failure while opening a connection."""


class AlreadyOpenError(OpenError):
    kind = ErrorKind.ALREADY_OPEN

    def __init__(self, host: str, port: int):
        super().__init__(f"Socket already connected to {host}:{port}", host, port)


class InvalidHostError(OpenError):
    kind = ErrorKind.INVALID_HOST

    def __init__(self, host: str, port: int):
        super().__init__("Cannot open null host", host, port)


class InvalidPortError(OpenError):
    kind = ErrorKind.INVALID_PORT

    def __init__(self, host: str, port: int):
        super().__init__(f"Cannot open without port (got {port})", host, port)


class ConnectFailedError(OpenError):
    """The underlying connect failed or timed out."""

    kind = ErrorKind.CONNECT_FAILED

    def __init__(
        self, host: str, port: int, errno: Optional[int], errstr: str
    ):
        super().__init__(
            f"Could not connect to {host}:{port} ({errstr} [{errno}])", host, port
        )
        self.errno = errno
        self.errstr = errstr


class NotOpenError(StreamClientError):
    kind = ErrorKind.NOT_OPEN

    def __init__(self, host: str, port: int):
        super().__init__(f"Not connected to {host}:{port}", host, port)


class TransportIOError(StreamClientError):
    """
    Failure of a read, write or flush on an open connection.

    ``length`` is the requested length for reads and the number of bytes
    still unwritten for writes.
    """

    def __init__(self, message: str, host: str, port: int, length: int = 0):
        super().__init__(message, host, port)
        self.length = length


class ReadTimeoutError(TransportIOError):
    kind = ErrorKind.READ_TIMEOUT

    def __init__(self, host: str, port: int, length: int):
        super().__init__(
            f"Timed out reading {length} bytes from {host}:{port}", host, port, length
        )


class ReadFailedError(TransportIOError):
    kind = ErrorKind.READ_FAILED

    def __init__(self, host: str, port: int, length: int):
        super().__init__(
            f"Could not read {length} bytes from {host}:{port}", host, port, length
        )


class WriteTimeoutError(TransportIOError):
    kind = ErrorKind.WRITE_TIMEOUT

    def __init__(self, host: str, port: int, length: int):
        super().__init__(
            f"Timed out writing {length} bytes to {host}:{port}", host, port, length
        )


class WriteFailedError(TransportIOError):
    kind = ErrorKind.WRITE_FAILED

    def __init__(self, host: str, port: int, length: int):
        super().__init__(
            f"Could not write {length} bytes to {host}:{port}", host, port, length
        )


class FlushFailedError(TransportIOError):
    kind = ErrorKind.FLUSH_FAILED

    def __init__(self, host: str, port: int):
        super().__init__(f"Could not flush: {host}:{port}", host, port)
