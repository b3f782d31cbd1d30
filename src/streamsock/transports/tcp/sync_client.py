"""Synchronous TCP stream client with per-direction timeouts."""

import logging
import socket
import threading
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from streamsock.config.settings import ClientConfig
from streamsock.exceptions import (
    AlreadyOpenError,
    ConnectFailedError,
    FlushFailedError,
    InvalidHostError,
    InvalidPortError,
    NotOpenError,
    ReadFailedError,
    ReadTimeoutError,
    StreamClientError,
    WriteFailedError,
    WriteTimeoutError,
)

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class TimeoutMode(Enum):
    """Which deadline is currently configured on the handle."""

    SEND = "send"
    RECV = "recv"


class _HandleState:
    """A socket and the timeout mode last applied to it."""

    def __init__(self, handle: socket.socket):
        self.handle = handle
        self.timeout_mode: Optional[TimeoutMode] = None


# Handles kept alive across client lifetimes, keyed by (host, port). Clients
# sharing an entry also share its timeout mode.
_persistent_handles: Dict[Tuple[str, int], _HandleState] = {}
_persistent_lock = threading.Lock()


def _to_seconds(timeout_ms: int) -> Optional[float]:
    # socket timeouts of 0 mean non-blocking, so 0 ms maps to "no deadline"
    if timeout_ms <= 0:
        return None
    return timeout_ms / 1000.0


def _is_valid(handle: Optional[socket.socket]) -> bool:
    return handle is not None and handle.fileno() != -1


def _is_alive(handle: socket.socket) -> bool:
    """
    Check without blocking that the peer has not closed the connection.

    Leaves the socket non-blocking; callers apply a timeout afterwards.
    """
    if not _is_valid(handle):
        return False
    handle.setblocking(False)
    try:
        data = handle.recv(1, socket.MSG_PEEK)
    except BlockingIOError:
        return True
    except OSError:
        return False
    return bool(data)


def close_persistent(host: str, port: int) -> bool:
    """
    Close the persistent handle registered for host:port.

    Args:
        host: Remote hostname or IP
        port: Remote port

    Returns:
        True if a handle was registered and has been closed
    """
    with _persistent_lock:
        state = _persistent_handles.pop((host, port), None)
    if state is None:
        return False
    state.handle.close()
    logger.debug("Closed persistent connection to %s:%d", host, port)
    return True


def close_all_persistent() -> int:
    """
    Close every registered persistent handle.

    Returns:
        Number of handles closed
    """
    with _persistent_lock:
        states = list(_persistent_handles.items())
        _persistent_handles.clear()
    for (host, port), state in states:
        state.handle.close()
        logger.debug("Closed persistent connection to %s:%d", host, port)
    return len(states)


class StreamClient:
    """
    Blocking TCP client with separate connect, send and receive timeouts.

    The socket carries a single timeout shared by both directions, so the
    client remembers which one was last applied and switches it before each
    read or write that needs the other. Not safe for concurrent use.
    """

    def __init__(self, host: str = "localhost", port: int = 9090, persistent: bool = False):
        """
        Initialize the client. Does not touch the network.

        Args:
            host: Remote hostname or IP
            port: Remote port
            persistent: Reuse one process-wide connection to host:port and
                keep it open on close()
        """
        self._host = host
        self._port = port
        self._persistent = persistent
        self._connect_timeout_ms = 1000
        self._send_timeout_ms = 100
        self._recv_timeout_ms = 750
        self._state: Optional[_HandleState] = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> "StreamClient":
        """Build a client from a ClientConfig."""
        client = cls(config.host, config.port, persistent=config.persistent)
        client.set_connect_timeout(config.connect_timeout_ms)
        client.set_send_timeout(config.send_timeout_ms)
        client.set_recv_timeout(config.recv_timeout_ms)
        return client

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def persistent(self) -> bool:
        return self._persistent

    @property
    def connect_timeout_ms(self) -> int:
        return self._connect_timeout_ms

    @property
    def send_timeout_ms(self) -> int:
        return self._send_timeout_ms

    @property
    def recv_timeout_ms(self) -> int:
        return self._recv_timeout_ms

    @property
    def timeout_mode(self) -> Optional[TimeoutMode]:
        if self._state is None:
            return None
        return self._state.timeout_mode

    def get_connect_timeout(self) -> int:
        """Get the connect timeout in milliseconds."""
        return self._connect_timeout_ms

    def set_connect_timeout(self, timeout_ms: int) -> None:
        """
        Set the connect timeout used by the next open().

        Args:
            timeout_ms: Timeout in milliseconds, 0 for none
        """
        self._connect_timeout_ms = self._check_timeout(timeout_ms)

    def set_send_timeout(self, timeout_ms: int) -> None:
        """
        Set the send timeout.

        The new value reaches the socket the next time the client switches
        into send mode; an ongoing send mode keeps the previous deadline.

        Args:
            timeout_ms: Timeout in milliseconds, 0 for none
        """
        self._send_timeout_ms = self._check_timeout(timeout_ms)

    def set_recv_timeout(self, timeout_ms: int) -> None:
        """
        Set the receive timeout.

        Like set_send_timeout(), this takes effect on the next switch into
        receive mode.

        Args:
            timeout_ms: Timeout in milliseconds, 0 for none
        """
        self._recv_timeout_ms = self._check_timeout(timeout_ms)

    @staticmethod
    def _check_timeout(timeout_ms: int) -> int:
        # bool is an int subclass but never a meaningful timeout
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
            raise TypeError(
                f"Timeout must be an integer number of milliseconds, got {timeout_ms!r}"
            )
        if timeout_ms < 0:
            raise ValueError(f"Timeout must be non-negative, got {timeout_ms}")
        return timeout_ms

    def set_handle(self, handle: Optional[socket.socket]) -> None:
        """
        Attach an already connected socket, e.g. one returned by accept().

        The client owns the socket from now on. No timeout is applied until
        the first read or write selects one.

        Args:
            handle: Connected socket, or None to detach a dead one

        Raises:
            AlreadyOpenError: If a live socket is already attached
        """
        if self.is_open():
            raise AlreadyOpenError(self._host, self._port)
        self._state = _HandleState(handle) if handle is not None else None

    def is_open(self) -> bool:
        """Return True if a live socket is attached."""
        return self._state is not None and _is_valid(self._state.handle)

    def open(self) -> None:
        """
        Connect to host:port.

        Raises:
            AlreadyOpenError: If the client is already open
            InvalidHostError: If host is empty
            InvalidPortError: If port is not positive
            ConnectFailedError: If the connection could not be established
        """
        if self.is_open():
            raise AlreadyOpenError(self._host, self._port)
        if not self._host:
            raise InvalidHostError(self._host, self._port)
        if self._port <= 0:
            raise InvalidPortError(self._host, self._port)

        if self._persistent:
            self._state = self._open_persistent()
        else:
            self._state = _HandleState(self._connect())
        # Prime send mode straight away, as a first write is the common case
        self._apply_timeout(TimeoutMode.SEND)

    def _open_persistent(self) -> _HandleState:
        key = (self._host, self._port)
        with _persistent_lock:
            state = _persistent_handles.get(key)
            if state is not None:
                if _is_alive(state.handle):
                    logger.debug(
                        "Reusing persistent connection to %s:%d", self._host, self._port
                    )
                    return state
                del _persistent_handles[key]
        if state is not None:
            logger.debug(
                "Replacing dead persistent connection to %s:%d", self._host, self._port
            )
            state.handle.close()

        # Connect without the lock so other endpoints are not held up
        fresh = _HandleState(self._connect())
        with _persistent_lock:
            existing = _persistent_handles.get(key)
            if existing is None or not _is_valid(existing.handle):
                _persistent_handles[key] = fresh
                return fresh
        # Another client registered this endpoint while we were connecting
        fresh.handle.close()
        return existing

    def _connect(self) -> socket.socket:
        try:
            handle = socket.create_connection(
                (self._host, self._port),
                timeout=_to_seconds(self._connect_timeout_ms),
            )
        except OSError as e:
            errstr = e.strerror or str(e) or e.__class__.__name__
            raise self._failed(
                ConnectFailedError(self._host, self._port, e.errno, errstr)
            ) from e
        logger.debug("Connected to %s:%d", self._host, self._port)
        return handle

    def close(self) -> None:
        """Close the connection. Persistent connections are left open."""
        if self._persistent:
            return
        state, self._state = self._state, None
        if state is not None:
            state.handle.close()
            logger.debug("Closed connection to %s:%d", self._host, self._port)

    def write(self, buf: BytesLike) -> None:
        """
        Write the whole buffer, looping over partial sends.

        Args:
            buf: Bytes to send

        Raises:
            NotOpenError: If not connected
            WriteTimeoutError: If the send timeout expired
            WriteFailedError: If the socket accepted nothing or errored
        """
        handle = self._require_handle()
        if self.timeout_mode is not TimeoutMode.SEND:
            self._apply_timeout(TimeoutMode.SEND)

        view = memoryview(buf).cast("B")
        while len(view) > 0:
            try:
                sent = handle.send(view)
            except socket.timeout as e:
                raise self._failed(
                    WriteTimeoutError(self._host, self._port, len(view))
                ) from e
            except OSError as e:
                raise self._failed(
                    WriteFailedError(self._host, self._port, len(view))
                ) from e
            if not sent:
                raise self._failed(WriteFailedError(self._host, self._port, len(view)))
            view = view[sent:]

    def flush(self) -> None:
        """
        Flush output to the socket.

        Writes go straight to the kernel, so this only checks that the
        socket has no pending error.

        Raises:
            NotOpenError: If not connected
            FlushFailedError: If the socket reports an error
        """
        handle = self._require_handle()
        try:
            pending = handle.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except OSError as e:
            raise self._failed(FlushFailedError(self._host, self._port)) from e
        if pending:
            logger.debug("Pending socket error on flush: errno %d", pending)
            raise self._failed(FlushFailedError(self._host, self._port))

    def read(self, length: int) -> bytes:
        """
        Read up to length bytes with a single receive call.

        Args:
            length: Maximum number of bytes to read

        Returns:
            Received bytes, possibly fewer than length

        Raises:
            NotOpenError: If not connected
            ReadTimeoutError: If the receive timeout expired
            ReadFailedError: If the peer closed or the socket errored
        """
        if length < 0:
            raise ValueError(f"Read length must be non-negative, got {length}")
        handle = self._require_handle()
        if length == 0:
            return b""
        if self.timeout_mode is not TimeoutMode.RECV:
            self._apply_timeout(TimeoutMode.RECV)
        return self._recv(handle, length, length)

    def read_exact(self, length: int) -> bytes:
        """
        Read exactly length bytes, accumulating short reads.

        Args:
            length: Number of bytes to read

        Returns:
            Exactly length bytes

        Raises:
            NotOpenError: If not connected
            ReadTimeoutError: If the receive timeout expired before length
                bytes arrived
            ReadFailedError: If the peer closed or the socket errored
        """
        if length < 0:
            raise ValueError(f"Read length must be non-negative, got {length}")
        handle = self._require_handle()
        if length == 0:
            return b""
        if self.timeout_mode is not TimeoutMode.RECV:
            self._apply_timeout(TimeoutMode.RECV)

        data = bytearray()
        remaining = length
        while remaining > 0:
            chunk = self._recv(handle, remaining, length)
            data += chunk
            remaining -= len(chunk)
        return bytes(data)

    def _recv(self, handle: socket.socket, size: int, requested: int) -> bytes:
        # Errors report the length the caller asked for, not what was left
        try:
            data = handle.recv(size)
        except socket.timeout as e:
            raise self._failed(
                ReadTimeoutError(self._host, self._port, requested)
            ) from e
        except OSError as e:
            raise self._failed(
                ReadFailedError(self._host, self._port, requested)
            ) from e
        if not data:
            raise self._failed(ReadFailedError(self._host, self._port, requested))
        return data

    def _require_handle(self) -> socket.socket:
        if not self.is_open():
            raise NotOpenError(self._host, self._port)
        return self._state.handle

    def _apply_timeout(self, mode: TimeoutMode) -> None:
        if mode is TimeoutMode.SEND:
            timeout_ms = self._send_timeout_ms
        else:
            timeout_ms = self._recv_timeout_ms
        self._state.handle.settimeout(_to_seconds(timeout_ms))
        self._state.timeout_mode = mode

    @staticmethod
    def _failed(error: StreamClientError) -> StreamClientError:
        logger.warning("%s", error)
        return error

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
