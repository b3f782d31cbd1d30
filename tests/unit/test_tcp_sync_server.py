"""Unit tests for transports.tcp.sync_server module."""

import pytest
import socket
from unittest.mock import Mock, patch

from streamsock.transports.tcp.sync_client import StreamClient, TimeoutMode
from streamsock.transports.tcp.sync_server import SyncTCPServer


def create_mock_listener():
    """Create a listening socket double bound to 0.0.0.0:8080."""
    mock_socket = Mock()
    mock_socket.getsockname.return_value = ("0.0.0.0", 8080)
    return mock_socket


class TestSyncTCPServer:
    """Test suite for SyncTCPServer."""

    def test_initialization(self):
        """Test server initialization."""
        server = SyncTCPServer("0.0.0.0", 8080)

        assert server.host == "0.0.0.0"
        assert server.port == 8080
        assert server.backlog == 5
        assert server.socket is None
        assert server.address == ("0.0.0.0", 8080)

    @patch("socket.socket")
    def test_start(self, mock_socket_class):
        """Test starting the server."""
        mock_socket = create_mock_listener()
        mock_socket_class.return_value = mock_socket

        server = SyncTCPServer("0.0.0.0", 8080, backlog=16)
        server.start()

        mock_socket_class.assert_called_once_with(socket.AF_INET, socket.SOCK_STREAM)
        mock_socket.setsockopt.assert_called_once_with(
            socket.SOL_SOCKET, socket.SO_REUSEADDR, 1
        )
        mock_socket.bind.assert_called_once_with(("0.0.0.0", 8080))
        mock_socket.listen.assert_called_once_with(16)

    @patch("socket.socket")
    def test_address_after_start(self, mock_socket_class):
        """Test the bound address comes from the listening socket."""
        mock_socket = create_mock_listener()
        mock_socket.getsockname.return_value = ("127.0.0.1", 51515)
        mock_socket_class.return_value = mock_socket

        server = SyncTCPServer("127.0.0.1", 0)
        server.start()

        assert server.address == ("127.0.0.1", 51515)

    @patch("socket.socket")
    def test_accept(self, mock_socket_class):
        """Test accepting a connection returns an attached client."""
        mock_socket = create_mock_listener()
        mock_peer = Mock()
        mock_peer.fileno.return_value = 9
        mock_socket.accept.return_value = (mock_peer, ("127.0.0.1", 54321))
        mock_socket_class.return_value = mock_socket

        server = SyncTCPServer("0.0.0.0", 8080)
        server.start()
        client = server.accept(timeout=2.0)

        mock_socket.settimeout.assert_called_once_with(2.0)
        mock_peer.settimeout.assert_called_once_with(None)
        assert isinstance(client, StreamClient)
        assert client.host == "127.0.0.1"
        assert client.port == 54321
        assert client.persistent is False
        assert client.is_open() is True
        assert client.timeout_mode is None

    @patch("socket.socket")
    def test_accepted_client_reads(self, mock_socket_class):
        """Test an accepted client applies its own receive timeout."""
        mock_socket = create_mock_listener()
        mock_peer = Mock()
        mock_peer.recv.return_value = b"data"
        mock_socket.accept.return_value = (mock_peer, ("127.0.0.1", 54321))
        mock_socket_class.return_value = mock_socket

        server = SyncTCPServer("0.0.0.0", 8080)
        server.start()
        client = server.accept()
        mock_peer.settimeout.reset_mock()

        assert client.read_exact(4) == b"data"
        mock_peer.settimeout.assert_called_once_with(0.75)
        assert client.timeout_mode is TimeoutMode.RECV

    @patch("socket.socket")
    def test_accept_timeout(self, mock_socket_class):
        """Test accept propagates the listener timeout."""
        mock_socket = create_mock_listener()
        mock_socket.accept.side_effect = socket.timeout("timed out")
        mock_socket_class.return_value = mock_socket

        server = SyncTCPServer("0.0.0.0", 8080)
        server.start()

        with pytest.raises(socket.timeout):
            server.accept(timeout=0.01)

    def test_accept_not_started(self):
        """Test accepting before start raises error."""
        server = SyncTCPServer("0.0.0.0", 8080)

        with pytest.raises(ConnectionError, match="Not listening"):
            server.accept()

    @patch("socket.socket")
    def test_stop(self, mock_socket_class):
        """Test stopping the server."""
        mock_socket = create_mock_listener()
        mock_socket_class.return_value = mock_socket

        server = SyncTCPServer("0.0.0.0", 8080)
        server.start()
        server.stop()

        mock_socket.close.assert_called_once()
        assert server.socket is None

    def test_stop_not_started(self):
        """Test stopping when not started does nothing."""
        server = SyncTCPServer("0.0.0.0", 8080)
        server.stop()

        assert server.socket is None

    @patch("socket.socket")
    def test_context_manager(self, mock_socket_class):
        """Test using server as context manager."""
        mock_socket = create_mock_listener()
        mock_socket_class.return_value = mock_socket

        with SyncTCPServer("0.0.0.0", 8080) as server:
            assert server.socket is mock_socket

        mock_socket.listen.assert_called_once()
        mock_socket.close.assert_called_once()
