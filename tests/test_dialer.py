import os
import socket
from unittest.mock import MagicMock, patch

import pytest

from dockerlink.codec import SENTINEL_HOST, encode, encode_target
from dockerlink.dialer import LOOPBACK_ADDRESS, UnixDialer
from dockerlink.exceptions import SocketConnectionError, SocketPermissionError, UnknownHostError


@pytest.fixture
def listener(short_tmp):
    path = os.path.join(short_tmp, 'engine.sock')
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.listen(4)
    yield path, server
    server.close()


def test_resolve_sentinel_is_loopback():
    assert UnixDialer().resolve(SENTINEL_HOST) == LOOPBACK_ADDRESS


@pytest.mark.parametrize('hostname', ['localhost', 'example.com', ''])
def test_resolve_other_hosts_fails(hostname):
    with pytest.raises(UnknownHostError):
        UnixDialer().resolve(hostname)


def test_connect_opens_unix_stream(listener):
    path, server = listener

    sock = UnixDialer().connect(encode_target(path, '/info'))
    try:
        peer, _ = server.accept()
        sock.sendall(b'ping')
        assert peer.recv(4) == b'ping'
        peer.close()
        assert sock.family == socket.AF_UNIX
    finally:
        sock.close()


def test_connect_accepts_encoded_url(listener):
    path, server = listener

    sock = UnixDialer().connect(encode(path, '/containers/json'))
    sock.close()


def test_connect_missing_socket(short_tmp):
    missing = os.path.join(short_tmp, 'nope.sock')

    with pytest.raises(ConnectionError) as exc_info:
        UnixDialer().connect(encode_target(missing, '/info'))

    assert isinstance(exc_info.value, SocketConnectionError)
    assert exc_info.value.socket_path == missing


def test_connect_regular_file(short_tmp):
    path = os.path.join(short_tmp, 'not-a-socket')
    with open(path, 'w') as f:
        f.write('plain file')

    with pytest.raises(ConnectionError):
        UnixDialer().connect(encode_target(path, '/info'))


def test_connect_refused(short_tmp):
    path = os.path.join(short_tmp, 'stale.sock')
    stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    stale.bind(path)
    stale.close()

    with pytest.raises(SocketConnectionError):
        UnixDialer().connect(encode_target(path, '/info'))


def test_connect_permission_denied_closes_socket(listener):
    path, _ = listener
    fake_sock = MagicMock()
    fake_sock.connect.side_effect = PermissionError(13, 'Permission denied')

    with patch('dockerlink.dialer.socket.socket', return_value=fake_sock):
        with pytest.raises(PermissionError) as exc_info:
            UnixDialer().connect(encode_target(path, '/info'))

    assert isinstance(exc_info.value, SocketPermissionError)
    fake_sock.close.assert_called_once()


def test_stat_permission_denied(listener):
    path, _ = listener

    with patch('dockerlink.dialer.os.stat', side_effect=PermissionError(13, 'Permission denied')):
        with pytest.raises(SocketPermissionError):
            UnixDialer().connect(encode_target(path, '/info'))
