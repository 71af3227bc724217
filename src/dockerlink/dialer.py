"""
Unix socket dialer

Stands in for the resolve-then-connect sequence of a TCP client: the
sentinel hostname resolves to loopback, and the actual connection goes
to the socket file carried in the encoded target.
"""

import errno
import logging
import os
import socket
import stat
from typing import Union

from . import codec
from .codec import EncodedTarget
from .exceptions import SocketConnectionError, SocketPermissionError, UnknownHostError

logger = logging.getLogger(__name__)

LOOPBACK_ADDRESS = '127.0.0.1'


class UnixDialer:
    """Resolves the sentinel host and opens Unix stream sockets"""

    def __init__(self, sentinel_host: str = codec.SENTINEL_HOST):
        self.sentinel_host = sentinel_host

    def resolve(self, hostname: str) -> str:
        """
        Resolve hostname to an address

        Args:
            hostname: Host taken from the request URL

        Returns:
            Loopback address for the sentinel host

        Raises:
            UnknownHostError: For any other hostname
        """
        if hostname != self.sentinel_host:
            raise UnknownHostError(f"Unknown host: {hostname}")
        return LOOPBACK_ADDRESS

    def connect(self, target: Union[EncodedTarget, str]) -> socket.socket:
        """
        Open a stream connection to the socket named by target

        Args:
            target: EncodedTarget or encoded URL

        Returns:
            Connected socket, owned by the caller

        Raises:
            SocketConnectionError: Socket file missing, not a socket, or refused
            SocketPermissionError: Access denied
        """
        if isinstance(target, str):
            target = EncodedTarget.from_url(target)
        socket_path = target.socket_path

        self._check_socket_file(socket_path)

        logger.debug(f"Dialing {socket_path}")
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(socket_path)
        except PermissionError as e:
            sock.close()
            raise SocketPermissionError(socket_path, e.strerror or str(e)) from e
        except OSError as e:
            sock.close()
            raise SocketConnectionError(socket_path, e.strerror or str(e)) from e

        return sock

    @staticmethod
    def _check_socket_file(socket_path: str):
        try:
            mode = os.stat(socket_path).st_mode
        except PermissionError as e:
            raise SocketPermissionError(socket_path, e.strerror or str(e)) from e
        except OSError as e:
            raise SocketConnectionError(socket_path, e.strerror or str(e)) from e

        if not stat.S_ISSOCK(mode):
            raise SocketConnectionError(socket_path, os.strerror(errno.ENOTSOCK))
