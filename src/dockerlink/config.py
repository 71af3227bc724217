"""
Docker socket location
"""

import logging
import os
import platform
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = '/var/run/docker.sock'
MACOS_SOCKET_PATH = '~/.docker/run/docker.sock'
UNIX_SCHEME = 'unix://'


def resolve_socket_path(base_url: Optional[str] = None) -> str:
    """
    Pick the Docker control socket

    Order: explicit base_url, DOCKER_HOST (unix:// only), the Docker
    Desktop socket on macOS, then /var/run/docker.sock. The path is not
    checked for existence here; dialing reports a missing socket.

    Args:
        base_url: Socket path, with or without the unix:// prefix

    Returns:
        Filesystem path of the socket
    """
    if base_url:
        return _strip_scheme(base_url)

    docker_host = os.environ.get('DOCKER_HOST', '')
    if docker_host.startswith(UNIX_SCHEME):
        return _strip_scheme(docker_host)
    if docker_host:
        logger.warning(f"Ignoring non-unix DOCKER_HOST: {docker_host}")

    if platform.system() == 'Darwin':
        desktop_socket = os.path.expanduser(MACOS_SOCKET_PATH)
        if os.path.exists(desktop_socket):
            return desktop_socket

    return DEFAULT_SOCKET_PATH


def _strip_scheme(url: str) -> str:
    if url.startswith(UNIX_SCHEME):
        return url[len(UNIX_SCHEME):]
    return url
