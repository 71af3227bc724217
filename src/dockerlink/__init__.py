"""
dockerlink - Docker Engine API client over the daemon's Unix socket
HTTP is carried by http.client; the socket path travels in the URL and
is recovered by the dialer at connect time
"""

from .client import DockerClient
from .codec import SENTINEL_HOST, EncodedTarget, SocketEndpoint, decode, encode
from .containers import Container, ExecResult
from .dialer import UnixDialer
from .exceptions import (
    DockerException,
    InvalidPathError,
    UnknownHostError,
    SocketConnectionError,
    SocketPermissionError,
    TransportError,
    StreamError,
    TruncatedStreamError,
    UnknownStreamTypeError,
    StreamConsumedError,
    APIError,
    ContainerNotFound
)
from .executor import RequestExecutor, Response, build_query
from .frames import DecodedLine, Frame, FrameDemultiplexer, StreamType

__all__ = [
    'DockerClient',
    'SENTINEL_HOST',
    'EncodedTarget',
    'SocketEndpoint',
    'encode',
    'decode',
    'Container',
    'ExecResult',
    'UnixDialer',
    'RequestExecutor',
    'Response',
    'build_query',
    'DecodedLine',
    'Frame',
    'FrameDemultiplexer',
    'StreamType',
    'DockerException',
    'InvalidPathError',
    'UnknownHostError',
    'SocketConnectionError',
    'SocketPermissionError',
    'TransportError',
    'StreamError',
    'TruncatedStreamError',
    'UnknownStreamTypeError',
    'StreamConsumedError',
    'APIError',
    'ContainerNotFound'
]

__version__ = '1.0.0'
