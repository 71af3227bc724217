"""
Socket path codec

Packs a Unix socket path and a logical resource path into one URL that
http.client can parse, and recovers both at dial time.

    encode('/var/run/docker.sock', '/containers/json?all=true')
    -> 'http://docker.sock.localhost/%2Fvar%2Frun%2Fdocker.sock/containers/json?all=true'
"""

from dataclasses import dataclass
from typing import Tuple
from urllib.parse import quote, unquote

from .exceptions import InvalidPathError

SENTINEL_HOST = 'docker.sock.localhost'
SCHEME = 'http'

# RFC 3986 pchar minus '%', so a literal percent sign survives the round trip
_RESOURCE_SAFE = "/:@!$&'()*+,;=-._~"


@dataclass(frozen=True)
class SocketEndpoint:
    """Control socket a client talks to"""

    filesystem_path: str


@dataclass(frozen=True)
class EncodedTarget:
    """Sentinel authority plus the escaped socket path and resource path"""

    sentinel_authority: str
    encoded_resource_path: str

    @property
    def url(self) -> str:
        return f"{SCHEME}://{self.sentinel_authority}{self.encoded_resource_path}"

    @property
    def request_target(self) -> str:
        """Path and query as sent on the HTTP request line"""
        return _split_socket_segment(self.encoded_resource_path)[1]

    @property
    def socket_path(self) -> str:
        return decode(self.url)[0]

    @classmethod
    def from_url(cls, url: str) -> 'EncodedTarget':
        # Parsed by hand so an empty '?' survives
        prefix = f"{SCHEME}://"
        authority, slash, path = url[len(prefix):].partition('/')
        if not url.startswith(prefix) or authority != SENTINEL_HOST or not slash:
            raise InvalidPathError(f"Not a Unix socket URL: {url}")
        path = '/' + path
        _split_socket_segment(path)
        return cls(authority, path)


def validate_socket_path(socket_path: str):
    """Raise InvalidPathError for paths no socket can live at"""
    if not socket_path:
        raise InvalidPathError("Socket path is empty")
    if '\x00' in socket_path:
        raise InvalidPathError(f"Socket path contains a null byte: {socket_path!r}")


def normalize_resource_path(resource_path: str) -> str:
    """Prefix a relative resource path with '/', absolute paths are kept as is"""
    if resource_path.startswith('/'):
        return resource_path
    return '/' + resource_path


def encode(socket_path: str, resource_path: str) -> str:
    """
    Encode socket path and resource path into a URL

    Args:
        socket_path: Filesystem path of the Unix socket
        resource_path: API path, optionally followed by '?query'

    Returns:
        URL whose host is SENTINEL_HOST and whose first path segment is
        the fully escaped socket path
    """
    return encode_target(socket_path, resource_path).url


def encode_target(socket_path: str, resource_path: str) -> EncodedTarget:
    """Same as encode(), returning the EncodedTarget"""
    validate_socket_path(socket_path)

    path, sep, query = resource_path.partition('?')
    path = quote(normalize_resource_path(path), safe=_RESOURCE_SAFE)
    escaped_socket = quote(socket_path, safe='')

    return EncodedTarget(SENTINEL_HOST, f"/{escaped_socket}{path}{sep}{query}")


def decode(url: str) -> Tuple[str, str]:
    """
    Recover socket path and resource path from an encoded URL

    Args:
        url: URL produced by encode()

    Returns:
        (socket_path, resource_path); the query string, if any, is
        appended to resource_path unchanged
    """
    target = EncodedTarget.from_url(url)
    escaped_socket, rest = _split_socket_segment(target.encoded_resource_path)

    path, sep, query = rest.partition('?')
    socket_path = unquote(escaped_socket)
    validate_socket_path(socket_path)

    return socket_path, f"{unquote(path)}{sep}{query}"


def _split_socket_segment(encoded_resource_path: str) -> Tuple[str, str]:
    path, sep, query = encoded_resource_path.partition('?')
    segment, slash, rest = path[1:].partition('/')
    if not path.startswith('/') or not segment:
        raise InvalidPathError(f"No socket segment in {encoded_resource_path!r}")
    return segment, f"/{rest}{sep}{query}"
