"""
Request executor
Issues one HTTP request per connection over the Docker Unix socket
"""

import http.client
import json
import logging
import socket
import threading
from typing import Any, Dict, Iterator, Mapping, Optional, Union
from urllib.parse import quote

from .codec import SocketEndpoint, encode_target
from .dialer import UnixDialer
from .exceptions import APIError, DockerException, TransportError
from .frames import FrameDemultiplexer
from .transport import UnixHTTPConnection

logger = logging.getLogger(__name__)

Body = Union[None, str, bytes, Any]


def build_query(params: Optional[Mapping[str, Any]]) -> str:
    """
    Serialize query parameters with keys in sorted order

    Args:
        params: Parameter mapping; None values are skipped, booleans become
            'true'/'false', lists and dicts are sent as JSON

    Returns:
        Query string without the leading '?'
    """
    if not params:
        return ''

    query_parts = []
    for key in sorted(params):
        value = params[key]
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        elif isinstance(value, (list, dict)):
            value = json.dumps(value, sort_keys=True)
        query_parts.append(f"{quote(str(key), safe='')}={quote(str(value), safe='')}")
    return '&'.join(query_parts)


class Response:
    """Status, headers and open body of one request"""

    def __init__(self, connection: UnixHTTPConnection, raw: http.client.HTTPResponse):
        self.connection = connection
        self.raw = raw
        self.status_code = raw.status
        self.reason = raw.reason
        self.headers = raw.headers
        self._lock = threading.Lock()
        self._closed = False
        self._active_reads = 0

    def __repr__(self):
        return f"<Response [{self.status_code}]>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def body_stream(self) -> 'Response':
        """Readable body; reads fail with ConnectionAbortedError once closed"""
        return self

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def read(self, amt: Optional[int] = None) -> bytes:
        return self._guarded_read(self.raw.read, amt)

    def readline(self) -> bytes:
        return self._guarded_read(self.raw.readline)

    def text(self) -> str:
        return self.read().decode('utf-8', errors='replace')

    def json(self) -> Any:
        """Parse the whole body as JSON, None for an empty body"""
        data = self.read()
        if not data:
            return None
        return json.loads(data.decode('utf-8'))

    def iter_lines(self) -> Iterator[bytes]:
        """Yield body lines without terminators (streamed JSON, TTY logs)"""
        while True:
            line = self.readline()
            if not line:
                break
            yield line.rstrip(b'\r\n')

    def demux(self) -> FrameDemultiplexer:
        """Wrap the body in a FrameDemultiplexer"""
        return FrameDemultiplexer(self)

    def raise_for_status(self):
        """Raise APIError for 4xx and 5xx responses"""
        if self.status_code < 400:
            return

        error_body = self.text()
        try:
            error_msg = json.loads(error_body).get('message', error_body)
        except (ValueError, AttributeError):
            error_msg = error_body

        raise APIError(
            f"Docker API error: {error_msg}",
            response=self,
            status_code=self.status_code
        )

    def close(self):
        """
        Release the connection

        Safe to call from another thread: a read blocked on the body wakes up
        and fails with ConnectionAbortedError, and the reading thread then
        releases the connection itself.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            release_now = self._active_reads == 0

        sock = self.connection.dialed_socket
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # Peer already hung up
                pass
        if release_now:
            self._release()

    def _release(self):
        self.raw.close()
        self.connection.close()

    def _guarded_read(self, read, *args) -> bytes:
        # http.client must not be closed under a reader, see close()
        with self._lock:
            if self._closed:
                raise ConnectionAbortedError("Response stream is closed")
            self._active_reads += 1

        try:
            data = read(*args)
        except (OSError, ValueError, http.client.HTTPException) as e:
            if self._closed:
                raise ConnectionAbortedError("Response stream was closed during read") from e
            raise
        finally:
            with self._lock:
                self._active_reads -= 1
                release_now = self._closed and self._active_reads == 0
            if release_now:
                self._release()

        if self._closed:
            raise ConnectionAbortedError("Response stream was closed during read")
        return data


class RequestExecutor:
    """Composes and sends requests to the Docker daemon"""

    def __init__(self, endpoint: SocketEndpoint, dialer: Optional[UnixDialer] = None,
                 timeout: Optional[float] = None, version: Optional[str] = None):
        """
        Initialize executor

        Args:
            endpoint: Control socket to talk to
            dialer: Dialer shared by all connections (default: UnixDialer())
            timeout: Socket timeout in seconds, None blocks
            version: API version prefix such as '1.24' (default: unversioned)
        """
        self.endpoint = endpoint
        self.dialer = dialer or UnixDialer()
        self.timeout = timeout
        self.version = version.lstrip('v') if version else None

    def resource_path(self, path: str) -> str:
        """Apply the API version prefix to a path"""
        path = '/' + path.lstrip('/')
        if self.version:
            path = f"/v{self.version}{path}"
        return path

    def execute(self, method: str, path: str, query_params: Optional[Mapping[str, Any]] = None,
                body: Body = None, headers: Optional[Dict[str, str]] = None) -> Response:
        """
        Send one request and return the response with its body unread

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            path: API path
            query_params: URL query parameters
            body: None, a pre-serialized JSON document (str or bytes), or a
                readable binary stream sent with chunked encoding
            headers: Extra HTTP headers

        Returns:
            Response owning the connection; close it or use it as a
            context manager. Non-2xx statuses are not raised.

        Raises:
            TransportError: Dialing or HTTP exchange failed
        """
        resource = self.resource_path(path)
        query = build_query(query_params)
        if query:
            resource = f"{resource}?{query}"

        target = encode_target(self.endpoint.filesystem_path, resource)
        req_headers = self._headers(body, headers)
        payload = body.encode('utf-8') if isinstance(body, str) else body

        logger.debug(f"{method} {target.request_target} via {self.endpoint.filesystem_path}")
        conn = UnixHTTPConnection(target, dialer=self.dialer, timeout=self.timeout)
        try:
            conn.request(method, target.request_target, body=payload, headers=req_headers)
            raw = conn.getresponse()
        except (OSError, http.client.HTTPException, DockerException) as e:
            conn.close()
            raise TransportError(f"{method} {resource} failed: {e}") from e

        logger.debug(f"{method} {target.request_target} -> {raw.status}")
        return Response(conn, raw)

    @staticmethod
    def _headers(body: Body, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        req_headers = {}
        if isinstance(body, (str, bytes)):
            req_headers['Content-Type'] = 'application/json'
        elif body is not None:
            req_headers['Content-Type'] = 'application/x-tar'
        if headers:
            req_headers.update(headers)
        return req_headers

    def get(self, path: str, **kwargs) -> Response:
        """Make GET request"""
        return self.execute('GET', path, **kwargs)

    def post(self, path: str, **kwargs) -> Response:
        """Make POST request"""
        return self.execute('POST', path, **kwargs)

    def delete(self, path: str, **kwargs) -> Response:
        """Make DELETE request"""
        return self.execute('DELETE', path, **kwargs)

    def put(self, path: str, **kwargs) -> Response:
        """Make PUT request"""
        return self.execute('PUT', path, **kwargs)


def read_body(response: Response) -> Any:
    """Raise for error statuses, then decode JSON or fall back to text"""
    response.raise_for_status()
    data = response.read()
    if not data:
        return None

    # Try to parse as JSON
    try:
        return json.loads(data.decode('utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError):
        # Return raw data if not JSON
        return data.decode('utf-8', errors='replace')
