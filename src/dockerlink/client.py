"""
Docker Client - Main API entry point
"""

from typing import Any, Optional

from .codec import SocketEndpoint
from .config import resolve_socket_path
from .containers import ContainerCollection
from .executor import RequestExecutor, read_body


class DockerClient:
    """
    Docker API Client
    Talks to the daemon over its Unix control socket
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 version: Optional[str] = None):
        """
        Initialize Docker client

        Args:
            base_url: Docker socket path (default: auto-detect)
            timeout: Socket timeout in seconds (default: block)
            version: API version prefix, e.g. '1.24' (default: unversioned)
        """
        self.endpoint = SocketEndpoint(resolve_socket_path(base_url))
        self.http = RequestExecutor(self.endpoint, timeout=timeout, version=version)
        self.containers = ContainerCollection(self)

    def __repr__(self):
        return f"<DockerClient: {self.endpoint.filesystem_path}>"

    def request_json(self, method: str, path: str, **kwargs) -> Any:
        """
        Make a request and parse the body

        Args:
            method: HTTP method
            path: API path
            **kwargs: Passed to RequestExecutor.execute

        Returns:
            Parsed JSON, raw text if the body is not JSON, None if empty

        Raises:
            APIError: Status 400 or above
        """
        with self.http.execute(method, path, **kwargs) as response:
            return read_body(response)

    def version(self) -> dict:
        """Get Docker version info"""
        return self.request_json('GET', '/version')

    def info(self) -> dict:
        """Get Docker system info"""
        return self.request_json('GET', '/info')

    def ping(self) -> str:
        """Ping Docker daemon"""
        return self.request_json('GET', '/_ping')

    def close(self):
        """Close client (no-op: connections live for one request)"""
        pass

