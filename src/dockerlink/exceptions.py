"""
Docker API Exceptions
"""


class DockerException(Exception):
    """Base Docker exception"""
    pass


class InvalidPathError(DockerException, ValueError):
    """Socket path or encoded URL cannot be used"""
    pass


class UnknownHostError(DockerException, LookupError):
    """Hostname is not the Unix socket sentinel"""
    pass


class SocketConnectionError(DockerException, ConnectionError):
    """Unix socket is missing, not a socket, or refused the connection"""

    def __init__(self, socket_path, message):
        super().__init__(f"Cannot connect to {socket_path}: {message}")
        self.socket_path = socket_path


class SocketPermissionError(DockerException, PermissionError):
    """Access to the Unix socket was denied"""

    def __init__(self, socket_path, message):
        super().__init__(f"Permission denied for {socket_path}: {message}")
        self.socket_path = socket_path


class TransportError(DockerException):
    """Request could not be carried over the socket"""
    pass


class StreamError(DockerException):
    """Multiplexed stream protocol violation"""
    pass


class TruncatedStreamError(StreamError):
    """Stream ended inside a frame header or payload"""

    def __init__(self, message, expected=0, received=0):
        super().__init__(message)
        self.expected = expected
        self.received = received


class UnknownStreamTypeError(StreamError):
    """Frame header names a stream other than stdin, stdout or stderr"""

    def __init__(self, stream_type):
        super().__init__(f"Unknown stream type: {stream_type}")
        self.stream_type = stream_type


class StreamConsumedError(StreamError):
    """Demultiplexer was iterated more than once"""
    pass


class APIError(DockerException):
    """Docker API error"""

    def __init__(self, message, response=None, status_code=None):
        super().__init__(message)
        self.response = response
        self.status_code = status_code


class ContainerNotFound(APIError):
    """Container not found"""
    pass
