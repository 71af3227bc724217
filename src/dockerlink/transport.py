"""
HTTP connection over a Unix socket
Plugs UnixDialer into http.client in place of TCP name resolution
"""

import http.client
from typing import Optional

from .codec import EncodedTarget
from .dialer import UnixDialer


class UnixHTTPConnection(http.client.HTTPConnection):
    """HTTP connection bound to one encoded Unix socket target"""

    def __init__(self, target: EncodedTarget, dialer: Optional[UnixDialer] = None,
                 timeout: Optional[float] = None):
        """
        Args:
            target: Encoded socket and resource path this connection serves
            dialer: Dialer used in connect() (default: UnixDialer())
            timeout: Socket timeout in seconds, None blocks
        """
        super().__init__(target.sentinel_authority, timeout=timeout)
        self.target = target
        self.dialer = dialer or UnixDialer()
        # Kept after http.client hands the socket over to the response
        self.dialed_socket = None

    def connect(self):
        """Connect to Unix socket"""
        self.dialer.resolve(self.host)
        self.sock = self.dialed_socket = self.dialer.connect(self.target)
        self.sock.settimeout(self.timeout)
