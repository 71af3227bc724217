import http.server
import json
import os
import shutil
import socketserver
import tempfile
import threading
from typing import NamedTuple

import pytest

from dockerlink.frames import pack_frame


class RecordedRequest(NamedTuple):
    method: str
    path: str
    headers: dict
    body: bytes


def json_response(obj, status=200):
    return status, {'Content-Type': 'application/json'}, json.dumps(obj).encode('utf-8')


def frames_response(*frames, content_type='application/vnd.docker.multiplexed-stream'):
    body = b''.join(pack_frame(stream_type, payload) for stream_type, payload in frames)
    return 200, {'Content-Type': content_type}, body


class _Handler(http.server.BaseHTTPRequestHandler):
    # HTTP/1.0: every response is delimited by closing the connection
    chunked = False

    def log_message(self, format, *args):
        pass

    def _read_body(self):
        if 'chunked' in self.headers.get('Transfer-Encoding', ''):
            data = b''
            while True:
                size = int(self.rfile.readline().strip(), 16)
                if size == 0:
                    self.rfile.readline()
                    return data
                data += self.rfile.read(size)
                self.rfile.readline()
        length = int(self.headers.get('Content-Length', 0))
        return self.rfile.read(length) if length else b''

    def _dispatch(self):
        engine = self.server.engine
        request = RecordedRequest(self.command, self.path, dict(self.headers), self._read_body())
        engine.record(request)

        route = engine.routes.get((self.command, self.path.partition('?')[0]))
        if route is None:
            status, headers, body = json_response({'message': 'page not found'}, status=404)
        elif callable(route):
            status, headers, body = route(request)
        else:
            status, headers, body = route

        if isinstance(body, bytes):
            body = [body] if body else []
        has_body = status not in (204, 304)

        self.send_response(status)
        for key, value in headers.items():
            self.send_header(key, value)
        if self.chunked and has_body:
            self.send_header('Transfer-Encoding', 'chunked')
        self.end_headers()
        if not has_body:
            return
        for chunk in body:
            if not chunk:
                continue
            self.wfile.write(b'%x\r\n%s\r\n' % (len(chunk), chunk) if self.chunked else chunk)
            self.wfile.flush()
        if self.chunked:
            self.wfile.write(b'0\r\n\r\n')
            self.wfile.flush()

    do_GET = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch
    do_DELETE = _dispatch


class _ChunkedHandler(_Handler):
    # HTTP/1.1 keep-alive with chunked bodies, as the daemon streams them
    protocol_version = 'HTTP/1.1'
    chunked = True


class _Server(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True


class FakeEngine:
    """Minimal Docker daemon double listening on a Unix socket"""

    def __init__(self, socket_path, chunked=False):
        self.socket_path = socket_path
        self.chunked = chunked
        self.routes = {}
        self.requests = []
        self._lock = threading.Lock()
        self._server = None
        self._thread = None

    def route(self, method, path, response):
        self.routes[(method, path)] = response

    def record(self, request):
        with self._lock:
            self.requests.append(request)

    @property
    def last_request(self):
        with self._lock:
            return self.requests[-1]

    def start(self):
        self._server = _Server(self.socket_path, _ChunkedHandler if self.chunked else _Handler)
        self._server.engine = self
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()
        self._thread.join()


@pytest.fixture
def short_tmp():
    # AF_UNIX paths are limited to ~108 bytes, pytest's tmp_path can be longer
    path = tempfile.mkdtemp(prefix='dockerlink-')
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def engine(short_tmp):
    engine = FakeEngine(os.path.join(short_tmp, 'docker.sock'))
    engine.start()
    yield engine
    engine.stop()


@pytest.fixture
def chunked_engine(short_tmp):
    engine = FakeEngine(os.path.join(short_tmp, 'chunked.sock'), chunked=True)
    engine.start()
    yield engine
    engine.stop()
