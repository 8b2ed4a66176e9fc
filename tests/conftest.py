"""
Test configuration and fixtures for vulcan tests.

Provides shared fixtures for:
- A throwaway build server on localhost that records requests and replies
  with chunked build logs
- Endpoints that refuse connections
"""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass, field
from email.message import Message
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List, Optional, Tuple

import pytest

from vulcan.config import ServerEndpoint


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Message
    body: bytes


@dataclass
class Route:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    chunks: Tuple[bytes, ...] = ()
    body: Optional[bytes] = None
    abort_after_chunks: bool = False


class FakeBuildServer:
    """In-process HTTP server standing in for the remote build server."""

    def __init__(self) -> None:
        self.requests: List[RecordedRequest] = []
        self.routes: Dict[Tuple[str, str], Route] = {}
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), self._handler_class())
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def endpoint(self) -> ServerEndpoint:
        host, port = self._httpd.server_address[:2]
        return ServerEndpoint(host=host, port=port)

    @property
    def url(self) -> str:
        return self.endpoint.base_url

    def route(self, method: str, path: str, **kwargs) -> None:
        self.routes[(method, path)] = Route(**kwargs)

    def paths(self) -> List[str]:
        return [r.path for r in self.requests]

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()

    def _handler_class(self):
        server = self

        class Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"

            def log_message(self, format, *args):
                pass

            def _handle(self):
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                server.requests.append(RecordedRequest(self.command, self.path, self.headers, body))

                route = server.routes.get((self.command, self.path))
                if route is None:
                    self.send_response(404)
                    self.send_header("Content-Length", "0")
                    self.end_headers()
                    return

                self.send_response(route.status)
                for name, value in route.headers.items():
                    self.send_header(name, value)
                if route.body is not None:
                    self.send_header("Content-Length", str(len(route.body)))
                    self.end_headers()
                    self.wfile.write(route.body)
                    return

                self.send_header("Transfer-Encoding", "chunked")
                self.end_headers()
                for chunk in route.chunks:
                    self.wfile.write(b"%x\r\n%s\r\n" % (len(chunk), chunk))
                    self.wfile.flush()
                if route.abort_after_chunks:
                    self.close_connection = True
                    return
                self.wfile.write(b"0\r\n\r\n")

            do_GET = _handle
            do_POST = _handle

        return Handler


@pytest.fixture
def build_server():
    server = FakeBuildServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def refused_endpoint() -> ServerEndpoint:
    """An endpoint on a local port with nothing listening."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return ServerEndpoint(host="127.0.0.1", port=port)

