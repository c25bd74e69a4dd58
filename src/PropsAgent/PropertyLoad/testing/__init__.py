"""Testing utilities for exercising the property loader end-to-end.

Provides a loopback HTTP server that serves queued responses, an HTTPX mock
transport built from a route table, and a helper that temporarily installs a
client as the shared HTTP client.
"""

from __future__ import annotations

import contextlib
import http.server
import socket
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urljoin

import httpx

__all__ = [
    "ResponseSpec",
    "RequestRecord",
    "PropertyServer",
    "route_transport",
    "use_mock_http_client",
]


@contextlib.contextmanager
def use_mock_http_client(transport: "httpx.BaseTransport", **client_kwargs):
    """Temporarily install an HTTPX client backed by ``transport``."""

    from ..net import configure_http_client, reset_http_client

    default_config = client_kwargs.pop("default_config", None)
    client = httpx.Client(transport=transport, **client_kwargs)
    configure_http_client(client=client, default_config=default_config)
    try:
        yield client
    finally:
        reset_http_client()
        client.close()


@dataclass
class ResponseSpec:
    """HTTP response definition served by the loopback server or mock transport."""

    status: int = 200
    body: Union[bytes, str] = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    delay_sec: Optional[float] = None

    def serialise_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("iso-8859-1")


@dataclass
class RequestRecord:
    """Captured HTTP request emitted by the loader during tests."""

    method: str
    path: str
    headers: Mapping[str, str]


def route_transport(
    routes: Mapping[str, ResponseSpec],
    *,
    log: Optional[List[RequestRecord]] = None,
) -> httpx.MockTransport:
    """Return a mock transport answering exact URLs from ``routes`` and 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        if log is not None:
            log.append(
                RequestRecord(
                    method=request.method,
                    path=request.url.path,
                    headers=dict(request.headers),
                )
            )
        response = routes.get(str(request.url))
        if response is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(response.status, headers=dict(response.headers), content=response.serialise_body())

    return httpx.MockTransport(handler)


class _ThreadedHTTPServer(http.server.ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address, RequestHandlerClass, *, env) -> None:
        super().__init__(server_address, RequestHandlerClass)
        self.env = env


class _RequestHandler(http.server.BaseHTTPRequestHandler):
    server_version = "PropsAgentTestServer/1.0"

    def log_message(self, format, *args):  # noqa: D401  (silence default logging)
        return

    def do_GET(self):  # noqa: D401
        env: PropertyServer = self.server.env  # type: ignore[attr-defined]
        path = self.path.split("?", 1)[0]
        env.requests.append(
            RequestRecord(
                method=self.command,
                path=path,
                headers={key: value for key, value in self.headers.items()},
            )
        )
        response = env._next_response(path)
        if response is None:
            self.send_error(404, "No response queued for path")
            return
        if response.delay_sec:
            time.sleep(response.delay_sec)
        body = response.serialise_body()
        self.send_response(response.status)
        headers = dict(response.headers)
        headers.setdefault("Content-Length", str(len(body)))
        headers.setdefault("Content-Type", "text/plain; charset=iso-8859-1")
        for key, value in headers.items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(body)


def _find_free_port(host: str = "127.0.0.1") -> Tuple[str, int]:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((host, 0))
    addr, port = sock.getsockname()
    sock.close()
    return addr, port


class PropertyServer(contextlib.AbstractContextManager["PropertyServer"]):
    """Loopback HTTP server serving queued :class:`ResponseSpec` objects.

    Responses queued with ``sticky=True`` are served for every request to the
    path; others are consumed once.
    """

    def __init__(self) -> None:
        self.requests: List[RequestRecord] = []
        self._responses: Dict[str, Deque[Tuple[ResponseSpec, bool]]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._server: Optional[_ThreadedHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._root: Optional[str] = None

    def __enter__(self) -> "PropertyServer":
        host, port = _find_free_port()
        server = _ThreadedHTTPServer((host, port), _RequestHandler, env=self)
        thread = threading.Thread(target=server.serve_forever, name="PropsAgentTestServer")
        thread.daemon = True
        thread.start()
        self._server = server
        self._thread = thread
        self._root = f"http://{host}:{port}/"
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        self._responses.clear()
        self._root = None

    def url(self, path: str) -> str:
        """Return the absolute URL served for ``path``."""

        if not self._root:
            raise RuntimeError("PropertyServer must be entered before requesting URLs")
        return urljoin(self._root, path.lstrip("/"))

    def queue(self, path: str, response: ResponseSpec, *, sticky: bool = False) -> None:
        """Queue ``response`` for ``path``."""

        with self._lock:
            self._responses["/" + path.lstrip("/")].append((response, sticky))

    def _next_response(self, path: str) -> Optional[ResponseSpec]:
        with self._lock:
            queue = self._responses.get(path)
            if not queue:
                return None
            response, sticky = queue[0]
            if not sticky:
                queue.popleft()
            return response
