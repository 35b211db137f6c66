"""
splitstore_agent.server
AUTHOR: carter-vin

Metrics endpoint
- Serves a CollectorRegistry in Prometheus exposition format at one path
- Bind happens synchronously in serve(); failures surface to the caller
- Request loop runs on a daemon thread, independent of the sampling loop
"""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Own server instead of start_wsgi_server so only the configured path is served, 404 elsewhere."""

    daemon_threads = True


class _ThreadingWSGIServerV6(_ThreadingWSGIServer):
    address_family = socket.AF_INET6


class _QuietHandler(WSGIRequestHandler):
    """Drops per-request access lines from the JSON event stream."""

    def log_message(self, format, *args):
        pass


def parse_address(address: str) -> tuple[str, int]:
    """
    Split "host:port" into its parts

    ":8080" -> ("", 8080), "[::1]:9100" -> ("::1", 9100)
    """
    host, sep, port_text = address.rpartition(":")
    if not sep:
        raise ValueError(f"expected host:port, got {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 hosts must be bracketed, got {address!r}")

    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in {address!r}") from None

    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in {address!r}")

    return host, port


def _path_app(path: str, metrics_app):
    def app(environ, start_response):
        if environ.get("PATH_INFO", "") == path:
            return metrics_app(environ, start_response)
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"not found\n"]

    return app


@dataclass
class MetricsServer:
    """
    Running endpoint handle
    - host/port: actual bound address (port resolved when 0 was requested)
    """

    httpd: WSGIServer
    thread: threading.Thread
    path: str

    @property
    def host(self) -> str:
        return self.httpd.server_address[0]

    @property
    def port(self) -> int:
        return self.httpd.server_address[1]

    def shutdown(self, timeout: float = 5.0) -> None:
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join(timeout=timeout)


def serve(address: str, path: str, registry: CollectorRegistry) -> MetricsServer:
    """
    Bind address and start serving registry at path

    Raises:
    - ValueError for a malformed address
    - OSError if the listener cannot bind
    """
    host, port = parse_address(address)
    server_class = _ThreadingWSGIServerV6 if ":" in host else _ThreadingWSGIServer

    app = _path_app(path, make_wsgi_app(registry))
    httpd = make_server(host, port, app, server_class=server_class, handler_class=_QuietHandler)

    thread = threading.Thread(target=httpd.serve_forever, name="metrics-endpoint", daemon=True)
    thread.start()

    return MetricsServer(httpd=httpd, thread=thread, path=path)
