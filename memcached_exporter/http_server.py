#!/usr/bin/env python3
"""
HTTP exposition

Threaded HTTP server that renders the registry on every request to the
telemetry path, gzip-compressed when the scraper accepts it.
"""

import gzip
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from io import BytesIO
from socketserver import ThreadingMixIn
from typing import Tuple, Type

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

LANDING_PAGE = """<!DOCTYPE html>
<html>
<head><title>Memcached Exporter</title></head>
<body>
<h1>Memcached Exporter</h1>
<p>Prometheus exporter for memcached server statistics.</p>
<p><a href="{path}">Metrics</a></p>
</body>
</html>"""


class ThreadedHTTPServer(ThreadingMixIn, HTTPServer):
    """HTTP Server with threading support for concurrent requests"""
    daemon_threads = True
    allow_reuse_address = True


def gzip_compress(data: bytes, compress_level: int = 6) -> bytes:
    buffer = BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode='wb', compresslevel=compress_level) as f:
        f.write(data)
    return buffer.getvalue()


def make_handler(registry: CollectorRegistry, telemetry_path: str = '/metrics') -> Type[BaseHTTPRequestHandler]:
    """Build a request handler class bound to a registry"""

    class MetricsHandler(BaseHTTPRequestHandler):
        """Serves the metrics page, a landing page on / and 404 elsewhere"""

        def log_message(self, format, *args):
            logger.debug("%s - %s", self.address_string(), format % args)

        def do_GET(self):
            path = self.path.split('?', 1)[0]
            try:
                if path == telemetry_path:
                    self._send_metrics()
                elif path == '/':
                    body = LANDING_PAGE.format(path=telemetry_path).encode('utf-8')
                    self._send(200, body, {'Content-Type': 'text/html; charset=utf-8'})
                else:
                    self.send_error(404, "Not Found")
            except (BrokenPipeError, ConnectionResetError):
                # Client disconnected
                logger.debug(f"Client {self.address_string()} disconnected")

        def _send_metrics(self):
            try:
                data = generate_latest(registry)
            except Exception as e:
                logger.error(f"Error generating metrics: {e}", exc_info=True)
                self.send_error(500, "Internal Server Error")
                return

            headers = {'Content-Type': CONTENT_TYPE_LATEST}
            if 'gzip' in self.headers.get('Accept-Encoding', ''):
                data = gzip_compress(data)
                headers['Content-Encoding'] = 'gzip'
            self._send(200, data, headers)

        def _send(self, status: int, body: bytes, headers: dict):
            self.send_response(status)
            for name, value in headers.items():
                self.send_header(name, value)
            self.send_header('Content-Length', str(len(body)))
            self.end_headers()
            self.wfile.write(body)

    return MetricsHandler


def start_server(registry: CollectorRegistry, address: Tuple[str, int],
                 telemetry_path: str = '/metrics') -> Tuple[ThreadedHTTPServer, threading.Thread]:
    """Start serving in a daemon thread and return the server and its thread"""
    server = ThreadedHTTPServer(address, make_handler(registry, telemetry_path))
    thread = threading.Thread(target=server.serve_forever, daemon=True, name='http-server')
    thread.start()
    host, port = server.server_address[:2]
    logger.info(f"HTTP server listening on {host or '0.0.0.0'}:{port}{telemetry_path}")
    return server, thread
