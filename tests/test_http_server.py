"""Tests for the HTTP exposition server."""

import gzip
import urllib.error
import urllib.request

import pytest
from prometheus_client.core import CollectorRegistry, GaugeMetricFamily

from memcached_exporter.http_server import start_server


class StaticCollector:

    def collect(self):
        family = GaugeMetricFamily('memcached_up', 'Could the memcached server be reached.', labels=['server'])
        family.add_metric(['a:1'], 1)
        yield family


class FailingCollector:

    def collect(self):
        raise RuntimeError("collector broke")


def serve(collector, telemetry_path='/metrics'):
    registry = CollectorRegistry()
    registry.register(collector)
    server, thread = start_server(registry, ('127.0.0.1', 0), telemetry_path)
    base = f'http://127.0.0.1:{server.server_address[1]}'
    return server, thread, base


@pytest.fixture
def http_server():
    server, thread, base = serve(StaticCollector())
    yield base
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def get(url, headers=None):
    request = urllib.request.Request(url, headers=headers or {})
    with urllib.request.urlopen(request, timeout=5) as response:
        return response.status, dict(response.headers), response.read()


def test_metrics_page(http_server):
    status, headers, body = get(f'{http_server}/metrics')
    assert status == 200
    assert headers['Content-Type'].startswith('text/plain')
    assert b'memcached_up{server="a:1"} 1.0' in body


def test_query_string_ignored(http_server):
    status, _, body = get(f'{http_server}/metrics?name[]=memcached_up')
    assert status == 200
    assert b'memcached_up' in body


def test_gzip_when_accepted(http_server):
    status, headers, body = get(f'{http_server}/metrics', {'Accept-Encoding': 'gzip'})
    assert status == 200
    assert headers['Content-Encoding'] == 'gzip'
    assert b'memcached_up{server="a:1"} 1.0' in gzip.decompress(body)


def test_landing_page(http_server):
    status, headers, body = get(f'{http_server}/')
    assert status == 200
    assert headers['Content-Type'].startswith('text/html')
    assert b'href="/metrics"' in body


def test_unknown_path(http_server):
    with pytest.raises(urllib.error.HTTPError) as exc_info:
        get(f'{http_server}/nope')
    assert exc_info.value.code == 404


def test_custom_telemetry_path():
    server, thread, base = serve(StaticCollector(), telemetry_path='/stats')
    try:
        status, _, body = get(f'{base}/stats')
        assert status == 200
        assert b'memcached_up' in body
        with pytest.raises(urllib.error.HTTPError):
            get(f'{base}/metrics')
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


def test_collector_error_returns_500():
    server, thread, base = serve(FailingCollector())
    try:
        with pytest.raises(urllib.error.HTTPError) as exc_info:
            get(f'{base}/metrics')
        assert exc_info.value.code == 500
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
