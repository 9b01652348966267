"""Shared pytest configuration and fixtures."""

import pytest

from memcached_exporter.exceptions import ConnectionFailure
from memcached_exporter.exporter import MemcachedExporter
from memcached_exporter.translator import ServerStats


# A trimmed "stats" reply from memcached 1.6
STATS = {
    'pid': '1',
    'uptime': '3600',
    'time': '1700000000',
    'version': '1.6.21',
    'rusage_user': '1.250000',
    'rusage_system': '0.500000',
    'curr_connections': '10',
    'total_connections': '120',
    'rejected_connections': '0',
    'conn_yields': '0',
    'listen_disabled_num': '0',
    'accepting_conns': '1',
    'cmd_get': '500',
    'cmd_set': '120',
    'cmd_flush': '2',
    'get_hits': '400',
    'get_misses': '100',
    'delete_hits': '7',
    'delete_misses': '1',
    'incr_hits': '4',
    'incr_misses': '0',
    'decr_hits': '2',
    'decr_misses': '0',
    'cas_hits': '3',
    'cas_misses': '2',
    'cas_badval': '1',
    'touch_hits': '5',
    'touch_misses': '6',
    'bytes_read': '10240',
    'bytes_written': '20480',
    'limit_maxbytes': '67108864',
    'bytes': '4096',
    'curr_items': '12',
    'total_items': '130',
    'evictions': '3',
    'reclaimed': '1',
    'lru_crawler_starts': '4',
    'crawler_items_checked': '40',
    'crawler_reclaimed': '2',
    'moves_to_cold': '9',
    'moves_to_warm': '8',
    'moves_within_lru': '7',
    'total_malloced': '2097152',
}

ITEMS = {
    1: {
        'number': '10',
        'age': '120',
        'evicted': '5',
        'number_hot': '2',
        'hits_to_hot': '11',
        'hits_to_warm': '12',
        'hits_to_cold': '13',
        'hits_to_temp': '0',
    },
    4: {
        'number': '2',
        'age': '30',
        'hits_to_hot': '1',
        'hits_to_warm': '0',
        'hits_to_cold': '0',
        'hits_to_temp': '0',
    },
}

SLABS = {
    1: {
        'chunk_size': '96',
        'chunks_per_page': '10922',
        'total_pages': '1',
        'total_chunks': '10922',
        'used_chunks': '10',
        'free_chunks': '10912',
        'free_chunks_end': '0',
        'get_hits': '300',
        'cmd_set': '100',
        'delete_hits': '3',
        'incr_hits': '0',
        'decr_hits': '0',
        'cas_hits': '3',
        'cas_badval': '1',
        'touch_hits': '2',
    },
}

SETTINGS = {
    'maxconns': '1024',
    'lru_crawler': 'yes',
    'lru_crawler_sleep': '100',
    'lru_crawler_tocrawl': '0',
    'lru_maintainer_thread': 'yes',
    'hot_lru_pct': '20',
    'warm_lru_pct': '40',
    'hot_max_factor': '0.20',
    'warm_max_factor': '2.00',
}


def server_stats(stats=None, items=None, slabs=None):
    """Build a ServerStats record, copying the sample data so tests may mutate it."""
    return ServerStats(
        stats=dict(STATS if stats is None else stats),
        items={k: dict(v) for k, v in (ITEMS if items is None else items).items()},
        slabs={k: dict(v) for k, v in (SLABS if slabs is None else slabs).items()},
    )


class FakeClient:
    """Stand-in for MemcachedClient that serves canned records."""

    # address -> dict(stats=ServerStats | Exception, settings=dict | Exception, connect=Exception | None)
    servers = {}

    def __init__(self, address, timeout=1.0, ssl_context=None, server_name=None):
        self.address = address
        self.timeout = timeout
        self.behaviour = self.servers.get(address, {'connect': ConnectionFailure(f"refused: {address}")})
        self.closed = False

    async def connect(self):
        error = self.behaviour.get('connect')
        if error is not None:
            raise error

    async def fetch_stats(self):
        result = self.behaviour.get('stats', server_stats())
        if isinstance(result, Exception):
            raise result
        return result

    async def stats_settings(self):
        result = self.behaviour.get('settings', dict(SETTINGS))
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_servers():
    """Register canned server behaviours for FakeClient, cleared after the test."""
    FakeClient.servers = {}
    yield FakeClient.servers
    FakeClient.servers = {}


@pytest.fixture
def exporter():
    return MemcachedExporter(addresses=[])


@pytest.fixture
def table(exporter):
    return exporter.new_table()


@pytest.fixture
def translator(exporter):
    return exporter.translator
