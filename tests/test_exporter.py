"""Tests for the multi-server collector."""

import asyncio
import time
from unittest import mock

import pytest
from prometheus_client import generate_latest
from prometheus_client.core import CollectorRegistry

from memcached_exporter.exceptions import CommandError, ConnectionFailure
from memcached_exporter.exporter import MemcachedExporter

from tests.conftest import ITEMS, SETTINGS, SLABS, STATS, FakeClient, server_stats
from tests.test_client import start_fake_memcached, unused_address

FULL_RESPONSES = {
    'stats': [f'STAT {k} {v}' for k, v in STATS.items() if k != 'total_malloced'],
    'stats items': [f'STAT items:{n}:{k} {v}' for n, record in ITEMS.items() for k, v in record.items()],
    'stats slabs': [f'STAT {n}:{k} {v}' for n, record in SLABS.items() for k, v in record.items()]
                   + ['STAT active_slabs 1', 'STAT total_malloced 2097152'],
    'stats settings': [f'STAT {k} {v}' for k, v in SETTINGS.items()],
}


def make_exporter(addresses, **kwargs):
    return MemcachedExporter(addresses=addresses, client_factory=FakeClient, **kwargs)


def samples_by_server(families):
    servers = {}
    for family in families:
        for sample in family.samples:
            servers.setdefault(sample.labels['server'], []).append(sample)
    return servers


def up_values(table):
    return {labels['server']: value for labels, value in table.observations('memcached_up')}


class TestCollectCycle:

    def test_reachable_and_refused_servers(self, fake_servers):
        fake_servers['good:11211'] = {}
        exporter = make_exporter(['good:11211', 'bad:11211'])

        families = exporter.collect()
        servers = samples_by_server(families)

        up = {s.labels['server']: s.value for s in servers['good:11211'] + servers['bad:11211'] if s.name == 'memcached_up'}
        assert up == {'good:11211': 1.0, 'bad:11211': 0.0}
        assert len(servers['good:11211']) > 50
        assert [s.name for s in servers['bad:11211']] == ['memcached_up']

    def test_zero_targets_zero_observations(self):
        exporter = make_exporter([])
        assert exporter.collect() == []

    def test_parse_failure_marks_server_down(self, fake_servers):
        record = server_stats()
        record.stats['bytes'] = 'garbage'
        fake_servers['a:1'] = {'stats': record}
        fake_servers['b:1'] = {}
        exporter = make_exporter(['a:1', 'b:1'])

        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))

        assert up_values(table) == {'a:1': 0.0, 'b:1': 1.0}
        # the rest of a:1 is still exported
        assert ({'server': 'a:1'}, 3600.0) in table.observations('memcached_uptime_seconds')

    def test_settings_failure_marks_server_down(self, fake_servers):
        fake_servers['a:1'] = {'settings': dict(maxconns='x')}
        exporter = make_exporter(['a:1'])
        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))
        assert up_values(table) == {'a:1': 0.0}
        assert table.observations('memcached_max_connections') == []

    def test_command_error_keeps_other_pass(self, fake_servers):
        fake_servers['a:1'] = {'settings': CommandError("stats settings rejected")}
        exporter = make_exporter(['a:1'])
        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))
        assert up_values(table) == {'a:1': 0.0}
        assert table.observations('memcached_uptime_seconds') == [({'server': 'a:1'}, 3600.0)]

    def test_connection_lost_mid_fetch_emits_only_up(self, fake_servers):
        fake_servers['a:1'] = {'settings': ConnectionFailure("timed out")}
        exporter = make_exporter(['a:1'])
        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))
        assert up_values(table) == {'a:1': 0.0}
        assert len(table) == 1

    def test_unexpected_worker_error_still_reports_up(self, fake_servers):
        fake_servers['a:1'] = {'stats': RuntimeError("boom")}
        fake_servers['b:1'] = {}
        exporter = make_exporter(['a:1', 'b:1'])
        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))
        assert up_values(table) == {'a:1': 0.0, 'b:1': 1.0}

    def test_exactly_one_up_per_server(self, fake_servers):
        addresses = [f'host{i}:11211' for i in range(20)]
        for address in addresses[::2]:
            fake_servers[address] = {}
        exporter = make_exporter(addresses, max_concurrent=3)
        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))

        observed = [labels['server'] for labels, _ in table.observations('memcached_up')]
        assert sorted(observed) == sorted(addresses)
        up = up_values(table)
        assert all(up[a] == 1.0 for a in addresses[::2])
        assert all(up[a] == 0.0 for a in addresses[1::2])

    def test_default_labels_on_every_sample(self, fake_servers):
        fake_servers['a:1'] = {}
        exporter = make_exporter(['a:1'], default_labels={'region': 'eu'})
        for family in exporter.collect():
            for sample in family.samples:
                assert sample.labels['region'] == 'eu'

    def test_client_closed_after_lost_connection(self):
        client = mock.AsyncMock()
        client.fetch_stats.side_effect = ConnectionFailure("connection reset")
        factory = mock.Mock(return_value=client)
        exporter = MemcachedExporter(addresses=['a:1'], timeout=0.5, client_factory=factory)

        table = exporter.new_table()
        asyncio.run(exporter.collect_all(table))

        factory.assert_called_once_with('a:1', timeout=0.5, ssl_context=None, server_name=None)
        client.stats_settings.assert_not_awaited()
        client.close.assert_awaited_once()
        assert up_values(table) == {'a:1': 0.0}


class TestRegistry:

    def test_register_does_not_collect(self, fake_servers):
        calls = []

        class CountingClient(FakeClient):
            async def connect(self):
                calls.append(self.address)
                await super().connect()

        exporter = MemcachedExporter(addresses=['a:1'], client_factory=CountingClient)
        registry = CollectorRegistry()
        registry.register(exporter)
        assert calls == []

        generate_latest(registry)
        assert calls == ['a:1']

    def test_exposition(self, fake_servers):
        fake_servers['a:1'] = {}
        registry = CollectorRegistry()
        registry.register(make_exporter(['a:1']))

        output = generate_latest(registry).decode()
        assert 'memcached_up{server="a:1"} 1.0' in output
        assert 'memcached_commands_total{command="set",server="a:1",status="hit"} 114.0' in output
        assert 'memcached_slab_items_evicted_total{server="a:1",slab="1"} 5.0' in output
        assert 'slab="4"' in output
        assert 'memcached_slab_items_evicted_total{server="a:1",slab="4"}' not in output
        assert 'memcached_uptime_seconds_total{server="a:1"} 3600.0' in output

    def test_family_types(self, fake_servers):
        fake_servers['a:1'] = {}
        types = {
            sample.name: family.type
            for family in make_exporter(['a:1']).collect()
            for sample in family.samples
        }
        assert types['memcached_uptime_seconds_total'] == 'counter'
        assert types['memcached_slab_lru_hits_total'] == 'counter'
        assert types['memcached_up'] == 'gauge'
        assert types['memcached_current_bytes'] == 'gauge'


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_real_and_refused_servers(self):
        server, address = await start_fake_memcached(FULL_RESPONSES)
        refused = unused_address()
        exporter = MemcachedExporter(addresses=[address, refused], timeout=2.0)
        table = exporter.new_table()
        try:
            start = time.monotonic()
            await exporter.collect_all(table)
            elapsed = time.monotonic() - start
        finally:
            server.close()
            await server.wait_closed()

        assert elapsed < 2.0
        assert up_values(table) == {address: 1.0, refused: 0.0}
        assert table.observations('memcached_version') == [({'server': address, 'version': '1.6.21'}, 1.0)]
        assert table.observations('memcached_max_connections') == [({'server': address}, 1024.0)]
        assert table.observations('memcached_malloced_bytes') == [({'server': address}, 2097152.0)]
        servers = samples_by_server(table.families())
        assert [s.name for s in servers[refused]] == ['memcached_up']
