#!/usr/bin/env python3
"""
Memcached Prometheus Exporter

A prometheus_client collector that polls every configured memcached server
on each scrape. Servers are collected concurrently; the scrape returns only
after every server has finished, and each server reports its own
memcached_up value regardless of how the others fared.
"""

import asyncio
import logging
import ssl
import time
from typing import Callable, Dict, List, Optional, Sequence

from prometheus_client.core import Metric

from . import catalog
from .client import MemcachedClient
from .exceptions import CommandError, ConnectionFailure, ExporterError
from .prometheus_wrapper import MetricDescriptor, MetricFactory
from .result_table import ResultTable
from .translator import StatsTranslator

ClientFactory = Callable[..., MemcachedClient]


class MemcachedExporter:
    """Prometheus collector for Memcached - supports multiple hosts"""

    def __init__(self, addresses: List[str] = None, timeout: float = 1.0,
                 ssl_context: Optional[ssl.SSLContext] = None,
                 server_name: Optional[str] = None,
                 max_concurrent: int = 10,
                 default_labels: Dict[str, str] = None,
                 slab_cas_fields: Sequence[str] = catalog.SLAB_CAS_FIELDS,
                 client_factory: ClientFactory = MemcachedClient):
        self.addresses = list(addresses or [])
        self.timeout = timeout
        self.ssl_context = ssl_context
        self.server_name = server_name
        self.max_concurrent = max_concurrent
        self.client_factory = client_factory
        self.logger = logging.getLogger(__name__)

        self.metric_factory = MetricFactory(namespace=catalog.NAMESPACE, default_labels=default_labels)
        self.descriptors: Dict[str, MetricDescriptor] = self.metric_factory.build(catalog.METRICS)
        self.translator = StatsTranslator(self.descriptors, slab_cas_fields=slab_cas_fields)

    def describe(self) -> List[Metric]:
        """Return one empty family per descriptor so registration does not trigger a scrape"""
        return [descriptor.new_family() for descriptor in self.descriptors.values()]

    def collect(self) -> List[Metric]:
        """Run one collection cycle and return its metric families"""
        table = self.new_table()
        asyncio.run(self.collect_all(table))
        return table.families()

    def new_table(self) -> ResultTable:
        return ResultTable(self.descriptors.values())

    async def collect_all(self, table: ResultTable):
        """Collect metrics from all memcached servers in parallel"""
        if not self.addresses:
            return

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def collect_with_semaphore(address):
            async with semaphore:
                await self.collect_server(table, address)

        start_time = time.time()
        results = await asyncio.gather(
            *[collect_with_semaphore(address) for address in self.addresses],
            return_exceptions=True
        )
        elapsed = time.time() - start_time

        for address, result in zip(self.addresses, results):
            if isinstance(result, Exception):
                self.logger.error(f"Unexpected error collecting {address}: {result!r}", exc_info=result)

        self.logger.info(f"Collected metrics from {len(self.addresses)} memcached instances in {elapsed:.2f}s")

    async def collect_server(self, table: ResultTable, address: str):
        """
        Collect one server: connect, fetch stats and settings, translate, and
        always finish with exactly one memcached_up observation.
        """
        up = 0.0
        try:
            up = await self._collect_server(table, address)
        finally:
            table.add(self.descriptors['up'], up, address)

    async def _collect_server(self, table: ResultTable, address: str) -> float:
        self.logger.debug(f"Collecting metrics from {address}")
        client = self.client_factory(
            address,
            timeout=self.timeout,
            ssl_context=self.ssl_context,
            server_name=self.server_name,
        )
        try:
            await client.connect()
        except ConnectionFailure as e:
            self.logger.error(f"Failed to connect to memcached {address}: {e}")
            return 0.0

        up = 1.0
        stats = None
        settings = None
        try:
            try:
                stats = await client.fetch_stats()
            except CommandError as e:
                self.logger.error(f"Failed to collect stats from memcached {address}: {e}")
                up = 0.0

            try:
                settings = await client.stats_settings()
            except CommandError as e:
                self.logger.error(f"Could not query stats settings from {address}: {e}")
                up = 0.0
        except ConnectionFailure as e:
            self.logger.error(f"Lost connection to memcached {address}: {e}")
            return 0.0
        finally:
            await client.close()

        if stats is not None and self._translate(self.translator.translate_stats, table, stats, address):
            up = 0.0
        if settings is not None and self._translate(self.translator.translate_settings, table, settings, address):
            up = 0.0
        return up

    def _translate(self, translate, table: ResultTable, record, address: str) -> bool:
        """Run one translation pass, returning True if any field failed"""
        error: Optional[ExporterError] = translate(table, record, address)
        if error is not None:
            self.logger.debug(f"Parse failures for {address}, last: {error}")
            return True
        return False

    def __repr__(self):
        return f"MemcachedExporter(addresses={self.addresses}, timeout={self.timeout})"
