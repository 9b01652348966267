#!/usr/bin/env python3
"""
Memcached Exporter - Prometheus exporter for memcached statistics

Polls memcached servers over the text protocol "stats" commands and
republishes the results as typed Prometheus metrics.
"""

__version__ = '1.0.0'

from .exporter import MemcachedExporter

__all__ = ['MemcachedExporter']
