#!/usr/bin/env python3
"""
Memcached stats client

Minimal asyncio client for the memcached text protocol "stats" family of
commands. One client is used for one collection cycle against one server.
"""

import asyncio
import logging
import ssl
from typing import Dict, List, Optional, Tuple

from .exceptions import CommandError, ConnectionFailure
from .translator import ServerStats

DEFAULT_PORT = 11211

ERROR_PREFIXES = ('ERROR', 'CLIENT_ERROR', 'SERVER_ERROR')


def parse_address(address: str) -> Tuple[str, Optional[int]]:
    """
    Split an address into (host, port).

    Socket paths come back as (path, None). Bracketed IPv6 hosts lose their
    brackets. A missing port defaults to 11211.
    """
    if address.startswith('/'):
        return address, None
    if address.startswith('['):
        host, _, rest = address[1:].partition(']')
        port = rest[1:] if rest.startswith(':') else ''
        return host, int(port) if port else DEFAULT_PORT
    if address.count(':') == 1:
        host, port = address.rsplit(':', 1)
        return host, int(port)
    return address, DEFAULT_PORT


def parse_stat_lines(lines: List[str]) -> Dict[str, str]:
    """Parse "STAT <key> <value>" lines into a dict of raw string values"""
    stats = {}
    for line in lines:
        if not line.startswith('STAT '):
            continue
        parts = line.split(' ', 2)
        if len(parts) == 3:
            stats[parts[1]] = parts[2]
        elif len(parts) == 2:
            stats[parts[1]] = ''
    return stats


def split_slab_stats(stats: Dict[str, str], prefix: str = '') -> Tuple[Dict[int, Dict[str, str]], Dict[str, str]]:
    """
    Partition "[prefix]<slab>:<field>" keys by slab class.

    Returns:
        tuple: (slab id -> {field: value}, keys that are not slab indexed)
    """
    slabs: Dict[int, Dict[str, str]] = {}
    rest = {}
    for key, value in stats.items():
        name = key
        if prefix:
            if not key.startswith(prefix):
                rest[key] = value
                continue
            name = key[len(prefix):]
        slab_id, sep, field = name.partition(':')
        if sep and slab_id.isdigit():
            slabs.setdefault(int(slab_id), {})[field] = value
        else:
            rest[key] = value
    return slabs, rest


class MemcachedClient:
    """Memcached client for collecting statistics from one server"""

    def __init__(self, address: str, timeout: float = 1.0,
                 ssl_context: Optional[ssl.SSLContext] = None, server_name: Optional[str] = None):
        self.address = address
        self.host, self.port = parse_address(address)
        self.timeout = timeout
        self.ssl_context = ssl_context
        self.server_name = server_name
        self.logger = logging.getLogger(__name__)
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def is_unix_socket(self) -> bool:
        return self.port is None

    async def connect(self):
        """Open the connection, raising ConnectionFailure on error or timeout"""
        if self._writer is not None:
            return
        try:
            if self.is_unix_socket:
                opener = asyncio.open_unix_connection(self.host)
            elif self.ssl_context is not None:
                opener = asyncio.open_connection(
                    self.host, self.port,
                    ssl=self.ssl_context,
                    server_hostname=self.server_name or self.host,
                )
            else:
                opener = asyncio.open_connection(self.host, self.port)
            self._reader, self._writer = await asyncio.wait_for(opener, timeout=self.timeout)
        except (OSError, asyncio.TimeoutError, ssl.SSLError) as e:
            raise ConnectionFailure(f"Failed to connect to {self.address}", cause=e) from e
        self.logger.debug(f"Connected to {self.address}")

    async def _send_command(self, command: str) -> List[str]:
        """Send a stats command and return the response lines before END"""
        if self._writer is None:
            await self.connect()
        try:
            return await asyncio.wait_for(self._exchange(command), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError, asyncio.LimitOverrunError) as e:
            await self.close()
            raise ConnectionFailure(f"Command '{command}' to {self.address} failed", cause=e) from e

    async def _exchange(self, command: str) -> List[str]:
        self._writer.write(f"{command}\r\n".encode('utf-8'))
        await self._writer.drain()

        lines = []
        while True:
            raw = await self._reader.readuntil(b'\r\n')
            line = raw[:-2].decode('utf-8', errors='replace')
            if line == 'END':
                return lines
            if line.startswith(ERROR_PREFIXES):
                raise CommandError(f"Command '{command}' rejected by {self.address}", context={'response': line})
            lines.append(line)

    async def stats(self, group: str = '') -> Dict[str, str]:
        """Run "stats [group]" and return the raw key/value map"""
        command = f"stats {group}" if group else "stats"
        return parse_stat_lines(await self._send_command(command))

    async def stats_settings(self) -> Dict[str, str]:
        return await self.stats('settings')

    async def stats_items(self) -> Dict[int, Dict[str, str]]:
        """Get item statistics grouped by slab class"""
        items, _ = split_slab_stats(await self.stats('items'), prefix='items:')
        return items

    async def stats_slabs(self) -> Tuple[Dict[int, Dict[str, str]], Dict[str, str]]:
        """Get slab statistics grouped by slab class, plus the global slab fields"""
        return split_slab_stats(await self.stats('slabs'))

    async def fetch_stats(self) -> ServerStats:
        """Get general, item and slab statistics as one record"""
        stats = await self.stats()
        items = await self.stats_items()
        slabs, slab_totals = await self.stats_slabs()
        # active_slabs and total_malloced are only reported by "stats slabs"
        for key, value in slab_totals.items():
            stats.setdefault(key, value)
        return ServerStats(stats=stats, items=items, slabs=slabs)

    async def close(self):
        """Close the connection"""
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            self.logger.debug(f"Error while closing connection to {self.address}: {e}")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
