#!/usr/bin/env python3
"""
Stats Translator

Turns one server's raw stats and settings records into typed observations.
Each field binding either emits, skips (field not reported) or fails. A
failure never stops the remaining bindings; the translator only reports the
last failure it saw so the caller can mark the server unhealthy.
"""

import logging
from typing import Callable, Dict, NamedTuple, Optional, Sequence

from . import catalog
from .exceptions import ExporterError, KeyAbsent
from .parsers import parse_number, sum_fields
from .prometheus_wrapper import MetricDescriptor
from .result_table import ResultTable

logger = logging.getLogger(__name__)

EMITTED = 'emitted'
SKIPPED = 'skipped'
FAILED = 'failed'

Record = Dict[str, str]
Parser = Callable[[Record, str], float]


class ServerStats(NamedTuple):
    """Raw stats of one server: top-level record plus per-slab item and slab records"""
    stats: Record
    items: Dict[int, Record]
    slabs: Dict[int, Record]


class BindResult(NamedTuple):
    outcome: str
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.outcome == FAILED


class ErrorAccumulator:
    """Keeps the most recent failure out of a sequence of bindings"""

    def __init__(self):
        self.last_error: Optional[Exception] = None

    def add(self, result: BindResult):
        if result.failed:
            self.last_error = result.error

    @property
    def ok(self) -> bool:
        return self.last_error is None


def derive_plain_sets(record: Record, cas_fields: Sequence[str]) -> float:
    """
    Number of unconditional sets: cmd_set minus the cas outcomes in cas_fields.

    memcached counts every cas attempt in cmd_set too. Raises KeyAbsent or a
    MalformedValue error if any input is missing or unparsable; nothing is
    derived from a partial set of inputs.
    """
    set_cmd = parse_number(record, 'cmd_set')
    return set_cmd - sum_fields(record, cas_fields)


class StatsTranslator:
    """Binds raw memcached stats fields to metric descriptors"""

    def __init__(self, descriptors: Dict[str, MetricDescriptor],
                 slab_cas_fields: Sequence[str] = catalog.SLAB_CAS_FIELDS):
        self.descriptors = descriptors
        self.slab_cas_fields = tuple(slab_cas_fields)

    def bind(self, table: ResultTable, record: Record, metric: str, parser: Parser,
             key: str, *label_values: str) -> BindResult:
        """Parse record[key] and emit it as `metric`, skipping absent keys"""
        try:
            value = parser(record, key)
        except KeyAbsent:
            return BindResult(SKIPPED)
        except ExporterError as e:
            return BindResult(FAILED, e)

        table.add(self.descriptors[metric], value, *label_values)
        return BindResult(EMITTED)

    def emit_plain_sets(self, table: ResultTable, record: Record, metric: str,
                        cas_fields: Sequence[str], *label_values: str) -> BindResult:
        """Emit the derived set counter with the ("set", "hit") command labels appended"""
        try:
            value = derive_plain_sets(record, cas_fields)
        except ExporterError as e:
            logger.error(f"Failed to derive set count from cmd_set and {', '.join(cas_fields)}: {e}")
            return BindResult(FAILED, e)

        table.add(self.descriptors[metric], value, *label_values, 'set', 'hit')
        return BindResult(EMITTED)

    def translate_stats(self, table: ResultTable, stats: ServerStats, server: str) -> Optional[Exception]:
        """
        Translate one server's stats. Returns the last failure, or None.
        """
        errors = ErrorAccumulator()
        s = stats.stats

        if 'version' in s:
            table.add(self.descriptors['version'], 1, server, s['version'])

        for op in catalog.COMMAND_VERBS:
            errors.add(self.bind(table, s, 'commands', parse_number, f'{op}_hits', server, op, 'hit'))
            errors.add(self.bind(table, s, 'commands', parse_number, f'{op}_misses', server, op, 'miss'))

        errors.add(self.bind(table, s, 'uptime', parse_number, 'uptime', server))
        errors.add(self.bind(table, s, 'time', parse_number, 'time', server))
        errors.add(self.bind(table, s, 'commands', parse_number, 'cas_badval', server, 'cas', 'badval'))
        errors.add(self.bind(table, s, 'commands', parse_number, 'cmd_flush', server, 'flush', 'hit'))

        errors.add(self.emit_plain_sets(table, s, 'commands', catalog.SERVER_CAS_FIELDS, server))

        # extstore stats are only reported while extstore is active
        if catalog.EXTSTORE_LIMIT_FIELD in s:
            for field, metric in catalog.EXTSTORE_FIELDS:
                errors.add(self.bind(table, s, metric, parse_number, field, server))

        for field, metric, parser in catalog.GENERAL_FIELDS:
            errors.add(self.bind(table, s, metric, parser, field, server))

        for slab_id, record in stats.items.items():
            self._translate_slab_items(table, errors, record, str(slab_id), server)

        for slab_id, record in stats.slabs.items():
            self._translate_slab(table, errors, record, str(slab_id), server)

        return errors.last_error

    def _translate_slab_items(self, table: ResultTable, errors: ErrorAccumulator,
                              record: Record, slab: str, server: str):
        for field, metric in catalog.SLAB_ITEM_FIELDS:
            errors.add(self.bind(table, record, metric, parse_number, field, server, slab))
        for field, lru in catalog.SLAB_LRU_HIT_FIELDS:
            errors.add(self.bind(table, record, 'slab_lru_hits', parse_number, field, server, slab, lru))

        # Optional fields vary between memcached versions and slab classes
        for field, metric in catalog.SLAB_OPTIONAL_ITEM_FIELDS:
            if field not in record:
                continue
            errors.add(self.bind(table, record, metric, parse_number, field, server, slab))

    def _translate_slab(self, table: ResultTable, errors: ErrorAccumulator,
                        record: Record, slab: str, server: str):
        for op in catalog.COMMAND_VERBS:
            errors.add(self.bind(table, record, 'slab_commands', parse_number, f'{op}_hits', server, slab, op, 'hit'))
        errors.add(self.bind(table, record, 'slab_commands', parse_number, 'cas_badval', server, slab, 'cas', 'badval'))

        errors.add(self.emit_plain_sets(table, record, 'slab_commands', self.slab_cas_fields, server, slab))

        for field, metric in catalog.SLAB_FIELDS:
            errors.add(self.bind(table, record, metric, parse_number, field, server, slab))

    def translate_settings(self, table: ResultTable, settings: Record, server: str) -> Optional[Exception]:
        """
        Translate one server's "stats settings" record. Returns the last failure, or None.
        """
        errors = ErrorAccumulator()
        errors.add(self.bind(table, settings, 'max_connections', parse_number, 'maxconns', server))

        if settings.get(catalog.LRU_CRAWLER_FLAG) == 'yes':
            for field, metric, parser in catalog.LRU_CRAWLER_SETTINGS:
                errors.add(self.bind(table, settings, metric, parser, field, server))

        return errors.last_error
