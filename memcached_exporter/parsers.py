#!/usr/bin/env python3
"""
Scalar parsers for raw memcached stats values

Every parser takes a raw record (field name -> string value) and a key. A
missing key raises KeyAbsent and is logged at debug level only; a value that
does not match the grammar is logged at error level and raised as the
matching MalformedValue subclass.
"""

import logging
from typing import Dict, Iterable

from .exceptions import KeyAbsent, MalformedBoolean, MalformedDuration, MalformedNumber

logger = logging.getLogger(__name__)

MICROSECONDS_PER_SECOND = 1000.0 * 1000.0


def _lookup(record: Dict[str, str], key: str) -> str:
    try:
        return record[key]
    except KeyError:
        logger.debug(f"Key not found: {key}")
        raise KeyAbsent(key) from None


def _to_float(value: str) -> float:
    # float() also accepts digit-group underscores, the protocol never sends them
    if '_' in value:
        raise ValueError(f"could not convert string to float: {value!r}")
    return float(value)


def parse_number(record: Dict[str, str], key: str) -> float:
    """Parse a field as a floating point number"""
    value = _lookup(record, key)
    try:
        return _to_float(value)
    except ValueError as e:
        logger.error(f"Failed to parse {key}={value!r}: {e}")
        raise MalformedNumber("failed to parse a number", key, value, cause=e) from e


def parse_bool(record: Dict[str, str], key: str) -> float:
    """Parse a yes/no flag as 1.0 / 0.0"""
    value = _lookup(record, key)
    if value == 'yes':
        return 1.0
    if value == 'no':
        return 0.0
    logger.error(f"Failed to parse {key}={value!r}: expected yes or no")
    raise MalformedBoolean("failed to parse a bool value", key, value)


def parse_timeval(record: Dict[str, str], key: str) -> float:
    """
    Parse a "<seconds>.<microseconds>" value into seconds.

    The fractional part is always read as microseconds, so "1.5" is
    1.000005 seconds, not 1.5.
    """
    value = _lookup(record, key)
    parts = value.split('.')
    if len(parts) != 2:
        logger.error(f"Failed to parse {key}={value!r}: expected seconds.microseconds")
        raise MalformedDuration("failed to parse a timeval value", key, value)

    try:
        seconds = _to_float(parts[0])
        microseconds = _to_float(parts[1])
    except ValueError as e:
        logger.error(f"Failed to parse {key}={value!r}: {e}")
        raise MalformedDuration("failed to parse a timeval value", key, value, cause=e) from e

    return seconds + microseconds / MICROSECONDS_PER_SECOND


def sum_fields(record: Dict[str, str], keys: Iterable[str]) -> float:
    """Sum several numeric fields, failing if any of them is absent or malformed"""
    total = 0.0
    for key in keys:
        total += parse_number(record, key)
    return total
