#!/usr/bin/env python3
"""
Exporter exceptions

Field-level errors (KeyAbsent, MalformedValue and subclasses) are folded into
a per-server health signal. Server-level errors (ConnectionFailure,
CommandError) mark only that server as down.
"""

from typing import Any, Dict, Optional


class ExporterError(Exception):
    """Base class for all memcached exporter errors"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message)
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        msg = super().__str__()
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg += f" ({ctx_str})"
        if self.cause:
            msg += f" (caused by: {self.cause})"
        return msg


class KeyAbsent(ExporterError):
    """The probed field is not reported by this server"""

    def __init__(self, key: str):
        super().__init__("key not found", context={'key': key})
        self.key = key


class MalformedValue(ExporterError):
    """A field is present but its value does not match the expected grammar"""

    def __init__(self, message: str, key: str, value: str, cause: Optional[Exception] = None):
        super().__init__(message, context={'key': key, 'value': value}, cause=cause)
        self.key = key
        self.value = value


class MalformedNumber(MalformedValue):
    pass


class MalformedBoolean(MalformedValue):
    pass


class MalformedDuration(MalformedValue):
    pass


class ConnectionFailure(ExporterError):
    """Could not connect to, or lost the connection with, a memcached server"""


class CommandError(ExporterError):
    """The server answered a stats command with ERROR, CLIENT_ERROR or SERVER_ERROR"""


class ConfigurationError(ExporterError):
    pass
