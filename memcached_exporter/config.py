#!/usr/bin/env python3
"""
Exporter configuration

Settings come from an optional YAML file and from command line flags; flags
that were given explicitly win over the file.
"""

import glob
import logging
import ssl
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .catalog import METRICS, SLAB_CAS_FIELDS
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# label names the metrics carry themselves; constant labels may not reuse them
RESERVED_LABELS = frozenset(name for *_, labelnames in METRICS.values() for name in labelnames)

DEFAULTS: Dict[str, Any] = {
    'memcached_addrs': ['localhost:11211'],
    'timeout': 1.0,
    'exporter_port': 9150,
    'listen_host': '',
    'telemetry_path': '/metrics',
    'max_concurrent': 10,
    'region': None,
    'labels': {},
    'slab_cas_fields': list(SLAB_CAS_FIELDS),
    'tls_enable': False,
    'tls_ca_file': None,
    'tls_cert_file': None,
    'tls_key_file': None,
    'tls_server_name': None,
    'tls_insecure_skip_verify': False,
}


def resolve_addresses(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Expand a server list into individual addresses.

    Each entry may hold several comma separated addresses. Socket paths
    containing '*' are glob-expanded. Duplicates are dropped, order kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]

    addresses = []
    for entry in value:
        for address in str(entry).split(','):
            address = address.strip()
            if not address:
                continue
            if address.startswith('/') and '*' in address:
                matches = sorted(glob.glob(address))
                if not matches:
                    logger.warning(f"No sockets match {address}")
                addresses.extend(matches)
            else:
                addresses.append(address)
    return list(dict.fromkeys(addresses))


def load_config_file(path: str) -> Dict[str, Any]:
    """Load a YAML configuration file into a dict"""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}", cause=e) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML configuration: {path}", cause=e) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")

    unknown = set(data) - set(DEFAULTS)
    if unknown:
        logger.warning(f"Ignoring unknown configuration keys: {', '.join(sorted(unknown))}")
    return {k: v for k, v in data.items() if k in DEFAULTS}


class ExporterConfig:
    """Resolved exporter settings"""

    def __init__(self, **settings):
        values = dict(DEFAULTS)
        values.update({k: v for k, v in settings.items() if v is not None})

        self.addresses = resolve_addresses(values['memcached_addrs'])
        self.timeout = self._convert(values, 'timeout', float)
        self.exporter_port = self._convert(values, 'exporter_port', int)
        self.listen_host = values['listen_host']
        self.telemetry_path = values['telemetry_path']
        self.max_concurrent = self._convert(values, 'max_concurrent', int)
        self.region = values['region']
        self.labels = self._convert(values, 'labels', lambda v: dict(v or {}))
        self.slab_cas_fields = self._parse_fields(values['slab_cas_fields'])
        self.tls_enable = bool(values['tls_enable'])
        self.tls_ca_file = values['tls_ca_file']
        self.tls_cert_file = values['tls_cert_file']
        self.tls_key_file = values['tls_key_file']
        self.tls_server_name = values['tls_server_name']
        self.tls_insecure_skip_verify = bool(values['tls_insecure_skip_verify'])

        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive", context={'timeout': self.timeout})
        if self.max_concurrent < 1:
            raise ConfigurationError("max_concurrent must be at least 1", context={'max_concurrent': self.max_concurrent})
        if not self.telemetry_path.startswith('/'):
            raise ConfigurationError("telemetry_path must start with '/'", context={'telemetry_path': self.telemetry_path})

        reserved = sorted(RESERVED_LABELS.intersection(self.default_labels))
        if reserved:
            raise ConfigurationError("constant labels clash with metric labels", context={'labels': ', '.join(reserved)})

    @staticmethod
    def _convert(values: Dict[str, Any], key: str, convert):
        try:
            return convert(values[key])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid value for {key}", context={key: values[key]}, cause=e) from e

    @staticmethod
    def _parse_fields(value: Union[str, Iterable[str]]) -> List[str]:
        if isinstance(value, str):
            value = value.split(',')
        fields = [f.strip() for f in value if f and f.strip()]
        if not fields:
            raise ConfigurationError("slab_cas_fields must name at least one field")
        return fields

    @classmethod
    def load(cls, path: Optional[str] = None, overrides: Dict[str, Any] = None) -> 'ExporterConfig':
        """Build a config from an optional YAML file, then apply overrides"""
        settings = load_config_file(path) if path else {}
        settings.update({k: v for k, v in (overrides or {}).items() if v is not None})
        return cls(**settings)

    @property
    def default_labels(self) -> Dict[str, str]:
        """Constant labels added to every metric"""
        labels = {}
        if self.region:
            labels['region'] = self.region
        labels.update({str(k): str(v) for k, v in self.labels.items()})
        return labels

    def __repr__(self):
        return (f"ExporterConfig(addresses={self.addresses}, timeout={self.timeout}, "
                f"port={self.exporter_port}, tls={self.tls_enable})")


def build_ssl_context(config: ExporterConfig) -> Optional[ssl.SSLContext]:
    """Create the client TLS context, or None when TLS is disabled"""
    if not config.tls_enable:
        return None

    if bool(config.tls_cert_file) != bool(config.tls_key_file):
        raise ConfigurationError("tls_cert_file and tls_key_file must be given together")

    try:
        context = ssl.create_default_context(cafile=config.tls_ca_file)
        if config.tls_cert_file:
            context.load_cert_chain(config.tls_cert_file, config.tls_key_file)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError("Failed to load TLS files", cause=e) from e

    if config.tls_insecure_skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context
