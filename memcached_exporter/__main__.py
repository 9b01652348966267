#!/usr/bin/env python3
"""
Memcached Exporter CLI - Main entry point

Polls one or more memcached servers on every scrape and exposes their
statistics in the Prometheus text format.
"""

import argparse
import logging
import sys
import time

from prometheus_client.core import CollectorRegistry

from .config import ExporterConfig, build_ssl_context
from .exceptions import ConfigurationError
from .exporter import MemcachedExporter
from .http_server import start_server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Memcached Prometheus Exporter',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scrape two servers and a set of unix sockets
  %(prog)s --memcached-addrs cache1:11211 cache2:11211 '/run/memcached/*.sock'

  # Run from a YAML configuration file with debug logging
  %(prog)s -c config.yaml --log-level DEBUG
        """
    )

    # Every default is None so that only explicit flags override the config file
    parser.add_argument('-c', '--config',
                        help='Path to YAML configuration file')
    parser.add_argument('--memcached-addrs', nargs='+',
                        help='Memcached server addresses (host:port or socket path, comma separated allowed; default: localhost:11211)')
    parser.add_argument('--timeout', type=float,
                        help='Timeout in seconds for connecting and for each stats command (default: 1.0)')
    parser.add_argument('--exporter-port', type=int,
                        help='Exporter HTTP port (default: 9150)')
    parser.add_argument('--listen-host',
                        help='Address to bind the HTTP server to (default: all interfaces)')
    parser.add_argument('--telemetry-path',
                        help='Path under which to expose metrics (default: /metrics)')
    parser.add_argument('--max-concurrent', type=int,
                        help='Maximum servers collected concurrently (default: 10)')
    parser.add_argument('--region', help='Region label for metrics')
    parser.add_argument('--slab-cas-fields',
                        help='Comma separated cas fields subtracted from per-slab cmd_set (default: cas_hits,cas_badval)')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level (default: INFO)')

    tls = parser.add_argument_group('TLS')
    tls.add_argument('--tls-enable', action='store_const', const=True,
                     help='Use TLS for TCP connections to memcached')
    tls.add_argument('--tls-ca-file', help='CA certificates used to verify the servers')
    tls.add_argument('--tls-cert-file', help='Client certificate file')
    tls.add_argument('--tls-key-file', help='Client private key file')
    tls.add_argument('--tls-server-name', help='Server name used for verification (default: the host part of each address)')
    tls.add_argument('--tls-insecure-skip-verify', action='store_const', const=True,
                     help='Do not verify server certificates')
    return parser


def main(args_list=None):
    """Main entry point for memcached exporter"""
    args = build_parser().parse_args(args_list)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    overrides = {k: v for k, v in vars(args).items() if k not in ('config', 'log_level')}
    try:
        config = ExporterConfig.load(args.config, overrides)
        ssl_context = build_ssl_context(config)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    if not config.addresses:
        logger.warning("No memcached servers configured, only an empty scrape will be served")

    exporter = MemcachedExporter(
        addresses=config.addresses,
        timeout=config.timeout,
        ssl_context=ssl_context,
        server_name=config.tls_server_name,
        max_concurrent=config.max_concurrent,
        default_labels=config.default_labels,
        slab_cas_fields=config.slab_cas_fields,
    )

    registry = CollectorRegistry()
    registry.register(exporter)

    logger.info(f"Starting Memcached exporter on port {config.exporter_port}")
    logger.info(f"Monitoring {len(config.addresses)} memcached instances: {', '.join(config.addresses)}")

    server, _ = start_server(registry, (config.listen_host, config.exporter_port), config.telemetry_path)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        server.shutdown()
        server.server_close()


if __name__ == '__main__':
    main()
