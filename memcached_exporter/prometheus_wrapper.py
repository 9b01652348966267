#!/usr/bin/env python3
"""
Prometheus Metrics Wrapper

Immutable metric descriptors that carry default (constant) labels, and a
factory that builds them. Descriptors are created once at startup and turned
into fresh prometheus_client metric families on every collection cycle.
"""

from typing import Dict, List, Sequence, Tuple

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

COUNTER = 'counter'
GAUGE = 'gauge'


def build_fqname(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty name parts with underscores"""
    return '_'.join(part for part in (namespace, subsystem, name) if part)


class MetricDescriptor:
    """Name, help text, value kind and label schema of one metric family"""

    __slots__ = ('name', 'documentation', 'kind', 'labelnames', 'default_labels')

    def __init__(self, name: str, documentation: str, kind: str,
                 labelnames: Sequence[str] = (), default_labels: Dict[str, str] = None):
        if kind not in (COUNTER, GAUGE):
            raise ValueError(f"Unknown metric kind {kind!r} for {name}")
        self.name = name
        self.documentation = documentation
        self.kind = kind
        self.labelnames = tuple(labelnames)
        self.default_labels = dict(default_labels or {})

    @property
    def all_labelnames(self) -> List[str]:
        """Default label names first, then the descriptor's own labels"""
        return list(self.default_labels.keys()) + list(self.labelnames)

    def merge_label_values(self, label_values: Sequence[str]) -> List[str]:
        """Prepend default label values, enforcing the declared label arity"""
        if len(label_values) != len(self.labelnames):
            raise ValueError(
                f"{self.name} expects {len(self.labelnames)} label values "
                f"{self.labelnames}, got {len(label_values)}: {tuple(label_values)}"
            )
        return list(self.default_labels.values()) + [str(v) for v in label_values]

    def new_family(self) -> Metric:
        """Create an empty metric family for this descriptor"""
        if self.kind == COUNTER:
            return CounterMetricFamily(self.name, self.documentation, labels=self.all_labelnames)
        return GaugeMetricFamily(self.name, self.documentation, labels=self.all_labelnames)

    def __repr__(self):
        return f"MetricDescriptor({self.name!r}, kind={self.kind}, labels={self.labelnames})"


class MetricFactory:
    """Factory class to create metric descriptors with default labels"""

    def __init__(self, namespace: str = '', default_labels: Dict[str, str] = None):
        """
        Initialize metric factory

        Args:
            namespace: Prefix applied to every metric name
            default_labels: Default labels to apply to all metrics
        """
        self.namespace = namespace
        self.default_labels = default_labels or {}

    def counter(self, name: str, documentation: str, labelnames: List[str] = None,
                subsystem: str = '') -> MetricDescriptor:
        """Create a counter descriptor with default labels"""
        return MetricDescriptor(
            build_fqname(self.namespace, subsystem, name),
            documentation,
            COUNTER,
            labelnames or [],
            self.default_labels,
        )

    def gauge(self, name: str, documentation: str, labelnames: List[str] = None,
              subsystem: str = '') -> MetricDescriptor:
        """Create a gauge descriptor with default labels"""
        return MetricDescriptor(
            build_fqname(self.namespace, subsystem, name),
            documentation,
            GAUGE,
            labelnames or [],
            self.default_labels,
        )

    def build(self, catalog: Dict[str, Tuple[str, str, str, str, Sequence[str]]]) -> Dict[str, MetricDescriptor]:
        """
        Build one descriptor per catalog entry

        Args:
            catalog: logical key -> (kind, subsystem, name, documentation, labelnames)

        Returns:
            dict: logical key -> MetricDescriptor
        """
        descriptors = {}
        names = set()
        for key, (kind, subsystem, name, documentation, labelnames) in catalog.items():
            make = self.counter if kind == COUNTER else self.gauge
            descriptor = make(name, documentation, list(labelnames), subsystem=subsystem)
            if descriptor.name in names:
                raise ValueError(f"Duplicated metric name: {descriptor.name}")
            names.add(descriptor.name)
            descriptors[key] = descriptor
        return descriptors
