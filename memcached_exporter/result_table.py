#!/usr/bin/env python3
"""
Result Table - Per-cycle observation storage

Every collection cycle gets a fresh ResultTable. Server workers write
observations into it concurrently; once all of them have finished, the table
is turned into prometheus_client metric families for exposition.
"""

import threading
from typing import Dict, Iterable, List, Tuple

from prometheus_client.core import Metric

from .prometheus_wrapper import MetricDescriptor


class ResultTable:
    """
    Thread-safe sink for (descriptor, value, label values) observations.

    Each add() is a single atomic write under the table lock, so workers may
    share one table without coordinating with each other.
    """

    def __init__(self, descriptors: Iterable[MetricDescriptor]):
        """
        Initialize an empty table

        Args:
            descriptors: All descriptors that may be observed in this cycle
        """
        self._descriptors = {d.name: d for d in descriptors}
        self._samples: Dict[str, List[Tuple[List[str], float]]] = {name: [] for name in self._descriptors}
        self._lock = threading.Lock()

    def add(self, descriptor: MetricDescriptor, value: float, *label_values: str):
        """
        Record one observation.

        Raises:
            ValueError: the label values do not match the descriptor's schema,
                or the descriptor was not registered with this table
        """
        if descriptor.name not in self._descriptors:
            raise ValueError(f"Unknown descriptor: {descriptor.name}")
        merged = descriptor.merge_label_values(label_values)
        with self._lock:
            self._samples[descriptor.name].append((merged, float(value)))

    def families(self) -> List[Metric]:
        """
        Build metric families from the recorded observations.

        Descriptors without observations yield no family.
        """
        families = []
        with self._lock:
            for name, samples in self._samples.items():
                if not samples:
                    continue
                family = self._descriptors[name].new_family()
                for label_values, value in samples:
                    family.add_metric(label_values, value)
                families.append(family)
        return families

    def observations(self, name: str) -> List[Tuple[Dict[str, str], float]]:
        """
        Return (labels, value) pairs recorded for a metric.

        Returns:
            list: one entry per observation, labels as a name -> value dict
        """
        descriptor = self._descriptors[name]
        with self._lock:
            samples = list(self._samples[name])
        return [(dict(zip(descriptor.all_labelnames, labels)), value) for labels, value in samples]

    def __len__(self):
        with self._lock:
            return sum(len(samples) for samples in self._samples.values())

    def __repr__(self):
        return f"ResultTable(descriptors={len(self._descriptors)}, observations={len(self)})"
