"""
splitstore_agent.metrics
AUTHOR: carter-vin

Last-value gauges for splitstore disk usage

Contract:
- Exposed names are unprefixed: coldstore_badger_size, hotstore_badger_size,
  markset_badger_size, diskusage_last_updated_at
- Gauges live on a caller-owned CollectorRegistry (no global default registry)
- publish() overwrites all four gauges; it never accumulates
- registry failures raise PublishError and are fatal to the process
"""

from __future__ import annotations

import time
from typing import Optional

from prometheus_client import CollectorRegistry, Gauge

from splitstore_agent.sampler import SampleResult


class PublishError(RuntimeError):
    """Recording to the metrics registry failed."""


class DiskUsageMetrics:
    """Prometheus-backed splitstore disk usage gauges."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self._registry = registry

        self._coldstore_size = Gauge(
            "coldstore_badger_size",
            "Size of the coldstore badger store",
            registry=registry,
        )
        self._hotstore_size = Gauge(
            "hotstore_badger_size",
            "Size of the hotstore badger store",
            registry=registry,
        )
        self._markset_size = Gauge(
            "markset_badger_size",
            "Size of the markset badger store",
            registry=registry,
        )
        self._last_updated_at = Gauge(
            "diskusage_last_updated_at",
            "Number of seconds since Unix epoch that usage was most recently updated",
            registry=registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def publish(self, result: SampleResult, now: Optional[float] = None) -> float:
        """
        Record one sample; returns the epoch seconds written

        Sub-second precision keeps the timestamp strictly increasing for
        intervals shorter than one second.
        """
        updated_at = float(time.time() if now is None else now)

        try:
            self._coldstore_size.set(result.cold)
            self._hotstore_size.set(result.hot)
            self._markset_size.set(result.markset)
            self._last_updated_at.set(updated_at)
        except Exception as e:
            raise PublishError(f"failed to record disk usage metrics: {e}") from e

        return updated_at
