"""
Metrics collection for autolog-events
=====================================

This package provides:
- Prometheus metrics for the event publisher
"""

from .prom_metrics import AutologMetrics

__all__ = [
    'AutologMetrics',
]
