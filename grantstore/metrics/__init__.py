"""
Metrics package for the grant store.
"""

from .collector import MetricConfig, StoreMetrics

__all__ = ["MetricConfig", "StoreMetrics"]
