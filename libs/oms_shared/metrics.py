"""
Simple metrics collection utilities.
"""

from typing import Dict, Optional

from .logging import get_logger

logger = get_logger(__name__)


def _format_labels(labels: Optional[Dict[str, str]]) -> str:
    return ", ".join(f"{k}={v}" for k, v in (labels or {}).items())


class Metrics:
    """
    Log-backed metrics recorder.
    Emits one debug line per observation so a log shipper can aggregate them.
    """

    @staticmethod
    def counter(name: str, labels: Optional[Dict[str, str]] = None):
        """
        Record a counter metric.

        Args:
            name: Metric name
            labels: Optional labels dictionary
        """
        logger.debug(f"METRIC: counter {name} {_format_labels(labels)}")

    @staticmethod
    def histogram(name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """
        Record a histogram metric.

        Args:
            name: Metric name
            value: Metric value
            labels: Optional labels dictionary
        """
        logger.debug(f"METRIC: histogram {name}={value} {_format_labels(labels)}")

