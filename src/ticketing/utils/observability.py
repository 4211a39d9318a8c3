"""
Centralized observability utilities for the ticketing stores.

This module provides configured instances of AWS Lambda Powertools for logging,
tracing, and metrics collection shared by every store in the package.
"""

import threading

from aws_lambda_powertools.logging import Logger
from aws_lambda_powertools.metrics import MetricUnit, Metrics
from aws_lambda_powertools.tracing import Tracer

# Metrics namespace for storage KPIs
METRICS_NAMESPACE = 'EventTicketing'

# JSON output format, service name can be set by environment variable "POWERTOOLS_SERVICE_NAME"
logger: Logger = Logger()

# Disabled by setting POWERTOOLS_TRACE_DISABLED to "True"
tracer: Tracer = Tracer()

# Namespace and service name can be set by environment variables:
# - POWERTOOLS_METRICS_NAMESPACE
# - POWERTOOLS_SERVICE_NAME
metrics = Metrics(namespace=METRICS_NAMESPACE)

_metrics_lock = threading.Lock()


def add_metric(name: str, unit: MetricUnit, value: float) -> None:
    """Record a metric; batch fan-out calls this from worker threads."""
    with _metrics_lock:
        metrics.add_metric(name=name, unit=unit, value=value)
