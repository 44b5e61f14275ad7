"""
Prometheus metrics collection for bioledger

Instruments ingestion throughput, dedup outcomes, corrections, derived
alert/insight volumes and the HPLC connector simulation.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Private registry so importing the library never touches the global one
REGISTRY = CollectorRegistry()


# =======================
# LEDGER METRICS
# =======================

records_ingested_total = Counter(
    name="ledger_records_ingested_total",
    documentation="Records offered to the ledger, by merge outcome",
    labelnames=["interface_id", "outcome"],  # outcome: new, duplicate
    registry=REGISTRY,
)

corrections_total = Counter(
    name="ledger_corrections_total",
    documentation="Correction records appended to the ledger",
    labelnames=["interface_id"],
    registry=REGISTRY,
)

ledger_size = Gauge(
    name="ledger_size_records",
    documentation="Current number of records held by a ledger",
    labelnames=["ledger"],
    registry=REGISTRY,
)

# =======================
# INGESTION METRICS
# =======================

ingestion_duration_seconds = Histogram(
    name="ingestion_duration_seconds",
    documentation="Time spent building and merging one source family",
    labelnames=["family"],  # family: timeseries, events, auxiliary
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
    registry=REGISTRY,
)

quality_flags_total = Counter(
    name="ingestion_quality_flags_total",
    documentation="Quality flags assigned at ingestion time",
    labelnames=["flag"],
    registry=REGISTRY,
)

# =======================
# DERIVED ANALYTICS METRICS
# =======================

alerts_active = Gauge(
    name="quality_alerts_active",
    documentation="Alerts produced by the last rule evaluation",
    labelnames=["severity"],
    registry=REGISTRY,
)

insights_active = Gauge(
    name="quality_insights_active",
    documentation="Insights produced by the last insight generation",
    labelnames=["severity"],
    registry=REGISTRY,
)

rule_evaluation_duration_seconds = Histogram(
    name="quality_rule_evaluation_duration_seconds",
    documentation="Time spent evaluating all alert rules over a ledger snapshot",
    labelnames=["engine"],  # engine: alerts, insights
    buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

# =======================
# CONNECTOR METRICS
# =======================

connector_artifacts_total = Counter(
    name="connector_artifacts_total",
    documentation="Artifacts produced by a simulated instrument connector",
    labelnames=["interface_id", "kind"],  # kind: report, summary
    registry=REGISTRY,
)

connector_alerts_total = Counter(
    name="connector_alerts_total",
    documentation="Companion-timeout alert transitions",
    labelnames=["interface_id", "transition"],  # transition: raised, resolved
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type for the Prometheus text exposition format"""
    return CONTENT_TYPE_LATEST


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(ingestion_duration_seconds, family="timeseries"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value <= 0:
        return
    counter.labels(**labels).inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    """
    Set a gauge metric value

    Args:
        gauge: Prometheus Gauge metric
        value: Value to set
        **labels: Label values for the metric
    """
    gauge.labels(**labels).set(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """Observe a value in a histogram metric"""
    histogram.labels(**labels).observe(value)


def record_severity_counts(gauge: Gauge, counts: dict[str, int]) -> None:
    """
    Publish a severity histogram (as produced by the alert and insight
    engines) into a severity-labelled gauge.
    """
    for severity, count in counts.items():
        set_gauge(gauge, count, severity=severity)
