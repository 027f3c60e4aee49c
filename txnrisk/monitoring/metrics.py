import time
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST
)

from txnrisk.config.settings import MonitoringConfig, get_config

logger = logging.getLogger(__name__)

SCORE_BUCKETS = [0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0]

@dataclass
class MetricSnapshot:
    timestamp: float = field(default_factory=time.time)
    transaction_count: int = 0
    high_risk_count: int = 0
    review_required_count: int = 0
    avg_latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "transaction_count": self.transaction_count,
            "high_risk_count": self.high_risk_count,
            "review_required_count": self.review_required_count,
            "avg_latency_ms": self.avg_latency_ms,
            "high_risk_rate": (
                self.high_risk_count / self.transaction_count
                if self.transaction_count > 0 else 0.0
            ),
            "review_rate": (
                self.review_required_count / self.transaction_count
                if self.transaction_count > 0 else 0.0
            )
        }

class MetricsCollector:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger(__name__)

        # Scoring metrics
        self.transaction_counter = Counter(
            'txnrisk_transactions_scored_total',
            'Total number of transactions scored',
            ['risk_level'],  # Labels: low, medium, high
            registry=self.registry
        )

        self.review_counter = Counter(
            'txnrisk_reviews_required_total',
            'Transactions routed to manual review',
            registry=self.registry
        )

        self.risk_score_distribution = Histogram(
            'txnrisk_risk_score',
            'Distribution of risk scores',
            buckets=SCORE_BUCKETS,
            registry=self.registry
        )

        self.anomaly_score_distribution = Histogram(
            'txnrisk_anomaly_score',
            'Distribution of anomaly scores',
            buckets=SCORE_BUCKETS,
            registry=self.registry
        )

        # Performance metrics
        self.scoring_latency = Histogram(
            'txnrisk_scoring_latency_seconds',
            'Risk scoring latency',
            buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1],
            registry=self.registry
        )

        self.batch_size = Histogram(
            'txnrisk_batch_size',
            'Number of transactions per scoring batch',
            buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
            registry=self.registry
        )

        # Supplementary signals
        self.velocity_risk = Histogram(
            'txnrisk_velocity_risk',
            'Velocity risk contributions',
            buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8],
            registry=self.registry
        )

        self.geo_anomaly_counter = Counter(
            'txnrisk_geo_anomalies_total',
            'Implausible-travel detections',
            registry=self.registry
        )

        # Review workflow
        self.review_decision_counter = Counter(
            'txnrisk_review_decisions_total',
            'Administrator review decisions',
            ['decision'],  # Labels: approved, rejected
            registry=self.registry
        )

        # Internal state
        self._transaction_count = 0
        self._high_risk_count = 0
        self._review_count = 0
        self._latencies = []

    def record_assessment(self, analysis, latency_seconds: float):
        level = analysis.risk_level.value
        self.transaction_counter.labels(risk_level=level).inc()
        self.risk_score_distribution.observe(analysis.risk_score)
        self.anomaly_score_distribution.observe(analysis.anomaly_score)
        self.record_scoring_latency(latency_seconds)

        self._transaction_count += 1
        if level == "high":
            self._high_risk_count += 1
        if analysis.requires_review:
            self.review_counter.inc()
            self._review_count += 1

    def record_scoring_latency(self, latency_seconds: float):
        self.scoring_latency.observe(latency_seconds)
        self._latencies.append(latency_seconds)

        # Keep only last 1000 measurements
        if len(self._latencies) > 1000:
            self._latencies = self._latencies[-1000:]

    def record_batch_size(self, size: int):
        self.batch_size.observe(size)

    def record_velocity_risk(self, value: float):
        self.velocity_risk.observe(value)

    def record_geo_anomaly(self, value: float):
        if value > 0:
            self.geo_anomaly_counter.inc()

    def record_review_decision(self, decision: str):
        self.review_decision_counter.labels(decision=decision).inc()

    def get_metrics(self) -> Dict[str, Any]:
        avg_latency_ms = (
            sum(self._latencies) / len(self._latencies) * 1000
            if self._latencies else 0.0
        )
        return {
            "transaction_count": self._transaction_count,
            "high_risk_count": self._high_risk_count,
            "review_required_count": self._review_count,
            "avg_latency_ms": avg_latency_ms
        }

    def get_snapshot(self) -> MetricSnapshot:
        metrics = self.get_metrics()
        return MetricSnapshot(
            transaction_count=metrics["transaction_count"],
            high_risk_count=metrics["high_risk_count"],
            review_required_count=metrics["review_required_count"],
            avg_latency_ms=metrics["avg_latency_ms"]
        )

    def export_metrics(self) -> bytes:
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

def create_collector(config: Optional[MonitoringConfig] = None) -> Optional[MetricsCollector]:
    config = config or get_config().monitoring
    if not config.enable_prometheus:
        logger.info("Prometheus metrics disabled")
        return None
    return MetricsCollector()
