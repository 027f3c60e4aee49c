import json
import logging

import pytest

from txnrisk.config.settings import MonitoringConfig
from txnrisk.monitoring.logging_config import AuditLogger, StructuredFormatter, configure_logging, setup_logging
from txnrisk.monitoring.metrics import MetricsCollector, create_collector
from txnrisk.schema.transaction import RiskAnalysis, RiskLevel


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _analysis(level, review):
    return RiskAnalysis(
        risk_score=0.9 if level == RiskLevel.HIGH else 0.1,
        anomaly_score=0.0,
        risk_level=level,
        fraud_probability=0.5,
        requires_review=review,
    )


def test_collectors_are_isolated():
    """Each collector owns its registry, so two can coexist."""
    first, second = MetricsCollector(), MetricsCollector()
    first.record_assessment(_analysis(RiskLevel.LOW, False), 0.001)

    assert first.get_metrics()["transaction_count"] == 1
    assert second.get_metrics()["transaction_count"] == 0


def test_assessment_counters(metrics):
    metrics.record_assessment(_analysis(RiskLevel.HIGH, True), 0.002)
    metrics.record_assessment(_analysis(RiskLevel.LOW, False), 0.004)

    registry = metrics.registry
    assert registry.get_sample_value("txnrisk_transactions_scored_total", {"risk_level": "high"}) == 1.0
    assert registry.get_sample_value("txnrisk_transactions_scored_total", {"risk_level": "low"}) == 1.0
    assert registry.get_sample_value("txnrisk_reviews_required_total") == 1.0
    assert metrics.get_metrics()["avg_latency_ms"] == pytest.approx(3.0)


def test_snapshot_rates(metrics):
    assert metrics.get_snapshot().to_dict()["high_risk_rate"] == 0.0

    metrics.record_assessment(_analysis(RiskLevel.HIGH, True), 0.001)
    metrics.record_assessment(_analysis(RiskLevel.LOW, False), 0.001)

    snapshot = metrics.get_snapshot().to_dict()
    assert snapshot["high_risk_rate"] == 0.5
    assert snapshot["review_rate"] == 0.5


def test_export(metrics):
    metrics.record_batch_size(3)
    body = metrics.export_metrics()

    assert b"txnrisk_batch_size_count 1.0" in body
    assert metrics.get_content_type().startswith("text/plain")


def test_structured_formatter():
    record = logging.LogRecord("txnrisk.test", logging.INFO, __file__, 10, "Scored %s", ("txn-1",), None)
    record.extra_fields = {"risk_level": "low"}

    data = json.loads(StructuredFormatter().format(record))

    assert data["message"] == "Scored txn-1"
    assert data["level"] == "INFO"
    assert data["logger"] == "txnrisk.test"
    assert data["risk_level"] == "low"


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "txnrisk.log"
    setup_logging(level="DEBUG", format_type="structured", log_file=str(log_file))

    logging.getLogger("txnrisk.test").info("hello")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert restore_root_logger.level == logging.DEBUG
    line = log_file.read_text().strip().splitlines()[-1]
    assert json.loads(line)["message"] == "hello"


def test_audit_logger_risk_assessment(caplog):
    audit = AuditLogger()
    caplog.set_level(logging.INFO, logger="txnrisk.audit")

    audit.log_risk_assessment(
        transaction_id="txn-1", channel="UPI", amount=60_000.0, risk_level="medium",
        risk_score=0.5, anomaly_score=0.0, requires_review=True, reasons=["Channel UPI"],
    )

    fields = caplog.records[-1].extra_fields
    assert fields["event_type"] == "risk_assessment"
    assert fields["risk_level"] == "medium"
    assert fields["reasons"] == ["Channel UPI"]


def test_scorer_audits_assessments(make_scorer, clean_transaction, caplog):
    caplog.set_level(logging.INFO, logger="txnrisk.audit")
    scorer = make_scorer(audit=AuditLogger())

    scorer.score(clean_transaction)

    audit_records = [r for r in caplog.records if r.name == "txnrisk.audit"]
    assert len(audit_records) == 1
    assert audit_records[0].extra_fields["transaction_id"] == "txn-1"
    assert audit_records[0].extra_fields["risk_score"] == 0.15


def test_configure_logging_from_config(tmp_path, restore_root_logger):
    log_file = tmp_path / "txnrisk.log"
    configure_logging(MonitoringConfig(log_level="WARNING", log_format="standard", log_file=str(log_file)))

    logging.getLogger("txnrisk.test").info("dropped")
    logging.getLogger("txnrisk.test").warning("kept")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert restore_root_logger.level == logging.WARNING
    content = log_file.read_text()
    assert "kept" in content
    assert "dropped" not in content
    assert " - WARNING - " in content


def test_create_collector_respects_toggle():
    assert create_collector(MonitoringConfig(enable_prometheus=False)) is None
    assert isinstance(create_collector(MonitoringConfig(enable_prometheus=True)), MetricsCollector)
