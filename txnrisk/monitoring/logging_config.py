import logging
import json
import sys
from typing import List, Optional
from datetime import datetime, timezone

from txnrisk.config.settings import MonitoringConfig, get_config

class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)

def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    log_file: Optional[str] = None
):
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)

    if format_type == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    # File handler
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Configure root logger
    logging.basicConfig(
        level=numeric_level,
        handlers=handlers,
        force=True
    )

def configure_logging(config: Optional[MonitoringConfig] = None):
    config = config or get_config().monitoring
    setup_logging(
        level=config.log_level,
        format_type=config.log_format,
        log_file=config.log_file
    )

class AuditLogger:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("txnrisk.audit")

    def log_risk_assessment(
        self,
        transaction_id: Optional[str],
        channel: str,
        amount: float,
        risk_level: str,
        risk_score: float,
        anomaly_score: float,
        requires_review: bool,
        reasons: List[str]
    ):
        self.logger.info(
            "Risk assessment",
            extra={
                "extra_fields": {
                    "event_type": "risk_assessment",
                    "transaction_id": transaction_id,
                    "channel": channel,
                    "amount": amount,
                    "risk_level": risk_level,
                    "risk_score": risk_score,
                    "anomaly_score": anomaly_score,
                    "requires_review": requires_review,
                    "reasons": reasons
                }
            }
        )

    def log_review_decision(
        self,
        transaction_id: Optional[str],
        admin_id: str,
        action: str,
        old_status: str,
        new_status: str,
        reason: Optional[str] = None
    ):
        self.logger.info(
            "Review decision",
            extra={
                "extra_fields": {
                    "event_type": "review_decision",
                    "transaction_id": transaction_id,
                    "admin_id": admin_id,
                    "action": action,
                    "old_status": old_status,
                    "new_status": new_status,
                    "reason": reason
                }
            }
        )
