import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Tuple

from txnrisk.config.settings import ReviewConfig, get_config
from txnrisk.monitoring.logging_config import AuditLogger
from txnrisk.monitoring.metrics import MetricsCollector
from txnrisk.schema.transaction import RiskAnalysis, RiskLevel

logger = logging.getLogger(__name__)

class TransactionStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPROVED = "auto_approved"

class ReviewAction(Enum):
    APPROVE = "transaction_approve"
    REJECT = "transaction_reject"

class InvalidTransition(ValueError):
    pass

@dataclass(frozen=True)
class ReviewRecord:
    transaction_id: str
    status: TransactionStatus
    requires_review: bool
    updated_at: Optional[datetime] = None

@dataclass(frozen=True)
class AuditLogEntry:
    transaction_id: str
    admin_id: str
    action: ReviewAction
    old_status: TransactionStatus
    new_status: TransactionStatus
    reason: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self):
        return {
            "transaction_id": self.transaction_id,
            "admin_id": self.admin_id,
            "action": self.action.value,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat()
        }

_DECISIONS = {
    ReviewAction.APPROVE: TransactionStatus.APPROVED,
    ReviewAction.REJECT: TransactionStatus.REJECTED,
}

def initial_status(
    analysis: RiskAnalysis,
    amount: float,
    config: Optional[ReviewConfig] = None
) -> Tuple[TransactionStatus, bool]:
    config = config or get_config().review
    if analysis.risk_level == RiskLevel.LOW and amount < config.auto_approve_amount:
        return TransactionStatus.AUTO_APPROVED, False
    return TransactionStatus.PENDING, analysis.requires_review

class ReviewWorkflow:
    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        audit: Optional[AuditLogger] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.clock = clock or datetime.now
        self.audit = audit or AuditLogger()
        self.metrics = metrics

    def open(self, transaction_id: str, analysis: RiskAnalysis, amount: float,
             config: Optional[ReviewConfig] = None) -> ReviewRecord:
        status, requires_review = initial_status(analysis, amount, config)
        return ReviewRecord(
            transaction_id=transaction_id,
            status=status,
            requires_review=requires_review,
            updated_at=self.clock()
        )

    def approve(self, record: ReviewRecord, admin_id: str,
                reason: str) -> Tuple[ReviewRecord, AuditLogEntry]:
        return self.decide(record, ReviewAction.APPROVE, admin_id, reason)

    def reject(self, record: ReviewRecord, admin_id: str,
               reason: str) -> Tuple[ReviewRecord, AuditLogEntry]:
        return self.decide(record, ReviewAction.REJECT, admin_id, reason)

    def decide(
        self,
        record: ReviewRecord,
        action: ReviewAction,
        admin_id: str,
        reason: str
    ) -> Tuple[ReviewRecord, AuditLogEntry]:
        if record.status != TransactionStatus.PENDING:
            raise InvalidTransition(
                f"Transaction {record.transaction_id} is {record.status.value}; "
                f"only pending transactions can be reviewed"
            )
        if not admin_id:
            raise InvalidTransition("A review decision needs an administrator id")
        if not reason or not reason.strip():
            raise InvalidTransition("A review decision needs a reason")

        now = self.clock()
        new_status = _DECISIONS[action]
        updated = replace(record, status=new_status, requires_review=False, updated_at=now)
        entry = AuditLogEntry(
            transaction_id=record.transaction_id,
            admin_id=admin_id,
            action=action,
            old_status=record.status,
            new_status=new_status,
            reason=reason.strip(),
            created_at=now
        )

        self.audit.log_review_decision(
            transaction_id=record.transaction_id,
            admin_id=admin_id,
            action=action.value,
            old_status=record.status.value,
            new_status=new_status.value,
            reason=entry.reason
        )
        if self.metrics:
            self.metrics.record_review_decision(new_status.value)

        return updated, entry
