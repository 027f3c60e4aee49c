import logging
import random
import time
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from txnrisk.config.settings import ScoringConfig, get_config
from txnrisk.core.rules import ScoringRuleEngine, default_rules
from txnrisk.monitoring.logging_config import AuditLogger
from txnrisk.monitoring.metrics import MetricsCollector, create_collector
from txnrisk.schema.transaction import RiskAnalysis, RiskLevel, Transaction

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))

class RiskScorer:
    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        metrics: Optional[MetricsCollector] = None,
        audit: Optional[AuditLogger] = None
    ):
        self.config = config or get_config().scoring
        if not self.config.validate():
            raise ValueError("Invalid scoring configuration")

        self.clock = clock or datetime.now
        self.rng = rng or random.Random()
        self.metrics = metrics
        self.audit = audit
        self.engine = ScoringRuleEngine(default_rules(self.config))
        self.logger = logging.getLogger(__name__)

    def score(self, transaction: Transaction) -> RiskAnalysis:
        start = time.perf_counter()
        context = {"now": self.clock()}

        risk_score = 0.0
        anomaly_score = 0.0
        reasons = []
        for rule_name, contribution in self.engine.evaluate_transaction(transaction, context):
            risk_score += contribution.risk
            anomaly_score += contribution.anomaly
            reasons.append(contribution.reason or rule_name)

        risk_score = clamp(risk_score + self._jitter())
        anomaly_score = clamp(anomaly_score + self._jitter())

        risk_level = self.classify(risk_score, anomaly_score)
        requires_review = self.requires_review(risk_level, transaction.amount)
        fraud_probability = (
            risk_score * self.config.risk_blend_weight
            + anomaly_score * self.config.anomaly_blend_weight
        )

        analysis = RiskAnalysis(
            risk_score=round(risk_score, 2),
            anomaly_score=round(anomaly_score, 2),
            risk_level=risk_level,
            fraud_probability=round(fraud_probability, 2),
            requires_review=requires_review,
            reasons=reasons
        )

        self.logger.debug(
            f"Scored transaction {transaction.id or '<unsaved>'}: "
            f"risk={analysis.risk_score:.2f} anomaly={analysis.anomaly_score:.2f} "
            f"level={risk_level.value} review={requires_review}"
        )
        if risk_level == RiskLevel.HIGH:
            self.logger.warning(
                f"High-risk transaction {transaction.id or '<unsaved>'}: {'; '.join(reasons)}"
            )

        if self.metrics:
            self.metrics.record_assessment(analysis, time.perf_counter() - start)
        if self.audit:
            self.audit.log_risk_assessment(
                transaction_id=transaction.id,
                channel=transaction.channel,
                amount=transaction.amount,
                risk_level=risk_level.value,
                risk_score=analysis.risk_score,
                anomaly_score=analysis.anomaly_score,
                requires_review=requires_review,
                reasons=reasons
            )

        return analysis

    def score_batch(self, transactions: Iterable[Transaction]) -> List[Tuple[Transaction, RiskAnalysis]]:
        results = [(tx, self.score(tx)) for tx in transactions]
        if self.metrics:
            self.metrics.record_batch_size(len(results))
        return results

    def classify(self, risk_score: float, anomaly_score: float) -> RiskLevel:
        if risk_score > self.config.high_risk_threshold or anomaly_score > self.config.high_anomaly_threshold:
            return RiskLevel.HIGH
        if risk_score > self.config.medium_risk_threshold or anomaly_score > self.config.medium_anomaly_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def requires_review(self, risk_level: RiskLevel, amount: float) -> bool:
        if risk_level in (RiskLevel.HIGH, RiskLevel.MEDIUM):
            return True
        # Low risk but large transfers still need a human
        return amount > self.config.review_amount_threshold

    def _jitter(self) -> float:
        if self.config.jitter_magnitude == 0:
            return 0.0
        return (self.rng.random() - 0.5) * self.config.jitter_magnitude

_default_scorer: Optional[RiskScorer] = None

def get_scorer() -> RiskScorer:
    global _default_scorer
    if _default_scorer is None:
        _default_scorer = RiskScorer(metrics=create_collector())
    return _default_scorer

def score(transaction: Transaction) -> RiskAnalysis:
    return get_scorer().score(transaction)

def score_batch(transactions: Iterable[Transaction]) -> List[Tuple[Transaction, RiskAnalysis]]:
    return get_scorer().score_batch(transactions)
