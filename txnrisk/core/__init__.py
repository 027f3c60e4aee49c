from txnrisk.core.geo import geo_anomaly_risk, haversine
from txnrisk.core.scorer import RiskScorer, score, score_batch
from txnrisk.core.velocity import velocity_risk

__all__ = [
    "RiskScorer",
    "score",
    "score_batch",
    "velocity_risk",
    "geo_anomaly_risk",
    "haversine",
]
