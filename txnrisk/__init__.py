from txnrisk.core import RiskScorer, geo_anomaly_risk, haversine, score, score_batch, velocity_risk
from txnrisk.schema.transaction import Channel, RiskAnalysis, RiskLevel, Transaction

__version__ = "0.1.0"

__all__ = [
    "Channel",
    "RiskAnalysis",
    "RiskLevel",
    "RiskScorer",
    "Transaction",
    "geo_anomaly_risk",
    "haversine",
    "score",
    "score_batch",
    "velocity_risk",
]
