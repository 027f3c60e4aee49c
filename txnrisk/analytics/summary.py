import logging
from typing import Any, Dict, Iterable, Mapping

import numpy as np
import pandas as pd

from txnrisk.schema.transaction import parse_timestamp

logger = logging.getLogger(__name__)

RISK_LEVELS = ["low", "medium", "high"]

SCORE_BINS = [0.0, 0.2, 0.4, 0.6, 0.8, np.inf]
SCORE_LABELS = ["Very Low", "Low", "Medium", "High", "Very High"]
SCORE_RANGES = ["0-0.2", "0.2-0.4", "0.4-0.6", "0.6-0.8", "0.8-1.0"]

# (region, lat_min, lat_max, lng_min, lng_max), first match wins
INDIA_REGIONS = [
    ("North India", 28, 32, 75, 80),
    ("West India", 19, 28, 72, 88),
    ("South India", 8, 20, 75, 80),
    ("East India", 20, 28, 80, 90),
    ("Northwest India", 24, 32, 68, 75),
    ("Northeast India", 22, 28, 88, 97),
]

def to_frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame([dict(r) for r in records])
    for column, default in (
        ("risk_level", None), ("risk_score", 0.0), ("channel", None), ("amount", 0.0),
        ("status", None), ("created_at", None),
        ("sender_latitude", np.nan), ("sender_longitude", np.nan),
    ):
        if column not in df.columns:
            df[column] = default
    df["risk_level"] = df["risk_level"].map(lambda v: getattr(v, "value", v))
    df["status"] = df["status"].map(lambda v: getattr(v, "value", v))
    return df

def risk_distribution(records: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    df = to_frame(records)
    counts = df["risk_level"].value_counts()
    return {level: int(counts.get(level, 0)) for level in RISK_LEVELS}

def channel_breakdown(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = to_frame(records)
    columns = ["channel", "total", "total_amount", "high_risk", "medium_risk", "avg_amount"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    df["channel"] = df["channel"].fillna("Unknown").replace("", "Unknown")
    df["is_high"] = (df["risk_level"] == "high").astype(int)
    df["is_medium"] = (df["risk_level"] == "medium").astype(int)

    grouped = df.groupby("channel", sort=False).agg(
        total=("amount", "size"),
        total_amount=("amount", "sum"),
        high_risk=("is_high", "sum"),
        medium_risk=("is_medium", "sum"),
    ).reset_index()
    grouped["avg_amount"] = (grouped["total_amount"] / grouped["total"]).round().astype(int)
    return grouped[columns]

def score_histogram(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = to_frame(records)
    scores = df["risk_score"].fillna(0.0).astype(float)
    buckets = pd.cut(scores, bins=SCORE_BINS, labels=SCORE_RANGES, right=False)
    counts = buckets.value_counts().reindex(SCORE_RANGES, fill_value=0)
    return pd.DataFrame({
        "range": SCORE_RANGES,
        "label": SCORE_LABELS,
        "count": counts.to_numpy(dtype=int),
    })

def _local_hour(value) -> int:
    ts = parse_timestamp(value)
    if isinstance(ts, pd.Timestamp):
        ts = ts.to_pydatetime()
    # Aware timestamps are bucketed by the local wall clock
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.hour

def hourly_activity(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = to_frame(records)
    hours = df["created_at"].map(lambda v: _local_hour(v) if pd.notna(v) else np.nan)
    df = df.assign(hour=hours).dropna(subset=["hour"])
    df = df.assign(
        hour=df["hour"].astype(int),
        is_high=(df["risk_level"] == "high").astype(int),
    )

    grouped = df.groupby("hour").agg(transactions=("is_high", "size"), high_risk=("is_high", "sum"))
    grouped = grouped.reindex(range(24), fill_value=0)
    return pd.DataFrame({
        "hour": [f"{h}:00" for h in range(24)],
        "transactions": grouped["transactions"].to_numpy(dtype=int),
        "high_risk": grouped["high_risk"].to_numpy(dtype=int),
    })

def region_breakdown(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = to_frame(records)
    df = df.dropna(subset=["sender_latitude", "sender_longitude"])
    if df.empty:
        return pd.DataFrame(columns=["region", "count", "high_risk"])

    lat = df["sender_latitude"].astype(float).to_numpy()
    lng = df["sender_longitude"].astype(float).to_numpy()
    conditions = [
        (lat >= lat_min) & (lat <= lat_max) & (lng >= lng_min) & (lng <= lng_max)
        for _, lat_min, lat_max, lng_min, lng_max in INDIA_REGIONS
    ]
    df = df.assign(
        region=np.select(conditions, [r[0] for r in INDIA_REGIONS], default="Other"),
        is_high=(df["risk_level"] == "high").astype(int),
    )
    return df.groupby("region", sort=False).agg(
        count=("is_high", "size"), high_risk=("is_high", "sum")
    ).reset_index()

def review_stats(records: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    df = to_frame(records)
    return {
        "total": int(len(df)),
        "flagged": int((df["risk_level"] == "high").sum()),
        "approved": int((df["status"] == "approved").sum()),
        "rejected": int((df["status"] == "rejected").sum()),
        "pending": int((df["status"] == "pending").sum()),
    }
