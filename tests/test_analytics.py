import time

import pytest

from txnrisk.analytics.summary import (
    SCORE_RANGES,
    channel_breakdown,
    hourly_activity,
    region_breakdown,
    review_stats,
    risk_distribution,
    score_histogram,
)
from txnrisk.core.review import TransactionStatus
from txnrisk.schema.transaction import RiskLevel


@pytest.fixture
def local_tz(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is unavailable on this platform")

    def _set(tz):
        monkeypatch.setenv("TZ", tz)
        time.tzset()

    yield _set
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def records():
    """Scored transaction rows as the application stores them."""
    return [
        {"channel": "UPI", "amount": 10_000.0, "risk_level": "high", "risk_score": 0.85,
         "status": "pending", "created_at": "2024-07-10T09:15:00Z",
         "sender_latitude": 19.0760, "sender_longitude": 72.8777},
        {"channel": "UPI", "amount": 30_000.0, "risk_level": RiskLevel.LOW, "risk_score": 0.1,
         "status": TransactionStatus.AUTO_APPROVED, "created_at": "2024-07-10T09:45:00Z",
         "sender_latitude": 28.6139, "sender_longitude": 77.2090},
        {"channel": "NEFT", "amount": 5_000.0, "risk_level": "medium", "risk_score": 0.45,
         "status": "approved", "created_at": "2024-07-10T23:05:00Z",
         "sender_latitude": 12.9716, "sender_longitude": 77.5946},
        {"channel": None, "amount": 1_000.0, "risk_level": "low", "risk_score": 0.2,
         "status": "rejected", "created_at": None,
         "sender_latitude": 51.5074, "sender_longitude": -0.1278},
        {"channel": "RTGS", "amount": 400_000.0, "risk_level": "high", "risk_score": 1.0,
         "status": "pending", "created_at": "2024-07-11T09:00:00Z",
         "sender_latitude": None, "sender_longitude": None},
    ]


def test_risk_distribution(records):
    assert risk_distribution(records) == {"low": 2, "medium": 1, "high": 2}


def test_risk_distribution_empty():
    assert risk_distribution([]) == {"low": 0, "medium": 0, "high": 0}


def test_channel_breakdown(records):
    df = channel_breakdown(records).set_index("channel")

    assert list(df.index) == ["UPI", "NEFT", "Unknown", "RTGS"]
    assert df.loc["UPI", "total"] == 2
    assert df.loc["UPI", "total_amount"] == 40_000.0
    assert df.loc["UPI", "high_risk"] == 1
    assert df.loc["UPI", "avg_amount"] == 20_000
    assert df.loc["NEFT", "medium_risk"] == 1
    assert df.loc["Unknown", "total"] == 1


def test_channel_breakdown_empty():
    df = channel_breakdown([])
    assert df.empty
    assert "avg_amount" in df.columns


def test_score_histogram(records):
    df = score_histogram(records)

    assert list(df["range"]) == SCORE_RANGES
    assert list(df["label"]) == ["Very Low", "Low", "Medium", "High", "Very High"]
    # Lower bounds are inclusive, so 0.2 lands in the second bucket
    assert list(df["count"]) == [1, 1, 1, 0, 2]


def test_hourly_activity(records, local_tz):
    local_tz("UTC0")
    df = hourly_activity(records)

    assert len(df) == 24
    assert df.loc[9, "hour"] == "9:00"
    assert df.loc[9, "transactions"] == 3
    assert df.loc[9, "high_risk"] == 2
    assert df.loc[23, "transactions"] == 1
    assert df["transactions"].sum() == 4


def test_hourly_activity_uses_local_clock(records, local_tz):
    local_tz("IST-5:30")
    df = hourly_activity(records)

    # 09:15Z and 09:00Z both fall in the 14:00 hour in India
    assert df.loc[14, "transactions"] == 2
    assert df.loc[14, "high_risk"] == 2
    assert df.loc[15, "transactions"] == 1
    assert df.loc[4, "transactions"] == 1
    assert df.loc[9, "transactions"] == 0


def test_region_breakdown(records):
    df = region_breakdown(records).set_index("region")

    assert df.loc["West India", "count"] == 1
    assert df.loc["West India", "high_risk"] == 1
    assert df.loc["North India", "count"] == 1
    assert df.loc["South India", "count"] == 1
    assert df.loc["Other", "count"] == 1
    assert df["count"].sum() == 4


def test_region_breakdown_without_locations():
    df = region_breakdown([{"risk_level": "low", "amount": 1.0}])
    assert df.empty


def test_review_stats(records):
    assert review_stats(records) == {
        "total": 5,
        "flagged": 2,
        "approved": 1,
        "rejected": 1,
        "pending": 2,
    }
