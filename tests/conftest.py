import random
from datetime import datetime

import pytest

from txnrisk.config.settings import ScoringConfig
from txnrisk.core.scorer import RiskScorer
from txnrisk.schema.transaction import Transaction

# Wednesday mid-morning: no time-of-day or weekend weight
WEEKDAY_MORNING = datetime(2024, 7, 10, 11, 0, 0)


@pytest.fixture
def now():
    return WEEKDAY_MORNING


@pytest.fixture
def quiet_config():
    """Default weights with jitter switched off."""
    return ScoringConfig(jitter_magnitude=0.0)


@pytest.fixture
def make_scorer(quiet_config):
    def _make(moment=WEEKDAY_MORNING, config=None, **kwargs):
        return RiskScorer(
            config=config or quiet_config,
            clock=lambda: moment,
            rng=kwargs.pop("rng", random.Random(7)),
            **kwargs
        )
    return _make


@pytest.fixture
def scorer(make_scorer):
    return make_scorer()


@pytest.fixture
def clean_transaction():
    # Contributes only the NEFT channel weight (0.15) under the default config
    return Transaction(
        id="txn-1",
        amount=25_000.0,
        channel="NEFT",
        beneficiary_name="Priya Sharma",
        beneficiary_account="123456789012",
        beneficiary_phone="9876543210",
        beneficiary_ifsc="HDFC0001234",
        sender_account="987654321098",
        sender_latitude=19.0760,
        sender_longitude=72.8777,
        created_at=WEEKDAY_MORNING,
    )
