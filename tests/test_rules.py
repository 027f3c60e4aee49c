from dataclasses import replace
from datetime import datetime

import pytest

from txnrisk.config.settings import ScoringConfig
from txnrisk.core.rules import (
    NO_CONTRIBUTION,
    CrossChannelRule,
    RoundAmountRule,
    RuleContribution,
    ScoringRule,
    ScoringRuleEngine,
    TimeOfDayRule,
    default_rules,
)


class FlatRule(ScoringRule):
    def __init__(self, name, risk, **kwargs):
        super().__init__(name=name, **kwargs)
        self.risk = risk

    def evaluate(self, transaction, context):
        return RuleContribution(risk=self.risk, reason=self.name)


@pytest.fixture
def config():
    return ScoringConfig(jitter_magnitude=0.0)


@pytest.fixture
def context(now):
    return {"now": now}


def test_contribution_fired():
    assert not NO_CONTRIBUTION.fired
    assert RuleContribution(anomaly=-0.1).fired


def test_round_amount_checks_stack(config, clean_transaction, context):
    rule = RoundAmountRule(config)

    assert rule.evaluate(replace(clean_transaction, amount=600_000.0), context).anomaly == pytest.approx(0.5)
    assert rule.evaluate(replace(clean_transaction, amount=110_000.0), context).anomaly == pytest.approx(0.2)
    assert rule.evaluate(replace(clean_transaction, amount=100_000.0), context) is NO_CONTRIBUTION
    assert rule.evaluate(replace(clean_transaction, amount=110_000.5), context) is NO_CONTRIBUTION


def test_cross_channel_rule(config, clean_transaction, context):
    rule = CrossChannelRule(config)

    upi = rule.evaluate(replace(clean_transaction, channel="UPI", amount=75_000.0), context)
    rtgs = rule.evaluate(replace(clean_transaction, channel="RTGS", amount=250_000.0), context)

    assert (upi.risk, upi.anomaly) == (0.2, 0.0)
    assert (rtgs.risk, rtgs.anomaly) == (0.0, 0.1)
    assert rule.evaluate(clean_transaction, context) is NO_CONTRIBUTION


def test_time_of_day_reads_clock_not_created_at(config, clean_transaction):
    rule = TimeOfDayRule(config)
    tx = replace(clean_transaction, created_at=datetime(2024, 7, 10, 3, 0))

    assert rule.evaluate(tx, {"now": datetime(2024, 7, 10, 12, 0)}) is NO_CONTRIBUTION
    assert rule.evaluate(tx, {"now": datetime(2024, 7, 10, 1, 0)}).risk == pytest.approx(0.3)


def test_engine_only_reports_fired_rules(config, clean_transaction, context):
    engine = ScoringRuleEngine(default_rules(config))
    results = engine.evaluate_transaction(clean_transaction, context)

    assert [name for name, _ in results] == ["channel_weight"]


def test_engine_priority_order(clean_transaction, context):
    engine = ScoringRuleEngine([FlatRule("first", 0.1), FlatRule("second", 0.2)])
    engine.add_rule(FlatRule("urgent", 0.3, priority=10))

    names = [name for name, _ in engine.evaluate_transaction(clean_transaction, context)]
    assert names == ["urgent", "first", "second"]


def test_engine_remove_enable_disable(clean_transaction, context):
    engine = ScoringRuleEngine([FlatRule("a", 0.1), FlatRule("b", 0.2)])

    assert engine.disable_rule("a")
    assert [n for n, _ in engine.evaluate_transaction(clean_transaction, context)] == ["b"]
    assert engine.enable_rule("a")
    assert engine.remove_rule("b")
    assert not engine.remove_rule("b")
    assert not engine.disable_rule("missing")

    assert engine.list_rules() == [
        {"name": "a", "enabled": True, "priority": 0, "type": "FlatRule"},
    ]
