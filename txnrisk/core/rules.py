import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

from txnrisk.config.settings import ScoringConfig
from txnrisk.schema.transaction import Channel, Transaction

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class RuleContribution:
    risk: float = 0.0
    anomaly: float = 0.0
    reason: str = ""

    @property
    def fired(self) -> bool:
        return self.risk != 0.0 or self.anomaly != 0.0

NO_CONTRIBUTION = RuleContribution()

def _channel_key(transaction: Transaction) -> str:
    channel = Channel.parse(transaction.channel)
    return channel.value if channel else transaction.channel

class ScoringRule(ABC):
    def __init__(self, name: str, enabled: bool = True, priority: int = 0):
        self.name = name
        self.enabled = enabled
        self.priority = priority

    @abstractmethod
    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, enabled={self.enabled})"

class AmountTierRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="amount_tier", **kwargs)
        self.tiers = config.amount_tiers

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        for tier in self.tiers:
            if transaction.amount > tier.threshold:
                return RuleContribution(
                    risk=tier.weight,
                    reason=f"Amount above {tier.threshold:,.0f}"
                )
        return NO_CONTRIBUTION

class ChannelWeightRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="channel_weight", **kwargs)
        self.weights = config.channel_weights
        self.unknown_weight = config.unknown_channel_weight

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        channel = _channel_key(transaction)
        if channel in self.weights:
            return RuleContribution(
                risk=self.weights[channel],
                reason=f"Channel {channel}"
            )
        return RuleContribution(
            risk=self.unknown_weight,
            reason=f"Unknown channel: {transaction.channel!r}"
        )

def _in_bands(hour: int, bands: Sequence[Tuple[int, int]]) -> bool:
    return any(start <= hour <= end for start, end in bands)

class TimeOfDayRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="time_of_day", **kwargs)
        self.config = config

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        hour = context["now"].hour
        risk = 0.0
        reasons = []

        # Bands overlap around midnight and add up
        if _in_bands(hour, self.config.off_hours_bands):
            risk += self.config.off_hours_weight
            reasons.append("Off-hours transaction")
        if _in_bands(hour, self.config.late_night_bands):
            risk += self.config.late_night_weight
            reasons.append("Late-night transaction")

        if not reasons:
            return NO_CONTRIBUTION
        return RuleContribution(risk=risk, reason=f"{' / '.join(reasons)} at {hour:02d}h")

class WeekendRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="weekend", **kwargs)
        self.weekend_days = config.weekend_days
        self.weight = config.weekend_weight

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        now: datetime = context["now"]
        if now.weekday() in self.weekend_days:
            return RuleContribution(risk=self.weight, reason="Weekend transaction")
        return NO_CONTRIBUTION

class BeneficiaryNameRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="beneficiary_name", **kwargs)
        self.config = config
        self.uppercase_pattern = re.compile(config.uppercase_name_pattern)

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        name = transaction.beneficiary_name
        anomaly = 0.0
        reasons = []

        if len(name) < self.config.min_name_length:
            anomaly += self.config.short_name_weight
            reasons.append("Very short beneficiary name")
        if self.uppercase_pattern.fullmatch(name):
            anomaly += self.config.uppercase_name_weight
            reasons.append("Bank-style uppercase beneficiary name")

        return RuleContribution(anomaly=anomaly, reason="; ".join(reasons)) if reasons else NO_CONTRIBUTION

class AccountPatternRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="account_pattern", **kwargs)
        self.config = config
        self.repeated_digit_pattern = re.compile(config.repeated_digit_pattern, re.ASCII)

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        risk = 0.0
        anomaly = 0.0
        reasons = []

        if self.repeated_digit_pattern.fullmatch(transaction.beneficiary_account):
            anomaly += self.config.repeated_digit_weight
            reasons.append("Repeated-digit beneficiary account")
        if transaction.sender_account == transaction.beneficiary_account:
            risk += self.config.self_transfer_weight
            reasons.append("Sender and beneficiary accounts are identical")

        if not reasons:
            return NO_CONTRIBUTION
        return RuleContribution(risk=risk, anomaly=anomaly, reason="; ".join(reasons))

class RoutingCodeDenylistRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="routing_denylist", **kwargs)
        self.prefix_length = config.routing_prefix_length
        self.denylist = set(config.routing_denylist)
        self.weight = config.routing_denylist_weight

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        prefix = transaction.beneficiary_ifsc[:self.prefix_length]
        if prefix in self.denylist:
            return RuleContribution(risk=self.weight, reason=f"Placeholder bank code: {prefix}")
        return NO_CONTRIBUTION

class PhonePatternRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="phone_pattern", **kwargs)
        self.pattern = re.compile(config.phone_pattern, re.ASCII)
        self.weight = config.invalid_phone_weight

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        if not self.pattern.fullmatch(transaction.beneficiary_phone):
            return RuleContribution(anomaly=self.weight, reason="Beneficiary phone is not a valid mobile number")
        return NO_CONTRIBUTION

class RoundAmountRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="round_amount", **kwargs)
        self.rules = config.round_amount_rules

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        amount = transaction.amount
        anomaly = 0.0
        reasons = []

        for rule in self.rules:
            if amount % rule.divisor == 0 and amount > rule.min_amount:
                anomaly += rule.weight
                reasons.append(f"Multiple of {rule.divisor:,.0f}")

        return RuleContribution(anomaly=anomaly, reason="Round amount: " + ", ".join(reasons)) if reasons else NO_CONTRIBUTION

class GeolocationRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="geolocation", **kwargs)
        self.config = config

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        if not transaction.has_location:
            return RuleContribution(risk=self.config.missing_location_weight, reason="No location data available")

        lat = transaction.sender_latitude
        lng = transaction.sender_longitude
        risk = 0.0
        anomaly = 0.0
        reasons = []

        if not self.config.geo_bounds.contains(lat, lng):
            risk += self.config.out_of_bounds_weight
            reasons.append(f"Location ({lat}, {lng}) outside home region")
        if lat % 1 == 0 and lng % 1 == 0:
            anomaly += self.config.integral_coordinates_weight
            reasons.append("Whole-degree coordinates")

        if not reasons:
            return NO_CONTRIBUTION
        return RuleContribution(risk=risk, anomaly=anomaly, reason="; ".join(reasons))

class CrossChannelRule(ScoringRule):
    def __init__(self, config: ScoringConfig, **kwargs):
        super().__init__(name="cross_channel", **kwargs)
        self.rules = config.cross_channel_rules

    def evaluate(self, transaction: Transaction, context: Dict[str, Any]) -> RuleContribution:
        risk = 0.0
        anomaly = 0.0
        reasons = []

        for rule in self.rules:
            if rule.matches(_channel_key(transaction), transaction.amount):
                risk += rule.risk_weight
                anomaly += rule.anomaly_weight
                reasons.append(f"Unusual {rule.channel} amount ({rule.direction} {rule.limit:,.0f})")

        if not reasons:
            return NO_CONTRIBUTION
        return RuleContribution(risk=risk, anomaly=anomaly, reason="; ".join(reasons))

def default_rules(config: ScoringConfig) -> List[ScoringRule]:
    return [
        AmountTierRule(config),
        ChannelWeightRule(config),
        TimeOfDayRule(config),
        WeekendRule(config),
        BeneficiaryNameRule(config),
        AccountPatternRule(config),
        RoutingCodeDenylistRule(config),
        PhonePatternRule(config),
        RoundAmountRule(config),
        GeolocationRule(config),
        CrossChannelRule(config),
    ]

class ScoringRuleEngine:
    def __init__(self, rules: List[ScoringRule] = None):
        self.rules: List[ScoringRule] = []
        self.logger = logging.getLogger(__name__)
        for rule in rules or []:
            self.add_rule(rule)

    def add_rule(self, rule: ScoringRule) -> None:
        self.rules.append(rule)
        # Stable sort keeps insertion order among equal priorities
        self.rules.sort(key=lambda r: r.priority, reverse=True)
        self.logger.debug(f"Added rule: {rule}")

    def remove_rule(self, rule_name: str) -> bool:
        initial_count = len(self.rules)
        self.rules = [r for r in self.rules if r.name != rule_name]
        removed = len(self.rules) < initial_count
        if removed:
            self.logger.info(f"Removed rule: {rule_name}")
        return removed

    def enable_rule(self, rule_name: str) -> bool:
        for rule in self.rules:
            if rule.name == rule_name:
                rule.enabled = True
                self.logger.info(f"Enabled rule: {rule_name}")
                return True
        return False

    def disable_rule(self, rule_name: str) -> bool:
        for rule in self.rules:
            if rule.name == rule_name:
                rule.enabled = False
                self.logger.info(f"Disabled rule: {rule_name}")
                return True
        return False

    def evaluate_transaction(
        self,
        transaction: Transaction,
        context: Dict[str, Any]
    ) -> List[Tuple[str, RuleContribution]]:
        results = []

        for rule in self.rules:
            if not rule.enabled:
                continue

            contribution = rule.evaluate(transaction, context)
            if contribution.fired:
                results.append((rule.name, contribution))

        return results

    def list_rules(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": rule.name,
                "enabled": rule.enabled,
                "priority": rule.priority,
                "type": rule.__class__.__name__
            }
            for rule in self.rules
        ]
