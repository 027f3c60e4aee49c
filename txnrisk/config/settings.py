import os
from typing import Optional, Dict, Any, List, Tuple
from dataclasses import dataclass, field
from enum import Enum
import logging

logger = logging.getLogger(__name__)

class Environment(Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"

@dataclass(frozen=True)
class AmountTier:
    threshold: float
    weight: float

@dataclass(frozen=True)
class RoundAmountCheck:
    divisor: float
    min_amount: float
    weight: float

@dataclass(frozen=True)
class GeoBounds:
    min_lat: float = 6.0
    max_lat: float = 37.0
    min_lng: float = 68.0
    max_lng: float = 97.0

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

@dataclass(frozen=True)
class ChannelAmountRule:
    channel: str
    # "above" flags amounts over the limit, "below" flags amounts under it
    direction: str
    limit: float
    risk_weight: float = 0.0
    anomaly_weight: float = 0.0

    def matches(self, channel: str, amount: float) -> bool:
        if channel != self.channel:
            return False
        if self.direction == "above":
            return amount > self.limit
        return amount < self.limit

def _default_amount_tiers() -> List[AmountTier]:
    return [
        AmountTier(threshold=1_000_000, weight=0.4),
        AmountTier(threshold=500_000, weight=0.3),
        AmountTier(threshold=100_000, weight=0.2),
        AmountTier(threshold=50_000, weight=0.1),
    ]

def _default_channel_weights() -> Dict[str, float]:
    return {"RTGS": 0.1, "NEFT": 0.15, "UPI": 0.2}

def _default_round_amount_rules() -> List[RoundAmountCheck]:
    return [
        RoundAmountCheck(divisor=10_000, min_amount=100_000, weight=0.2),
        RoundAmountCheck(divisor=100_000, min_amount=500_000, weight=0.3),
    ]

def _default_cross_channel_rules() -> List[ChannelAmountRule]:
    return [
        ChannelAmountRule(channel="UPI", direction="above", limit=50_000, risk_weight=0.2),
        ChannelAmountRule(channel="RTGS", direction="below", limit=300_000, anomaly_weight=0.1),
    ]

@dataclass
class ScoringConfig:
    # Amount tiers, checked highest first
    amount_tiers: List[AmountTier] = field(default_factory=_default_amount_tiers)

    # Channel
    channel_weights: Dict[str, float] = field(default_factory=_default_channel_weights)
    unknown_channel_weight: float = 0.25

    # Time of day. Bands are inclusive (start, end) hour ranges and stack additively
    off_hours_bands: List[Tuple[int, int]] = field(default_factory=lambda: [(0, 5), (23, 23)])
    off_hours_weight: float = 0.2
    late_night_bands: List[Tuple[int, int]] = field(default_factory=lambda: [(22, 23), (0, 2)])
    late_night_weight: float = 0.1
    weekend_days: Tuple[int, ...] = (5, 6)  # datetime.weekday(): Saturday, Sunday
    weekend_weight: float = 0.1

    # Beneficiary
    min_name_length: int = 3
    short_name_weight: float = 0.3
    uppercase_name_pattern: str = r"^[A-Z\s]+$"
    uppercase_name_weight: float = -0.1
    repeated_digit_pattern: str = r"^(.)\1{8,}$"
    repeated_digit_weight: float = 0.4
    self_transfer_weight: float = 0.8

    # Routing code
    routing_prefix_length: int = 4
    routing_denylist: Tuple[str, ...] = ("TEST", "FAKE", "DEMO")
    routing_denylist_weight: float = 0.5

    # Phone
    phone_pattern: str = r"^[6-9][0-9]{9}$"
    invalid_phone_weight: float = 0.3

    # Round amounts
    round_amount_rules: List[RoundAmountCheck] = field(default_factory=_default_round_amount_rules)

    # Geolocation
    geo_bounds: GeoBounds = field(default_factory=GeoBounds)
    out_of_bounds_weight: float = 0.3
    integral_coordinates_weight: float = 0.2
    missing_location_weight: float = 0.1

    # Cross-channel consistency
    cross_channel_rules: List[ChannelAmountRule] = field(default_factory=_default_cross_channel_rules)

    # Model uncertainty
    jitter_magnitude: float = field(
        default_factory=lambda: float(os.getenv("RISK_JITTER_MAGNITUDE", "0.1"))
    )

    # Decision policy
    high_risk_threshold: float = field(
        default_factory=lambda: float(os.getenv("RISK_HIGH_THRESHOLD", "0.7"))
    )
    high_anomaly_threshold: float = field(
        default_factory=lambda: float(os.getenv("ANOMALY_HIGH_THRESHOLD", "0.8"))
    )
    medium_risk_threshold: float = field(
        default_factory=lambda: float(os.getenv("RISK_MEDIUM_THRESHOLD", "0.4"))
    )
    medium_anomaly_threshold: float = field(
        default_factory=lambda: float(os.getenv("ANOMALY_MEDIUM_THRESHOLD", "0.5"))
    )
    review_amount_threshold: float = field(
        default_factory=lambda: float(os.getenv("RISK_REVIEW_AMOUNT_THRESHOLD", "50000"))
    )
    risk_blend_weight: float = 0.6
    anomaly_blend_weight: float = 0.4

    def validate(self) -> bool:
        try:
            assert self.amount_tiers, "At least one amount tier is required"
            thresholds = [tier.threshold for tier in self.amount_tiers]
            assert thresholds == sorted(thresholds, reverse=True), "Amount tiers must be ordered highest first"
            assert all(t > 0 for t in thresholds), "Amount tier thresholds must be positive"

            for band in list(self.off_hours_bands) + list(self.late_night_bands):
                start, end = band
                assert 0 <= start <= end <= 23, f"Invalid hour band: {band}"
            assert all(0 <= d <= 6 for d in self.weekend_days), "Weekend days must be 0-6"

            assert self.min_name_length >= 0, "Minimum name length must be non-negative"
            assert self.routing_prefix_length > 0, "Routing prefix length must be positive"
            assert all(r.divisor > 0 for r in self.round_amount_rules), "Round amount divisors must be positive"
            assert all(r.direction in ("above", "below") for r in self.cross_channel_rules), \
                "Cross-channel rule direction must be 'above' or 'below'"

            bounds = self.geo_bounds
            assert bounds.min_lat <= bounds.max_lat and bounds.min_lng <= bounds.max_lng, \
                "Geo bounds are inverted"

            assert 0 <= self.jitter_magnitude <= 1, "Jitter magnitude must be within [0, 1]"
            for name in ("high_risk_threshold", "high_anomaly_threshold",
                         "medium_risk_threshold", "medium_anomaly_threshold"):
                value = getattr(self, name)
                assert 0 <= value <= 1, f"{name} must be within [0, 1]"
            assert self.medium_risk_threshold <= self.high_risk_threshold, \
                "Medium risk threshold must not exceed high risk threshold"
            assert self.medium_anomaly_threshold <= self.high_anomaly_threshold, \
                "Medium anomaly threshold must not exceed high anomaly threshold"
            assert self.review_amount_threshold >= 0, "Review amount threshold must be non-negative"

            assert self.risk_blend_weight >= 0 and self.anomaly_blend_weight >= 0, \
                "Blend weights must be non-negative"
            assert abs(self.risk_blend_weight + self.anomaly_blend_weight - 1.0) < 1e-9, \
                "Blend weights must sum to 1"

            return True

        except AssertionError as e:
            logger.error(f"Scoring configuration validation failed: {e}")
            return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount_tiers": [(t.threshold, t.weight) for t in self.amount_tiers],
            "channel_weights": dict(self.channel_weights),
            "unknown_channel_weight": self.unknown_channel_weight,
            "time": {
                "off_hours_bands": list(self.off_hours_bands),
                "late_night_bands": list(self.late_night_bands),
                "weekend_days": list(self.weekend_days)
            },
            "routing_denylist": list(self.routing_denylist),
            "geo_bounds": {
                "lat": [self.geo_bounds.min_lat, self.geo_bounds.max_lat],
                "lng": [self.geo_bounds.min_lng, self.geo_bounds.max_lng]
            },
            "jitter_magnitude": self.jitter_magnitude,
            "thresholds": {
                "high_risk": self.high_risk_threshold,
                "high_anomaly": self.high_anomaly_threshold,
                "medium_risk": self.medium_risk_threshold,
                "medium_anomaly": self.medium_anomaly_threshold,
                "review_amount": self.review_amount_threshold
            },
            "blend": {
                "risk": self.risk_blend_weight,
                "anomaly": self.anomaly_blend_weight
            }
        }

@dataclass
class VelocityConfig:
    window_hours: float = field(
        default_factory=lambda: float(os.getenv("VELOCITY_WINDOW_HOURS", "24"))
    )
    burst_count: int = 10
    burst_contribution: float = 0.8
    volume_limit: float = 5_000_000
    volume_contribution: float = 0.7
    combined_count: int = 5
    combined_volume: float = 1_000_000
    combined_contribution: float = 0.6
    per_transaction_weight: float = 0.1
    volume_divisor: float = 10_000_000
    fallback_cap: float = 0.5

@dataclass
class GeoAnomalyConfig:
    earth_radius_km: float = 6371.0
    max_speed_kmh: float = field(
        default_factory=lambda: float(os.getenv("GEO_MAX_SPEED_KMH", "100.0"))
    )
    max_contribution: float = 0.9

@dataclass
class ReviewConfig:
    auto_approve_amount: float = field(
        default_factory=lambda: float(os.getenv("REVIEW_AUTO_APPROVE_AMOUNT", "50000"))
    )

@dataclass
class MonitoringConfig:
    enable_prometheus: bool = field(
        default_factory=lambda: os.getenv("MONITORING_PROMETHEUS", "true").lower() == "true"
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(
        default_factory=lambda: os.getenv("LOG_FORMAT", "structured")  # structured or standard
    )
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

@dataclass
class AppConfig:
    environment: Environment = field(
        default_factory=lambda: Environment(os.getenv("ENVIRONMENT", "development"))
    )

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    velocity: VelocityConfig = field(default_factory=VelocityConfig)
    geo: GeoAnomalyConfig = field(default_factory=GeoAnomalyConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def validate(self) -> bool:
        try:
            assert self.scoring.validate(), "Scoring configuration is invalid"
            assert self.velocity.window_hours > 0, "Velocity window must be positive"
            assert self.velocity.volume_divisor > 0, "Velocity volume divisor must be positive"
            assert self.geo.max_speed_kmh > 0, "Geo max speed must be positive"
            assert self.geo.earth_radius_km > 0, "Earth radius must be positive"
            assert self.review.auto_approve_amount >= 0, "Auto-approve amount must be non-negative"

            if self.environment == Environment.PRODUCTION:
                assert self.scoring.jitter_magnitude <= 0.1, "Jitter above 0.1 is not allowed in production"

            logger.info("Configuration validation passed")
            return True

        except AssertionError as e:
            logger.error(f"Configuration validation failed: {e}")
            return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment.value,
            "scoring": self.scoring.to_dict(),
            "velocity": {
                "window_hours": self.velocity.window_hours,
                "burst_count": self.velocity.burst_count,
                "volume_limit": self.velocity.volume_limit
            },
            "geo": {
                "max_speed_kmh": self.geo.max_speed_kmh,
                "max_contribution": self.geo.max_contribution
            },
            "review": {
                "auto_approve_amount": self.review.auto_approve_amount
            },
            "monitoring": {
                "prometheus": self.monitoring.enable_prometheus,
                "log_level": self.monitoring.log_level
            }
        }

# Global configuration instance
_config_instance: Optional[AppConfig] = None

def get_config() -> AppConfig:
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig()
        _config_instance.validate()
    return _config_instance

def reload_config():
    global _config_instance
    _config_instance = AppConfig()
    _config_instance.validate()
    logger.info("Configuration reloaded")
