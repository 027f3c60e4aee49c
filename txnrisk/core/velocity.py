import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from txnrisk.config.settings import VelocityConfig, get_config
from txnrisk.monitoring.metrics import MetricsCollector
from txnrisk.schema.transaction import HistoryEntry, align_timezone, parse_timestamp, record_field

logger = logging.getLogger(__name__)

def velocity_risk(
    history: Iterable[HistoryEntry],
    window_hours: Optional[float] = None,
    now: Optional[datetime] = None,
    config: Optional[VelocityConfig] = None,
    metrics: Optional[MetricsCollector] = None
) -> float:
    # Entries without a created_at count as happening now
    config = config or get_config().velocity
    window = timedelta(hours=window_hours if window_hours is not None else config.window_hours)
    now = now or datetime.now()

    count = 0
    total_amount = 0.0
    for entry in history:
        created_at = parse_timestamp(record_field(entry, "created_at"))
        created_at = now if created_at is None else align_timezone(created_at, now)
        if now - created_at < window:
            count += 1
            total_amount += float(record_field(entry, "amount") or 0.0)

    risk = _velocity_contribution(count, total_amount, config)
    if risk >= config.combined_contribution:
        logger.info(f"High velocity: {count} transactions totalling {total_amount:,.2f} within {window}")
    if metrics:
        metrics.record_velocity_risk(risk)
    return risk

def _velocity_contribution(count: int, total_amount: float, config: VelocityConfig) -> float:
    if count > config.burst_count:
        return config.burst_contribution
    if total_amount > config.volume_limit:
        return config.volume_contribution
    if count > config.combined_count and total_amount > config.combined_volume:
        return config.combined_contribution

    return min(
        config.fallback_cap,
        count * config.per_transaction_weight + total_amount / config.volume_divisor
    )
