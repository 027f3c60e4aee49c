import logging
import math
from datetime import datetime, timezone
from typing import Optional, Sequence

from txnrisk.config.settings import GeoAnomalyConfig, get_config
from txnrisk.monitoring.metrics import MetricsCollector
from txnrisk.schema.transaction import HistoryEntry, align_timezone, parse_timestamp, record_field

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

def haversine(lat1: float, lon1: float, lat2: float, lon2: float, radius_km: float = EARTH_RADIUS_KM) -> float:
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + \
        math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return radius_km * c

def geo_anomaly_risk(
    current_lat: float,
    current_lng: float,
    history: Sequence[HistoryEntry],
    now: Optional[datetime] = None,
    config: Optional[GeoAnomalyConfig] = None,
    metrics: Optional[MetricsCollector] = None
) -> float:
    # history is ordered oldest first
    if not history:
        return 0.0

    last = history[-1]
    last_lat = record_field(last, "sender_latitude")
    last_lng = record_field(last, "sender_longitude")
    if last_lat is None or last_lng is None:
        return 0.0

    config = config or get_config().geo
    now = now or datetime.now()

    distance_km = haversine(current_lat, current_lng, float(last_lat), float(last_lng), config.earth_radius_km)

    # A missing timestamp reads as the epoch
    last_ts = parse_timestamp(record_field(last, "created_at")) or _EPOCH
    elapsed_hours = (now - align_timezone(last_ts, now)).total_seconds() / 3600.0
    max_distance_km = elapsed_hours * config.max_speed_kmh

    if distance_km == 0 or distance_km <= max_distance_km:
        risk = 0.0
    elif max_distance_km <= 0:
        # No time has passed, so any movement is implausible
        risk = config.max_contribution
    else:
        risk = min(config.max_contribution, distance_km / max_distance_km - 1)

    if metrics:
        metrics.record_geo_anomaly(risk)
    if risk > 0:
        logger.info(
            f"Implausible travel: {distance_km:.1f} km in {elapsed_hours:.2f} h "
            f"(max {max_distance_km:.1f} km), risk={risk:.2f}"
        )
    return risk
