from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

class Channel(Enum):
    NEFT = "NEFT"
    RTGS = "RTGS"
    UPI = "UPI"

    @classmethod
    def parse(cls, value: Union[str, "Channel"]) -> Optional["Channel"]:
        """Return the matching channel, or None for values outside the closed set."""
        if isinstance(value, Channel):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return None

class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self):
        return self.value

def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # Supabase-style timestamps end in "Z"
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))

@dataclass(frozen=True)
class Transaction:
    amount: float
    channel: str
    beneficiary_name: str
    beneficiary_account: str
    beneficiary_phone: str
    beneficiary_ifsc: str
    sender_account: str
    sender_latitude: Optional[float] = None
    sender_longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.sender_latitude is not None and self.sender_longitude is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        channel = data.get("channel", "")
        if isinstance(channel, Channel):
            channel = channel.value
        return cls(
            amount=float(data["amount"]),
            channel=str(channel),
            beneficiary_name=data.get("beneficiary_name", ""),
            beneficiary_account=data.get("beneficiary_account", ""),
            beneficiary_phone=data.get("beneficiary_phone", ""),
            beneficiary_ifsc=data.get("beneficiary_ifsc", ""),
            sender_account=data.get("sender_account", ""),
            sender_latitude=_optional_float(data.get("sender_latitude")),
            sender_longitude=_optional_float(data.get("sender_longitude")),
            created_at=parse_timestamp(data.get("created_at")),
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        if self.created_at is not None:
            record["created_at"] = self.created_at.isoformat()
        return record

def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)

@dataclass(frozen=True)
class RiskAnalysis:
    risk_score: float
    anomaly_score: float
    risk_level: RiskLevel
    fraud_probability: float
    requires_review: bool
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_score": self.risk_score,
            "anomaly_score": self.anomaly_score,
            "risk_level": self.risk_level.value,
            "fraud_probability": self.fraud_probability,
            "requires_review": self.requires_review,
            "reasons": list(self.reasons)
        }

HistoryEntry = Union[Transaction, Mapping[str, Any]]

def record_field(entry: HistoryEntry, name: str) -> Any:
    """Read ``name`` from a Transaction or from a plain caller record."""
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)

def align_timezone(ts: datetime, now: datetime) -> datetime:
    # Naive timestamps are read in the timezone of ``now``
    if ts.tzinfo is None and now.tzinfo is not None:
        return ts.replace(tzinfo=now.tzinfo)
    if ts.tzinfo is not None and now.tzinfo is None:
        return ts.astimezone().replace(tzinfo=None)
    return ts
