"""
Audit Models
Data structures for the append-only audit trail.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
import uuid

from core.models import parse_timestamp


class AuditAction(str, Enum):
    """Recorded actions"""
    TRADE_EXECUTED = "trade_executed"
    TRADE_PARTIAL = "trade_partial"
    TRADE_REJECTED = "trade_rejected"
    DATA_INGESTED = "data_ingested"
    DATA_CLEARED = "data_cleared"
    REPORT_EXPORTED = "report_exported"
    FEED_STARTED = "feed_started"
    FEED_STOPPED = "feed_stopped"


class TargetType(str, Enum):
    """What an entry refers to"""
    ORDER = "order"
    ASSET = "asset"
    REPORT = "report"
    FEED = "feed"


def _freeze(value: Any) -> Any:
    """Read-only copy: mappings become proxies, lists become tuples"""
    if isinstance(value, (dict, MappingProxyType)):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    """Plain dicts and lists again, for serialization"""
    if isinstance(value, (dict, MappingProxyType)):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class AuditLogEntry:
    """
    One immutable audit record.

    entry_id and timestamp are assigned by the AuditLog on append
    when left empty. detail is held as a read-only mapping.
    """
    actor_id: str
    action: AuditAction
    target_type: str
    target_id: str
    detail: Mapping[str, Any] = field(default_factory=dict)
    entry_id: str = ""
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "detail", _freeze(self.detail))

    def with_identity(self, entry_id: str, timestamp: datetime) -> "AuditLogEntry":
        return AuditLogEntry(
            actor_id=self.actor_id,
            action=self.action,
            target_type=self.target_type,
            target_id=self.target_id,
            detail=self.detail,
            entry_id=entry_id,
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "actor_id": self.actor_id,
            "action": self.action.value,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "detail": _thaw(self.detail),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditLogEntry":
        return cls(
            actor_id=data["actor_id"],
            action=AuditAction(data["action"]),
            target_type=data["target_type"],
            target_id=data["target_id"],
            detail=data.get("detail") or {},
            entry_id=data.get("entry_id", ""),
            timestamp=parse_timestamp(data["timestamp"]) if data.get("timestamp") else None,
        )


def new_entry_id() -> str:
    return f"audit_{uuid.uuid4().hex[:12]}"
