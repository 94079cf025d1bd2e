"""
Execution Models
Orders, order states and execution results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import uuid

from core.models import parse_timestamp


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


def parse_side(side) -> Union[OrderSide, str]:
    """OrderSide when recognised, otherwise the raw value for execution to reject."""
    try:
        return OrderSide(side)
    except ValueError:
        return str(side)


def side_value(side: Union[OrderSide, str]) -> str:
    return side.value if isinstance(side, OrderSide) else side


class OrderState(str, Enum):
    """Lifecycle of a single order"""
    SUBMITTED = "submitted"
    VALIDATED = "validated"
    EXECUTED = "executed"
    REJECTED = "rejected"

    def is_terminal(self) -> bool:
        return self in (OrderState.EXECUTED, OrderState.REJECTED)


class OrderStatus(str, Enum):
    """Outcome reported to the caller"""
    FILLED = "filled"
    PARTIALLY_FILLED = "partially_filled"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    """Why an order was rejected"""
    INVALID_SIDE = "InvalidSide"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_TOLERANCE = "InvalidTolerance"
    INVALID_REFERENCE_PRICE = "InvalidReferencePrice"
    BELOW_MIN_AMOUNT = "BelowMinimumAmount"
    ABOVE_MAX_AMOUNT = "AboveMaximumAmount"
    NO_PRICE = "NoPriceAvailable"
    SLIPPAGE_EXCEEDED = "SlippageExceeded"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts is not None else None


def new_order_id() -> str:
    return f"ord_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Order:
    """
    An order as submitted.

    reference_price is the price the caller saw; when None the engine
    captures the latest store price at submission.
    An unrecognised side is kept as given and rejected on execution.
    """
    asset_id: str
    side: Union[OrderSide, str]
    requested_amount: float
    slippage_tolerance_pct: float
    actor_id: str = "anonymous"
    reference_price: Optional[float] = None
    order_id: str = field(default_factory=new_order_id)
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "asset_id": self.asset_id,
            "side": side_value(self.side),
            "requested_amount": self.requested_amount,
            "slippage_tolerance_pct": self.slippage_tolerance_pct,
            "actor_id": self.actor_id,
            "reference_price": self.reference_price,
            "submitted_at": _iso(self.submitted_at),
        }


@dataclass(frozen=True)
class StateTransition:
    """One step in an order's lifecycle"""
    from_state: Optional[OrderState]
    to_state: OrderState
    timestamp: datetime
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_state.value if self.from_state else None,
            "to": self.to_state.value,
            "timestamp": _iso(self.timestamp),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class OrderExecutionResult:
    """
    Final outcome of an order. Written once.

    executed_price / price_ts are None when the order was rejected
    before a price was read.
    """
    order_id: str
    asset_id: str
    side: Union[OrderSide, str]
    actor_id: str
    status: OrderStatus
    requested_amount: float
    executed_amount: float
    shortfall: float
    executed_price: Optional[float]
    reference_price: Optional[float]
    fee: float
    notional: float
    reason: Optional[str]
    reject_code: Optional[RejectReason]
    state_history: List[StateTransition]
    submitted_at: datetime
    executed_at: datetime
    price_ts: Optional[datetime] = None
    audit_entry_id: Optional[str] = None

    @property
    def state(self) -> OrderState:
        return self.state_history[-1].to_state

    @property
    def is_rejected(self) -> bool:
        return self.status == OrderStatus.REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "asset_id": self.asset_id,
            "side": side_value(self.side),
            "actor_id": self.actor_id,
            "status": self.status.value,
            "state": self.state.value,
            "requested_amount": self.requested_amount,
            "executed_amount": self.executed_amount,
            "shortfall": self.shortfall,
            "executed_price": self.executed_price,
            "reference_price": self.reference_price,
            "fee": self.fee,
            "notional": self.notional,
            "reason": self.reason,
            "reject_code": self.reject_code.value if self.reject_code else None,
            "state_history": [t.to_dict() for t in self.state_history],
            "submitted_at": _iso(self.submitted_at),
            "executed_at": _iso(self.executed_at),
            "price_ts": _iso(self.price_ts),
            "audit_entry_id": self.audit_entry_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderExecutionResult":
        history = [
            StateTransition(
                from_state=OrderState(t["from"]) if t.get("from") else None,
                to_state=OrderState(t["to"]),
                timestamp=parse_timestamp(t["timestamp"]),
                reason=t.get("reason", ""),
            )
            for t in data.get("state_history", [])
        ]
        return cls(
            order_id=data["order_id"],
            asset_id=data["asset_id"],
            side=parse_side(data["side"]),
            actor_id=data.get("actor_id", "anonymous"),
            status=OrderStatus(data["status"]),
            requested_amount=float(data["requested_amount"]),
            executed_amount=float(data["executed_amount"]),
            shortfall=float(data.get("shortfall", 0.0)),
            executed_price=data.get("executed_price"),
            reference_price=data.get("reference_price"),
            fee=float(data.get("fee", 0.0)),
            notional=float(data.get("notional", 0.0)),
            reason=data.get("reason"),
            reject_code=RejectReason(data["reject_code"]) if data.get("reject_code") else None,
            state_history=history,
            submitted_at=parse_timestamp(data["submitted_at"]),
            executed_at=parse_timestamp(data["executed_at"]),
            price_ts=parse_timestamp(data["price_ts"]) if data.get("price_ts") else None,
            audit_entry_id=data.get("audit_entry_id"),
        )
