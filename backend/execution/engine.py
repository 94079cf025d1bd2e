"""
Order Execution Engine
Executes buy/sell orders against the latest Time-Series Store price.

Flow per order:
1. SUBMITTED: reference price captured (caller's or latest store price)
2. Validation: amount, tolerance, trading limits, price available
3. VALIDATED: execution price = latest store price
4. Slippage check: |exec - ref| / ref <= tolerance
5. Fill up to available liquidity depth
6. EXECUTED (filled / partially_filled) or REJECTED

Every place_order call writes exactly one audit entry, whatever the outcome.

Concurrency:
- Executions for the same asset are serialized by a per-asset lock,
  so two orders can never both consume the same liquidity
- The order result is stored, then audited, then liquidity is committed;
  if either store fails nothing changes and StoreUnavailable propagates
"""

import logging
import math
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from core.errors import StoreUnavailable
from core.models import Sample
from core.store import TimeSeriesStore
from audit import AuditAction, AuditLog, AuditLogEntry, TargetType
from audit.models import new_entry_id

from .models import (
    Order,
    OrderExecutionResult,
    OrderSide,
    OrderState,
    OrderStatus,
    RejectReason,
    parse_side,
    side_value,
)
from .state_machine import OrderStateMachine


logger = logging.getLogger(__name__)

# Float slack on the slippage boundary so an exactly-at-tolerance fill passes
SLIPPAGE_EPSILON = 1e-12


def _finite(value) -> bool:
    """A real, finite number (bools and non-numbers are not)"""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class OrderRejected(Exception):
    """Internal signal: validation or execution check failed."""

    def __init__(self, code: RejectReason, reason: str):
        super().__init__(reason)
        self.code = code
        self.reason = reason


class OrderExecutionEngine:
    """
    Order execution with slippage and liquidity constraints.

    Liquidity depth of an asset is the volume quoted on its latest sample
    minus what orders have already filled against that sample. A new
    sample resets the depth.

    Usage:
        engine = OrderExecutionEngine(store, audit_log)
        result = engine.place_order("mangrove", "buy", 50, 1.0, actor_id="trader-1")
    """

    def __init__(
        self,
        store: TimeSeriesStore,
        audit_log: AuditLog,
        storage=None,
        fee_rate: float = 0.01,
        min_order_amount: float = 0.0,
        max_order_amount: Optional[float] = None,
        warm_start: bool = True,
    ):
        self.store = store
        self.audit_log = audit_log
        self._storage = storage
        self.fee_rate = fee_rate
        self.min_order_amount = min_order_amount
        self.max_order_amount = max_order_amount

        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        # asset_id -> (timestamp of the sample filled against, amount filled)
        self._consumed: Dict[str, Tuple[datetime, float]] = {}
        self._results: Dict[str, OrderExecutionResult] = {}

        if storage is not None and warm_start:
            self._load_from_storage()

    def _load_from_storage(self) -> None:
        for data in self._storage.load_order_results():
            result = OrderExecutionResult.from_dict(data)
            self._results[result.order_id] = result
            if result.executed_amount > 0 and result.price_ts is not None:
                self._commit_fill(result.asset_id, result.price_ts, result.executed_amount)
        if self._results:
            logger.info("Loaded %d order results from storage", len(self._results))

    def _lock_for(self, asset_id: str) -> threading.Lock:
        lock = self._locks.get(asset_id)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(asset_id, threading.Lock())
        return lock

    # =========================================================================
    # Liquidity
    # =========================================================================

    def _depth(self, asset_id: str, latest: Sample) -> float:
        consumed_ts, consumed = self._consumed.get(asset_id, (None, 0.0))
        if consumed_ts != latest.ts:
            consumed = 0.0
        return max(0.0, latest.volume - consumed)

    def _commit_fill(self, asset_id: str, price_ts: datetime, amount: float) -> None:
        consumed_ts, consumed = self._consumed.get(asset_id, (None, 0.0))
        if consumed_ts == price_ts:
            self._consumed[asset_id] = (price_ts, consumed + amount)
        elif consumed_ts is None or price_ts > consumed_ts:
            self._consumed[asset_id] = (price_ts, amount)

    def available_liquidity(self, asset_id: str) -> float:
        """Depth still fillable at the latest price, 0 for unknown assets."""
        latest = self.store.latest(asset_id)
        if latest is None:
            return 0.0
        return self._depth(asset_id, latest)

    # =========================================================================
    # Submission & Validation
    # =========================================================================

    def submit(
        self,
        asset_id: str,
        side: Union[OrderSide, str],
        amount: float,
        slippage_tolerance_pct: float,
        actor_id: str = "anonymous",
        reference_price: Optional[float] = None,
    ) -> Order:
        """Build an order, capturing the latest price as reference if none given."""
        if reference_price is None:
            latest = self.store.latest(asset_id)
            reference_price = latest.price if latest else None
        return Order(
            asset_id=asset_id,
            side=parse_side(side),
            requested_amount=amount,
            slippage_tolerance_pct=slippage_tolerance_pct,
            actor_id=actor_id,
            reference_price=reference_price,
        )

    def _validate(self, order: Order) -> Sample:
        """Returns the latest sample; raises OrderRejected on any failed check."""
        if not isinstance(order.side, OrderSide):
            raise OrderRejected(RejectReason.INVALID_SIDE,
                                f"Side must be one of {[s.value for s in OrderSide]}, got {order.side!r}")

        amount = order.requested_amount
        if not _finite(amount) or amount <= 0:
            raise OrderRejected(RejectReason.INVALID_AMOUNT,
                                f"Requested amount must be > 0, got {amount}")

        tolerance = order.slippage_tolerance_pct
        if not _finite(tolerance) or not 0 <= tolerance <= 100:
            raise OrderRejected(RejectReason.INVALID_TOLERANCE,
                                f"Slippage tolerance must be within [0, 100], got {tolerance}")

        if amount < self.min_order_amount:
            raise OrderRejected(RejectReason.BELOW_MIN_AMOUNT,
                                f"Minimum order size is {self.min_order_amount} credits")

        if self.max_order_amount is not None and amount > self.max_order_amount:
            raise OrderRejected(RejectReason.ABOVE_MAX_AMOUNT,
                                f"Maximum order size is {self.max_order_amount} credits")

        latest = self.store.latest(order.asset_id)
        if latest is None:
            raise OrderRejected(RejectReason.NO_PRICE,
                                f"No current price for asset '{order.asset_id}'")

        ref = order.reference_price
        if not _finite(ref) or ref <= 0:
            raise OrderRejected(RejectReason.INVALID_REFERENCE_PRICE,
                                f"Reference price must be > 0, got {ref}")

        return latest

    # =========================================================================
    # Execution
    # =========================================================================

    def place_order(
        self,
        asset_id: str,
        side: Union[OrderSide, str],
        amount: float,
        slippage_tolerance_pct: float,
        actor_id: str = "anonymous",
        reference_price: Optional[float] = None,
    ) -> OrderExecutionResult:
        """Submit and execute in one call."""
        order = self.submit(asset_id, side, amount, slippage_tolerance_pct, actor_id, reference_price)
        return self.execute(order)

    def execute(self, order: Order) -> OrderExecutionResult:
        """
        Run an order to a terminal state.

        Rejections are returned as results, never raised.

        Raises:
            StoreUnavailable: audit or result persistence failed
        """
        machine = OrderStateMachine(order.order_id)

        with self._lock_for(order.asset_id):
            try:
                latest = self._validate(order)
                machine.transition(OrderState.VALIDATED)
                result = self._fill(order, machine, latest)
            except OrderRejected as rejection:
                machine.transition(OrderState.REJECTED, rejection.reason)
                result = self._result(order, machine, OrderStatus.REJECTED,
                                      reason=rejection.reason, reject_code=rejection.code)

            result = self._record(result)

        if result.is_rejected:
            logger.warning("Order %s on %s rejected: %s", order.order_id, order.asset_id, result.reason)
        else:
            logger.info("Order %s on %s %s: %.4f @ %.4f", order.order_id, order.asset_id,
                        result.status.value, result.executed_amount, result.executed_price)
        return result

    def _fill(self, order: Order, machine: OrderStateMachine, latest: Sample) -> OrderExecutionResult:
        exec_price = latest.price
        ref = order.reference_price
        deviation_pct = abs(exec_price - ref) / ref * 100.0
        if deviation_pct > order.slippage_tolerance_pct + SLIPPAGE_EPSILON * 100.0:
            raise OrderRejected(
                RejectReason.SLIPPAGE_EXCEEDED,
                f"Price moved {deviation_pct:.4f}% from reference {ref} to {exec_price}, "
                f"tolerance {order.slippage_tolerance_pct}%"
            )

        depth = self._depth(order.asset_id, latest)
        if depth <= 0:
            raise OrderRejected(RejectReason.INSUFFICIENT_LIQUIDITY,
                                f"No liquidity available for '{order.asset_id}' at {exec_price}")

        requested = order.requested_amount
        filled = min(requested, depth)
        shortfall = requested - filled
        notional = filled * exec_price

        if shortfall > 0:
            status = OrderStatus.PARTIALLY_FILLED
            reason = (
                f"Filled {filled} of {requested}; unmet {shortfall} "
                f"({shortfall / depth * 100.0:.2f}% beyond available depth {depth})"
            )
        else:
            status = OrderStatus.FILLED
            reason = None

        machine.transition(OrderState.EXECUTED, status.value)
        return self._result(
            order, machine, status,
            executed_price=exec_price,
            executed_amount=filled,
            shortfall=shortfall,
            fee=self.fee_rate * notional,
            notional=notional,
            reason=reason,
            price_ts=latest.ts,
        )

    def _result(
        self,
        order: Order,
        machine: OrderStateMachine,
        status: OrderStatus,
        executed_price: Optional[float] = None,
        executed_amount: float = 0.0,
        shortfall: Optional[float] = None,
        fee: float = 0.0,
        notional: float = 0.0,
        reason: Optional[str] = None,
        reject_code: Optional[RejectReason] = None,
        price_ts: Optional[datetime] = None,
    ) -> OrderExecutionResult:
        requested = order.requested_amount
        if shortfall is None:
            shortfall = requested if _finite(requested) and requested > 0 else 0.0
        return OrderExecutionResult(
            order_id=order.order_id,
            asset_id=order.asset_id,
            side=order.side,
            actor_id=order.actor_id,
            status=status,
            requested_amount=requested,
            executed_amount=executed_amount,
            shortfall=shortfall,
            executed_price=executed_price,
            reference_price=order.reference_price,
            fee=fee,
            notional=notional,
            reason=reason,
            reject_code=reject_code,
            state_history=list(machine.history),
            submitted_at=order.submitted_at,
            executed_at=datetime.now(timezone.utc),
            price_ts=price_ts,
        )

    def _record(self, result: OrderExecutionResult) -> OrderExecutionResult:
        """
        Persist, audit, then commit. Caller holds the asset lock.

        The result row is written first so an audit entry never points at
        an order that was not stored; if the audit append fails the row
        is removed again and nothing is committed.
        """
        if result.status == OrderStatus.FILLED:
            action = AuditAction.TRADE_EXECUTED
        elif result.status == OrderStatus.PARTIALLY_FILLED:
            action = AuditAction.TRADE_PARTIAL
        else:
            action = AuditAction.TRADE_REJECTED

        result = replace(result, audit_entry_id=new_entry_id())
        if self._storage is not None:
            self._storage.save_order_result(result.to_dict())

        entry = AuditLogEntry(
            actor_id=result.actor_id,
            action=action,
            target_type=TargetType.ORDER.value,
            target_id=result.order_id,
            detail={
                "asset_id": result.asset_id,
                "side": side_value(result.side),
                "status": result.status.value,
                "requested_amount": result.requested_amount,
                "executed_amount": result.executed_amount,
                "executed_price": result.executed_price,
                "reference_price": result.reference_price,
                "fee": result.fee,
                "reason": result.reason,
                "reject_code": result.reject_code.value if result.reject_code else None,
            },
            entry_id=result.audit_entry_id,
        )
        try:
            self.audit_log.append(entry)
        except StoreUnavailable:
            if self._storage is not None:
                self._discard_result(result.order_id)
            raise

        if result.executed_amount > 0:
            self._commit_fill(result.asset_id, result.price_ts, result.executed_amount)
        self._results[result.order_id] = result
        return result

    def _discard_result(self, order_id: str) -> None:
        try:
            self._storage.delete_order_result(order_id)
        except StoreUnavailable:
            logger.error("Order %s stored without an audit entry; removal failed", order_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_result(self, order_id: str) -> Optional[OrderExecutionResult]:
        return self._results.get(order_id)

    def list_results(self, asset_id: Optional[str] = None, limit: Optional[int] = None) -> List[OrderExecutionResult]:
        """Results oldest first, optionally for one asset"""
        results = [r for r in list(self._results.values())
                   if asset_id is None or r.asset_id == asset_id]
        if limit is not None:
            results = results[-limit:]
        return results

    def stats(self) -> Dict[str, Any]:
        """Trading summary: counts per status and filled volume per side"""
        results = list(self._results.values())
        executed = [r for r in results if not r.is_rejected]
        by_status: Dict[str, int] = {s.value: 0 for s in OrderStatus}
        for r in results:
            by_status[r.status.value] += 1

        buy_volume = sum(r.executed_amount for r in executed if r.side == OrderSide.BUY)
        sell_volume = sum(r.executed_amount for r in executed if r.side == OrderSide.SELL)
        total_volume = buy_volume + sell_volume
        total_notional = sum(r.notional for r in executed)
        return {
            "total_orders": len(results),
            "by_status": by_status,
            "total_credits_traded": total_volume,
            "buy_volume": buy_volume,
            "sell_volume": sell_volume,
            "total_notional": total_notional,
            "total_fees": sum(r.fee for r in executed),
            "average_price": total_notional / total_volume if total_volume > 0 else None,
            "fee_rate": self.fee_rate,
        }


# =============================================================================
# Singleton
# =============================================================================

_order_engine: Optional[OrderExecutionEngine] = None


def get_order_engine() -> OrderExecutionEngine:
    """Get singleton order engine sharing the ingestion engine's store"""
    global _order_engine
    if _order_engine is None:
        from core import get_engine, get_settings
        from audit import get_audit_log
        settings = get_settings()
        storage = None
        if settings.persist:
            from db import get_storage
            storage = get_storage()
        _order_engine = OrderExecutionEngine(
            store=get_engine().store,
            audit_log=get_audit_log(),
            storage=storage,
            fee_rate=settings.fee_rate,
            min_order_amount=settings.min_order_amount,
            max_order_amount=settings.max_order_amount,
        )
    return _order_engine
