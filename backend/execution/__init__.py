"""
Order Execution
Buy/sell orders against the live store price with slippage and
liquidity constraints.

Structure:
    execution/
    ├── models.py         → Order, OrderExecutionResult, enums
    ├── state_machine.py  → SUBMITTED → VALIDATED → EXECUTED | REJECTED
    └── engine.py         → OrderExecutionEngine
"""

from .models import (
    Order,
    OrderSide,
    OrderState,
    OrderStatus,
    RejectReason,
    StateTransition,
    OrderExecutionResult,
)
from .state_machine import OrderStateMachine, VALID_TRANSITIONS
from .engine import OrderExecutionEngine, get_order_engine

__all__ = [
    "Order",
    "OrderSide",
    "OrderState",
    "OrderStatus",
    "RejectReason",
    "StateTransition",
    "OrderExecutionResult",
    "OrderStateMachine",
    "VALID_TRANSITIONS",
    "OrderExecutionEngine",
    "get_order_engine",
]
