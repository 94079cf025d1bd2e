"""
Order State Machine
Strict lifecycle for a single order.

STATE MACHINE:

    SUBMITTED ──► VALIDATED ──► EXECUTED
        │             │
        └─────────────┴──────► REJECTED

INVARIANTS:
- Terminal states (EXECUTED, REJECTED) are final
- Every transition is recorded with a timestamp and reason
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Set

from core.errors import InvalidStateTransition

from .models import OrderState, StateTransition


logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[OrderState, Set[OrderState]] = {
    OrderState.SUBMITTED: {
        OrderState.VALIDATED,
        OrderState.REJECTED,
    },
    OrderState.VALIDATED: {
        OrderState.EXECUTED,
        OrderState.REJECTED,
    },
    # Terminal states - no transitions out
    OrderState.EXECUTED: set(),
    OrderState.REJECTED: set(),
}


class OrderStateMachine:
    """
    Tracks one order's state.

    Usage:
        machine = OrderStateMachine(order.order_id)
        machine.transition(OrderState.VALIDATED)
        machine.transition(OrderState.EXECUTED, "filled 10.0")
    """

    def __init__(self, order_id: str):
        self.order_id = order_id
        self.state = OrderState.SUBMITTED
        self.history: List[StateTransition] = [
            StateTransition(from_state=None, to_state=OrderState.SUBMITTED,
                            timestamp=datetime.now(timezone.utc))
        ]

    def can_transition(self, to_state: OrderState) -> bool:
        return to_state in VALID_TRANSITIONS[self.state]

    def transition(self, to_state: OrderState, reason: str = "") -> StateTransition:
        """
        Move to a new state.

        Raises:
            InvalidStateTransition: not allowed from the current state
        """
        if not self.can_transition(to_state):
            raise InvalidStateTransition(
                f"Order {self.order_id}: cannot move {self.state.value} -> {to_state.value}",
                order_id=self.order_id, from_state=self.state.value, to_state=to_state.value
            )

        event = StateTransition(
            from_state=self.state,
            to_state=to_state,
            timestamp=datetime.now(timezone.utc),
            reason=reason,
        )
        self.history.append(event)
        self.state = to_state
        logger.debug("Order %s: %s -> %s %s", self.order_id, event.from_state.value, to_state.value, reason)
        return event

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal()
