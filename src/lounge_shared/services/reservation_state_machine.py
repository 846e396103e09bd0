"""
Reservation State Machine - keeps reservation status transitions out of the
model and the store.

Transitions are looked up in RESERVATION_TRANSITIONS keyed by
(current_status, target_status); each policy lists the actor scopes allowed to
perform it. The machine only validates; persisting is the store's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from lounge_shared.constants import (
    CUSTOMER_CANCELLATION_CUTOFF,
    RESERVATION_TRANSITIONS,
    TERMINAL_RESERVATION_STATUSES,
    ActorScope,
    ReservationStatus,
)
from lounge_shared.errors import CancellationWindowError, ReservationStateError
from lounge_shared.models import Reservation
from lounge_shared.slot_utils import reservation_bounds


@dataclass
class TransitionContext:
    """Context for a reservation transition."""

    reservation: Reservation
    target_status: ReservationStatus
    actor_scope: str  # 'customer', 'staff', 'system'
    now: datetime
    notes: str | None = None


class ReservationStateMachine:
    """
    State machine for reservation transitions.

    Responsibilities:
    - Validate allowed transitions
    - Check actor scope permissions
    - Enforce the customer cancellation window
    """

    @staticmethod
    def _status(value) -> ReservationStatus:
        try:
            return ReservationStatus(getattr(value, "value", value))
        except ValueError as exc:
            raise ReservationStateError(f"Unknown reservation status '{value}'") from exc

    def get_policy(self, current_status, target_status) -> dict | None:
        return RESERVATION_TRANSITIONS.get((self._status(current_status), self._status(target_status)))

    def can_transition(self, current_status, target_status, actor_scope: str) -> bool:
        """True when the transition exists and the scope may perform it."""
        policy = self.get_policy(current_status, target_status)
        if not policy:
            return False
        return getattr(actor_scope, "value", actor_scope) in policy["allowed_scopes"]

    def is_terminal(self, status) -> bool:
        return self._status(status) in TERMINAL_RESERVATION_STATUSES

    def validate_transition(self, context: TransitionContext) -> str:
        """
        Validate a transition and return its action name.

        Raises:
            ReservationStateError: unknown transition or unauthorized scope
            CancellationWindowError: customer cancelling within 2 hours of the start
        """
        current_status = self._status(context.reservation.status)
        target_status = self._status(context.target_status)
        actor_scope = getattr(context.actor_scope, "value", context.actor_scope)

        policy = RESERVATION_TRANSITIONS.get((current_status, target_status))
        if not policy:
            raise ReservationStateError(
                f"Invalid transition: {current_status.value} -> {target_status.value}",
                current_status,
                target_status,
            )

        if actor_scope not in policy["allowed_scopes"]:
            raise ReservationStateError(
                f"Scope '{actor_scope}' not allowed to {policy['action']} a reservation",
                current_status,
                target_status,
            )

        if actor_scope == ActorScope.CUSTOMER.value and target_status == ReservationStatus.CANCELLED:
            start, _ = reservation_bounds(context.reservation)
            if start - context.now <= CUSTOMER_CANCELLATION_CUTOFF:
                raise CancellationWindowError(
                    f"Reservation {context.reservation.id} starts at {start.isoformat()}; "
                    "customers can no longer cancel it",
                    current_status,
                    target_status,
                )

        return policy["action"]


# Global state machine instance
reservation_state_machine = ReservationStateMachine()
