"""
Order lifecycle helper.

Orders move forward along pending -> confirmed -> preparing -> ready ->
delivered (steps may be skipped) or are cancelled before delivery. Reaching
`delivered` completes the linked reservation.
"""

from __future__ import annotations

from lounge_shared.constants import ORDER_STATUS_SEQUENCE, OrderStatus
from lounge_shared.errors import NotFoundError, OrderStateError
from lounge_shared.logging_config import get_logger
from lounge_shared.models import Order
from lounge_shared.services.reconciliation_service import complete_reservation_for_order
from lounge_shared.store import DocumentStore

logger = get_logger(__name__)

_TERMINAL_ORDER_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def _order_status(value) -> OrderStatus:
    try:
        return OrderStatus(getattr(value, "value", value))
    except ValueError as exc:
        raise OrderStateError(f"Unknown order status '{value}'") from exc


def can_transition_order(current_status, target_status) -> bool:
    current = _order_status(current_status)
    target = _order_status(target_status)

    if current in _TERMINAL_ORDER_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return ORDER_STATUS_SEQUENCE.index(target) > ORDER_STATUS_SEQUENCE.index(current)


def validate_order_transition(order: Order, target_status) -> OrderStatus:
    """Return the target status or raise OrderStateError."""
    current = _order_status(order.status)
    target = _order_status(target_status)
    if not can_transition_order(current, target):
        raise OrderStateError(
            f"Invalid order transition: {current.value} -> {target.value}", current, target
        )
    return target


async def update_order_status(store: DocumentStore, order_id: int, status) -> Order:
    """
    Persist an order status change; on `delivered` the linked reservation is
    completed. Reservation side effects never fail the order update.
    """
    order = await store.get_order(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")

    target = validate_order_transition(order, status)
    await store.update_order_status(order_id, target)
    logger.info(f"Order {order_id}: {order.status} -> {target.value}")

    if target == OrderStatus.DELIVERED and order.reservation_id:
        await complete_reservation_for_order(store, order.reservation_id)

    return await store.get_order(order_id)

