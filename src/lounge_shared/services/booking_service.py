"""
Booking Writer - creates reservations and moves them through their lifecycle.

Booking is check-then-write: the availability check is repeated right before
the insert, and the store's partial unique index on active
(table, date, slot) rejects whichever writer loses a race.
"""

from __future__ import annotations

from datetime import date, datetime

from lounge_shared.constants import (
    MAX_ACTIVE_RESERVATIONS_PER_USER,
    OCCUPYING_RESERVATION_STATUSES,
    USER_LIMITED_RESERVATION_STATUSES,
    ActorScope,
    ReservationStatus,
)
from lounge_shared.errors import (
    ConflictError,
    FloorError,
    NotFoundError,
    ReservationLimitError,
    ReservationStateError,
)
from lounge_shared.logging_config import get_logger
from lounge_shared.models import Reservation, TimeSlot
from lounge_shared.schemas import ReservationForm
from lounge_shared.services.availability_service import check_table_availability, compute_price
from lounge_shared.services.reservation_state_machine import (
    TransitionContext,
    reservation_state_machine,
)
from lounge_shared.slot_utils import is_location_open_for_slot, parse_slot
from lounge_shared.store import DocumentStore, ReservationFilter
from lounge_shared.validation import ValidationError

logger = get_logger(__name__)


async def create_reservation(store: DocumentStore, form: ReservationForm, user_id: str) -> int:
    """
    Book `form.table_id` for the requested date and slot.

    Returns:
        The new reservation id (status pending)

    Raises:
        ReservationLimitError: the user already holds the maximum open reservations
        NotFoundError: the table does not exist or is inactive
        ValidationError: the party does not fit the table
        ConflictError: the area is closed for the slot or the table is taken
    """
    parse_slot(form.time_slot)

    open_reservations = await store.query_reservations(
        ReservationFilter(user_id=user_id, statuses=USER_LIMITED_RESERVATION_STATUSES)
    )
    if len(open_reservations) >= MAX_ACTIVE_RESERVATIONS_PER_USER:
        logger.info(f"User {user_id} already holds {len(open_reservations)} open reservations")
        raise ReservationLimitError()

    table = await store.get_table(form.table_id)
    if table is None or not table.is_active:
        raise NotFoundError(f"Table {form.table_id} not found")

    if form.party_size > table.capacity:
        raise ValidationError(
            f"Party of {form.party_size} does not fit table {table.number} "
            f"(capacity {table.capacity})"
        )

    if not is_location_open_for_slot(table.location, form.time_slot):
        raise ConflictError(
            f"Table {table.number} ({table.location}) is closed for slot {form.time_slot}"
        )

    if not await check_table_availability(store, table.id, form.reservation_date, form.time_slot):
        raise ConflictError(
            f"Table {table.number} already booked for {form.reservation_date} {form.time_slot}"
        )

    reservation_id = await store.create_reservation(
        {
            "table_id": table.id,
            "table_number": table.number,
            "user_id": user_id,
            "customer_name": form.customer_name,
            "customer_email": form.customer_email,
            "customer_phone": form.customer_phone,
            "reservation_date": form.reservation_date,
            "time_slot": form.time_slot,
            "party_size": form.party_size,
            "status": ReservationStatus.PENDING,
            "special_requests": form.special_requests,
            "total_amount": compute_price(table),
            "pre_order_items": form.pre_order_items,
        }
    )
    logger.info(
        f"Reservation {reservation_id} created for table {table.number} "
        f"on {form.reservation_date} {form.time_slot}"
    )
    return reservation_id


async def transition_reservation(
    store: DocumentStore,
    reservation_id: int,
    target_status: ReservationStatus | str,
    actor_scope: ActorScope | str = ActorScope.SYSTEM,
    notes: str | None = None,
    now: datetime | None = None,
) -> Reservation:
    """
    Validate and persist a status transition; returns the updated reservation.

    Raises:
        NotFoundError: unknown reservation
        ReservationStateError: transition not allowed for the scope
        CancellationWindowError: customer cancelling too close to the start
    """
    reservation = await store.get_reservation(reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")

    try:
        target = ReservationStatus(getattr(target_status, "value", target_status))
    except ValueError as exc:
        raise ReservationStateError(f"Unknown reservation status '{target_status}'") from exc
    context = TransitionContext(
        reservation=reservation,
        target_status=target,
        actor_scope=getattr(actor_scope, "value", actor_scope),
        now=now or store.now(),
        notes=notes,
    )
    action = reservation_state_machine.validate_transition(context)

    await store.update_reservation_status(reservation_id, target, notes=notes)
    logger.info(
        f"Reservation {reservation_id}: {action} ({reservation.status} -> {target.value}) "
        f"by {context.actor_scope}"
    )
    return await store.get_reservation(reservation_id)


async def cancel_reservation(
    store: DocumentStore,
    reservation_id: int,
    reason: str | None = None,
    actor_scope: ActorScope | str = ActorScope.CUSTOMER,
    now: datetime | None = None,
) -> Reservation:
    return await transition_reservation(
        store,
        reservation_id,
        ReservationStatus.CANCELLED,
        actor_scope=actor_scope,
        notes=reason,
        now=now,
    )


async def get_user_active_reservation(
    store: DocumentStore, user_id: str, today: date | None = None
) -> Reservation | None:
    """
    The user's most recently updated confirmed/seated reservation for today,
    or None. Lookup failures are logged and treated as "none".
    """
    today = today or store.now().date()
    try:
        reservations = await store.query_reservations(
            ReservationFilter(user_id=user_id, date=today, statuses=OCCUPYING_RESERVATION_STATUSES)
        )
    except FloorError as exc:
        logger.error(f"Error getting active reservation for user {user_id}: {exc}", exc_info=True)
        return None

    if not reservations:
        return None
    return max(reservations, key=lambda r: (r.updated_at, r.id))


async def get_time_slots(store: DocumentStore) -> list[TimeSlot]:
    slots = await store.get_time_slots()
    logger.debug(f"Loaded {len(slots)} unique time slots")
    return slots
