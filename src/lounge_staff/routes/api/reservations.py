"""
Reservations API - booking and status changes.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from lounge_shared.logging_config import get_logger
from lounge_shared.schemas import (
    CancelReservationRequest,
    CreateReservationRequest,
    ReservationStatusRequest,
)
from lounge_shared.serializers import serialize_reservation, serialize_time_slot, success_response
from lounge_shared.services.booking_service import (
    cancel_reservation,
    create_reservation,
    get_time_slots,
    transition_reservation,
)
from lounge_staff.extensions import get_store

reservations_bp = Blueprint("reservations", __name__)
logger = get_logger(__name__)


@reservations_bp.get("/time-slots")
async def list_time_slots():
    slots = await get_time_slots(get_store())
    return jsonify(
        success_response({"time_slots": [serialize_time_slot(slot) for slot in slots]})
    ), HTTPStatus.OK


@reservations_bp.post("/reservations")
async def create_reservation_endpoint():
    """
    Book a table.

    Body: CreateReservationRequest schema
    """
    payload = request.get_json(silent=True) or {}
    form = CreateReservationRequest(**payload)

    store = get_store()
    reservation_id = await create_reservation(store, form, form.user_id)
    reservation = await store.get_reservation(reservation_id)

    return jsonify(
        success_response(serialize_reservation(reservation), message="Reservation created")
    ), HTTPStatus.CREATED


@reservations_bp.patch("/reservations/<int:reservation_id>/status")
async def update_reservation_status(reservation_id: int):
    """
    Body: {"status": ..., "notes": ..., "actor_scope": "staff"}
    """
    payload = request.get_json(silent=True) or {}
    data = ReservationStatusRequest(**payload)

    reservation = await transition_reservation(
        get_store(),
        reservation_id,
        data.status,
        actor_scope=data.actor_scope,
        notes=data.notes,
    )
    return jsonify(success_response(serialize_reservation(reservation))), HTTPStatus.OK


@reservations_bp.post("/reservations/<int:reservation_id>/cancel")
async def cancel_reservation_endpoint(reservation_id: int):
    payload = request.get_json(silent=True) or {}
    data = CancelReservationRequest(**payload)

    reservation = await cancel_reservation(
        get_store(), reservation_id, reason=data.reason, actor_scope=data.actor_scope
    )
    logger.info(f"Reservation {reservation_id} cancelled by {data.actor_scope.value}")
    return jsonify(success_response(serialize_reservation(reservation))), HTTPStatus.OK
