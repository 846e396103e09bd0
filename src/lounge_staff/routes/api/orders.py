"""
Orders API - create table orders and move them through the kitchen.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from lounge_shared.logging_config import get_logger
from lounge_shared.schemas import CreateOrderRequest, OrderStatusRequest
from lounge_shared.serializers import serialize_order, success_response
from lounge_shared.services.order_service import update_order_status
from lounge_shared.services.reconciliation_service import create_order_with_reservation
from lounge_staff.extensions import get_store

orders_bp = Blueprint("orders", __name__)
logger = get_logger(__name__)


@orders_bp.post("/orders")
async def create_order():
    """
    Create an order for a table, optionally linked to a reservation.

    Body: CreateOrderRequest schema
    """
    payload = request.get_json(silent=True) or {}
    data = CreateOrderRequest(**payload)

    order_data = data.model_dump(exclude={"reservation_id"})
    order_data["total_amount"] = data.total_amount

    store = get_store()
    order_id = await create_order_with_reservation(store, order_data, data.reservation_id)
    order = await store.get_order(order_id)

    return jsonify(success_response(serialize_order(order), message="Order created")), HTTPStatus.CREATED


@orders_bp.patch("/orders/<int:order_id>/status")
async def update_order_status_endpoint(order_id: int):
    """
    Body: {"status": "preparing"}
    """
    payload = request.get_json(silent=True) or {}
    data = OrderStatusRequest(**payload)

    order = await update_order_status(get_store(), order_id, data.status)
    return jsonify(success_response(serialize_order(order))), HTTPStatus.OK
