"""
Serializers for consistent API responses.
"""

from datetime import date, datetime
from typing import Any

from lounge_shared.constants import TABLE_STATUS_META_DEFAULT


def _safe_float(value) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def resolve_status_meta(status_key: str) -> dict[str, str]:
    meta = TABLE_STATUS_META_DEFAULT.get(status_key, {"label": status_key})
    return {"status": status_key, "status_display": meta["label"]}


def serialize_table(table) -> dict[str, Any]:
    return {
        "id": table.id,
        "number": table.number,
        "capacity": table.capacity,
        "location": table.location,
        "amenities": list(table.amenities or []),
        "is_active": table.is_active,
        "price_multiplier": _safe_float(table.price_multiplier),
    }


def serialize_time_slot(slot) -> dict[str, Any]:
    return {
        "id": slot.id,
        "label": slot.label,
        "start_time": slot.start_time,
        "end_time": slot.end_time,
        "duration_minutes": slot.duration_minutes,
        "max_reservations": slot.max_reservations,
    }


def serialize_reservation(reservation) -> dict[str, Any]:
    return {
        "id": reservation.id,
        "table_id": reservation.table_id,
        "table_number": reservation.table_number,
        "user_id": reservation.user_id,
        "customer_name": reservation.customer_name,
        "customer_email": reservation.customer_email,
        "customer_phone": reservation.customer_phone,
        "reservation_date": _iso(reservation.reservation_date),
        "time_slot": reservation.time_slot,
        "start_time": reservation.start_time,
        "end_time": reservation.end_time,
        "party_size": reservation.party_size,
        "status": reservation.status,
        "special_requests": reservation.special_requests,
        "total_amount": _safe_float(reservation.total_amount),
        "pre_order_items": list(reservation.pre_order_items or []),
        "notes": reservation.notes,
        "created_at": _iso(reservation.created_at),
        "updated_at": _iso(reservation.updated_at),
        "confirmed_at": _iso(reservation.confirmed_at),
        "cancelled_at": _iso(reservation.cancelled_at),
        "completed_at": _iso(reservation.completed_at),
    }


def serialize_order(order) -> dict[str, Any]:
    return {
        "id": order.id,
        "table_number": order.table_number,
        "reservation_id": order.reservation_id,
        "order_type": order.order_type,
        "status": order.status,
        "total_amount": _safe_float(order.total_amount),
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "special_instructions": order.special_instructions,
        "items": [
            {
                "menu_item_id": item.menu_item_id,
                "name": item.name,
                "unit_price": _safe_float(item.unit_price),
                "quantity": item.quantity,
                "category": item.category,
                "note": item.note,
            }
            for item in order.items
        ],
        "payment": {
            "status": order.payment_status,
            "method": order.payment_method,
            "amount": _safe_float(order.payment_amount),
            "amount_paid": _safe_float(order.payment_amount_paid),
            "paid_at": _iso(order.paid_at),
        },
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "completed_at": _iso(order.completed_at),
    }


def serialize_available_table(candidate) -> dict[str, Any]:
    data = serialize_table(candidate.table)
    data["available"] = candidate.available
    data["price"] = _safe_float(candidate.price)
    return data


def serialize_table_status(table_status) -> dict[str, Any]:
    data = {
        "table": serialize_table(table_status.table),
        "reservation": (
            serialize_reservation(table_status.reservation) if table_status.reservation else None
        ),
        "order": serialize_order(table_status.order) if table_status.order else None,
        "waiting_time": table_status.waiting_time,
        "last_activity": _iso(table_status.last_activity),
        "customer_name": table_status.customer_name,
        "party_size": table_status.party_size,
    }
    data.update(resolve_status_meta(table_status.status.value))
    return data


def serialize_table_context(context) -> dict[str, Any]:
    return {
        "table_number": context.table_number,
        "has_active_reservation": context.has_active_reservation,
        "reservation": serialize_reservation(context.reservation) if context.reservation else None,
        "suggested_customer_name": context.suggested_customer_name,
        "suggested_customer_email": context.suggested_customer_email,
        "suggested_customer_phone": context.suggested_customer_phone,
        "pre_order_items": list(context.pre_order_items),
    }


def success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Create a standardized success response."""
    response = {"status": "success", "data": data, "error": None}
    if message:
        response["message"] = message
    return response


def error_response(
    error: str, details: dict[str, Any] | None = None, code: str | None = None
) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error}
    if code:
        response["code"] = code
    if details:
        response["details"] = details
    return response
