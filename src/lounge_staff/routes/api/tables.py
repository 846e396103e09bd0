"""
Tables API - availability, live status board and ordering context.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from lounge_shared.errors import NotFoundError
from lounge_shared.logging_config import get_logger
from lounge_shared.schemas import AvailabilityQuery
from lounge_shared.serializers import (
    serialize_available_table,
    serialize_table_context,
    serialize_table_status,
    success_response,
)
from lounge_shared.services.availability_service import AvailabilityCheck, get_available_tables
from lounge_shared.services.reconciliation_service import get_table_context_for_ordering
from lounge_shared.services.table_status_service import get_table_statuses
from lounge_staff.extensions import get_store, get_thresholds

tables_bp = Blueprint("tables", __name__)
logger = get_logger(__name__)


@tables_bp.get("/tables/availability")
async def get_availability():
    """
    Tables that fit a party for a date and slot.

    Query: date, time_slot, party_size, location (optional)
    """
    query = AvailabilityQuery(**request.args.to_dict())
    check = AvailabilityCheck(
        date=query.date,
        time_slot=query.time_slot,
        party_size=query.party_size,
        preferred_location=query.location.value if query.location else None,
    )
    candidates = await get_available_tables(get_store(), check)
    return jsonify(
        success_response(
            {
                "date": query.date.isoformat(),
                "time_slot": query.time_slot,
                "tables": [serialize_available_table(candidate) for candidate in candidates],
            }
        )
    ), HTTPStatus.OK


@tables_bp.get("/tables/status")
async def get_status_board():
    statuses = await get_table_statuses(get_store(), thresholds=get_thresholds())
    return jsonify(
        success_response({"tables": [serialize_table_status(status) for status in statuses]})
    ), HTTPStatus.OK


@tables_bp.get("/tables/<int:table_number>/context")
async def get_ordering_context(table_number: int):
    """Active reservation (if any) to pre-fill a new order for the table."""
    store = get_store()
    if await store.get_table_by_number(table_number) is None:
        raise NotFoundError(f"Table {table_number} not found")

    context = await get_table_context_for_ordering(store, table_number)
    return jsonify(success_response(serialize_table_context(context))), HTTPStatus.OK
