import logging
from datetime import datetime
from decimal import Decimal

import pytest

from lounge_shared.constants import Collection, OrderStatus, ReservationStatus, TableStatusType
from lounge_shared.errors import NotFoundError, OrderStateError, UpstreamFailure
from lounge_shared.services.order_service import can_transition_order, update_order_status
from lounge_shared.services.reconciliation_service import (
    ADDITIONAL_ORDER_NOTE,
    FIRST_ORDER_NOTE,
    ReconciliationCoordinator,
    create_order_with_reservation,
    get_active_reservation_for_table,
    get_recent_orders_for_reservation,
    get_reservation_orders_by_date_range,
    get_table_context_for_ordering,
    promote_reservation_for_order,
    validate_order_reservation_consistency,
)
from lounge_shared.services.table_status_service import TableStatusThresholds

ITEMS = [
    {"menu_item_id": "shisha-mint", "name": "Mint shisha", "unit_price": 18.5, "quantity": 1},
    {"menu_item_id": "tea-pot", "name": "Moroccan tea", "unit_price": 6.25, "quantity": 2},
]


def _order_data(table_number=5, **extra):
    data = {
        "table_number": table_number,
        "items": ITEMS,
        "customer_name": "Ada Lovelace",
        "payment_method": "card",
    }
    data.update(extra)
    return data


class TestOrderSideEffects:
    async def test_order_seats_then_delivery_completes(self, store, floor, add_reservation):
        reservation_id = await add_reservation(5)

        order_id = await create_order_with_reservation(store, _order_data(), reservation_id)

        reservation = await store.get_reservation(reservation_id)
        assert reservation.status == ReservationStatus.SEATED.value
        assert reservation.notes == FIRST_ORDER_NOTE

        order = await store.get_order(order_id)
        assert order.order_type == "reservation"
        assert order.total_amount == Decimal("31.00")
        assert order.payment_status == "unpaid"
        assert order.payment_method == "card"
        assert order.payment_amount == Decimal("31.00")
        assert [item.menu_item_id for item in order.items] == ["shisha-mint", "tea-pot"]

        for status in ("confirmed", "preparing", "ready", "delivered"):
            await update_order_status(store, order_id, status)

        reservation = await store.get_reservation(reservation_id)
        assert reservation.status == ReservationStatus.COMPLETED.value
        assert reservation.completed_at is not None
        assert (await store.get_order(order_id)).completed_at is not None

    async def test_second_order_keeps_reservation_seated(self, store, floor, add_reservation):
        reservation_id = await add_reservation(5)
        await create_order_with_reservation(store, _order_data(), reservation_id)

        await create_order_with_reservation(store, _order_data(), reservation_id)

        reservation = await store.get_reservation(reservation_id)
        assert reservation.status == ReservationStatus.SEATED.value
        assert reservation.notes == FIRST_ORDER_NOTE

    async def test_additional_order_note_for_unseated_reservation(self, store, floor, add_reservation):
        reservation_id = await add_reservation(5)
        await store.create_order({**_order_data(), "reservation_id": reservation_id, "total_amount": 5})

        await promote_reservation_for_order(store, reservation_id, order_id=999)

        reservation = await store.get_reservation(reservation_id)
        assert reservation.status == ReservationStatus.SEATED.value
        assert reservation.notes == ADDITIONAL_ORDER_NOTE

    async def test_walk_in_order(self, store, floor):
        order_id = await create_order_with_reservation(store, _order_data(table_number=1))

        order = await store.get_order(order_id)
        assert order.order_type == "walk-in"
        assert order.reservation_id is None

    async def test_unknown_reservation(self, store, floor):
        with pytest.raises(NotFoundError):
            await create_order_with_reservation(store, _order_data(), reservation_id=404)

    async def test_order_stored_even_if_reservation_cannot_be_seated(self, store, floor, add_reservation, caplog):
        reservation_id = await add_reservation(5, status=ReservationStatus.CANCELLED)

        with caplog.at_level(logging.ERROR):
            order_id = await create_order_with_reservation(store, _order_data(), reservation_id)

        assert await store.get_order(order_id) is not None
        assert (await store.get_reservation(reservation_id)).status == ReservationStatus.CANCELLED.value
        assert "Could not seat reservation" in caplog.text

    async def test_mismatched_order_is_still_created(self, store, floor, add_reservation, caplog):
        reservation_id = await add_reservation(5)

        with caplog.at_level(logging.WARNING):
            order_id = await create_order_with_reservation(
                store, _order_data(table_number=3, customer_name="Someone Else"), reservation_id
            )

        assert (await store.get_order(order_id)).table_number == 3
        assert "FLOOR_422" in caplog.text

    async def test_completion_failure_does_not_fail_delivery(self, store, floor, add_reservation, monkeypatch):
        reservation_id = await add_reservation(5)
        order_id = await create_order_with_reservation(store, _order_data(), reservation_id)

        async def broken_get(reservation_id):
            raise UpstreamFailure("get_reservation failed")

        monkeypatch.setattr(store, "get_reservation", broken_get)

        order = await update_order_status(store, order_id, OrderStatus.DELIVERED)

        assert order.status == OrderStatus.DELIVERED.value


class TestConsistency:
    async def test_matching_details(self, store, floor, add_reservation):
        reservation = await store.get_reservation(await add_reservation(5))

        data = {"table_number": 5, "customer_name": "Ada Lovelace", "customer_email": "ada@example.com"}
        assert validate_order_reservation_consistency(data, reservation) is True

    async def test_missing_order_fields_are_not_compared(self, store, floor, add_reservation):
        reservation = await store.get_reservation(await add_reservation(5))

        assert validate_order_reservation_consistency({"table_number": 5}, reservation) is True

    @pytest.mark.parametrize(
        "data",
        [
            {"table_number": 3},
            {"table_number": 5, "customer_phone": "+1 555 0100"},
            {"table_number": 5, "customer_email": "grace@example.com"},
            {"table_number": 5, "customer_name": "ada lovelace"},
            {"table_number": 5, "customer_email": "ADA@example.com"},
            {"table_number": 5, "customer_name": " Ada Lovelace"},
        ],
    )
    async def test_mismatches(self, store, floor, add_reservation, data, caplog):
        reservation = await store.get_reservation(await add_reservation(5))

        with caplog.at_level(logging.WARNING):
            assert validate_order_reservation_consistency(data, reservation) is False

        assert "mismatch" in caplog.text

    @pytest.mark.parametrize("table_number", [None, "", "twelve"])
    async def test_unusable_table_number_is_a_mismatch(self, store, floor, add_reservation, table_number):
        reservation = await store.get_reservation(await add_reservation(5))

        assert validate_order_reservation_consistency({"table_number": table_number}, reservation) is False

    async def test_table_number_missing_from_order(self, store, floor, add_reservation):
        reservation = await store.get_reservation(await add_reservation(5))

        assert validate_order_reservation_consistency({}, reservation) is False


class TestOrderingContext:
    async def test_active_reservation_prefills_customer(self, store, floor, add_reservation):
        reservation_id = await add_reservation(5, pre_order_items=["tea-pot"])

        context = await get_table_context_for_ordering(store, 5)

        assert context.has_active_reservation is True
        assert context.reservation.id == reservation_id
        assert context.suggested_customer_name == "Ada Lovelace"
        assert context.suggested_customer_email == "ada@example.com"
        assert context.suggested_customer_phone == "+49 30 1234567"
        assert context.pre_order_items == ["tea-pot"]

    async def test_no_reservation_in_window(self, store, floor, add_reservation):
        await add_reservation(5, time_slot="22:00-00:00")

        context = await get_table_context_for_ordering(store, 5)

        assert context.has_active_reservation is False
        assert context.reservation is None
        assert context.pre_order_items == []

    async def test_pending_reservation_is_not_orderable(self, store, floor, add_reservation):
        await add_reservation(5, status=ReservationStatus.PENDING)

        assert await get_active_reservation_for_table(store, 5) is None

    async def test_midnight_slot_from_yesterday(self, store, floor, add_reservation, clock):
        reservation_id = await add_reservation(5, time_slot="23:00-01:00")

        found = await get_active_reservation_for_table(store, 5, now=datetime(2024, 3, 2, 1, 30))

        assert found.id == reservation_id

    async def test_lookup_failure_means_no_reservation(self, store, floor, monkeypatch):
        async def broken_query(filters=None):
            raise UpstreamFailure("query_reservations failed")

        monkeypatch.setattr(store, "query_reservations", broken_query)

        assert await get_active_reservation_for_table(store, 5) is None


async def test_recent_orders_for_reservation(store, floor, add_reservation, monkeypatch):
    reservation_id = await add_reservation(5)
    order_id = await create_order_with_reservation(store, _order_data(), reservation_id)
    await create_order_with_reservation(store, _order_data(table_number=1))

    orders = await get_recent_orders_for_reservation(store, reservation_id)
    assert [order.id for order in orders] == [order_id]

    async def broken_query(filters=None):
        raise UpstreamFailure("query_orders failed")

    monkeypatch.setattr(store, "query_orders", broken_query)
    assert await get_recent_orders_for_reservation(store, reservation_id) == []


async def test_orders_by_date_range_split_by_type(store, floor, add_reservation, clock):
    reservation_id = await add_reservation(5)
    reservation_order = await create_order_with_reservation(store, _order_data(), reservation_id)
    walk_in_order = await create_order_with_reservation(store, _order_data(table_number=1))
    clock.advance(days=1)
    await create_order_with_reservation(store, _order_data(table_number=3))

    with_reservation, walk_ins = await get_reservation_orders_by_date_range(
        store, datetime(2024, 3, 1), datetime(2024, 3, 2)
    )

    assert [o.id for o in with_reservation] == [reservation_order]
    assert [o.id for o in walk_ins] == [walk_in_order]


class TestOrderLifecycle:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            ("pending", "confirmed", True),
            ("pending", "ready", True),
            ("preparing", "cancelled", True),
            ("ready", "preparing", False),
            ("delivered", "cancelled", False),
            ("cancelled", "pending", False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        assert can_transition_order(current, target) is allowed

    async def test_backwards_move_rejected(self, store, floor):
        order_id = await create_order_with_reservation(store, _order_data(table_number=1))
        await update_order_status(store, order_id, "ready")

        with pytest.raises(OrderStateError):
            await update_order_status(store, order_id, "preparing")

    async def test_unknown_status_rejected(self, store, floor):
        order_id = await create_order_with_reservation(store, _order_data(table_number=1))

        with pytest.raises(OrderStateError):
            await update_order_status(store, order_id, "eaten")

    async def test_missing_order(self, store, floor):
        with pytest.raises(NotFoundError):
            await update_order_status(store, 404, "confirmed")


class TestCoordinator:
    async def test_startup_computes_the_board(self, store, floor):
        coordinator = ReconciliationCoordinator(store)
        await coordinator.start()
        await coordinator.wait_idle()

        assert coordinator.is_running
        assert coordinator.recompute_count == 1
        assert len(coordinator.latest) == len(floor)

        await coordinator.stop()
        assert not coordinator.is_running

    async def test_recomputes_on_reservation_and_order_writes(self, store, floor, add_reservation):
        boards = []
        coordinator = ReconciliationCoordinator(store)
        coordinator.on_table_status_change(boards.append)
        await coordinator.start()
        await coordinator.wait_idle()

        reservation_id = await add_reservation(5)
        await coordinator.wait_idle()
        statuses = {s.table.number: s.status for s in coordinator.latest}
        assert statuses[5] == TableStatusType.RESERVED

        await create_order_with_reservation(store, _order_data(), reservation_id)
        await coordinator.wait_idle()
        statuses = {s.table.number: s.status for s in coordinator.latest}
        assert statuses[5] == TableStatusType.ORDERED

        # startup, reservation insert, order insert, reservation seated
        assert coordinator.recompute_count == 4
        assert len(boards) == 4
        await coordinator.stop()

    async def test_async_and_failing_listeners(self, store, floor, caplog):
        received = []

        async def async_listener(statuses):
            received.append(len(statuses))

        def failing_listener(statuses):
            raise RuntimeError("display offline")

        coordinator = ReconciliationCoordinator(store)
        coordinator.on_table_status_change(failing_listener)
        unsubscribe = coordinator.on_table_status_change(async_listener)
        await coordinator.start()
        await coordinator.wait_idle()

        assert received == [len(floor)]
        assert "display offline" in caplog.text

        unsubscribe()
        coordinator.request_recompute("manual")
        await coordinator.wait_idle()
        assert received == [len(floor)]
        await coordinator.stop()

    async def test_thresholds_apply_to_next_recompute(self, store, floor, add_reservation, clock):
        await add_reservation(5, status=ReservationStatus.SEATED)
        clock.advance(minutes=20)
        coordinator = ReconciliationCoordinator(store, clock=clock)
        await coordinator.start()
        await coordinator.wait_idle()
        assert {s.table.number: s.status for s in coordinator.latest}[5] == TableStatusType.SEATED

        coordinator.set_thresholds(TableStatusThresholds(warning_minutes=5, overdue_minutes=10))
        coordinator.request_recompute("thresholds")
        await coordinator.wait_idle()

        assert coordinator.thresholds.overdue_minutes == 10
        assert {s.table.number: s.status for s in coordinator.latest}[5] == TableStatusType.OVERDUE
        await coordinator.stop()

    async def test_stop_unsubscribes_from_the_feeds(self, store, floor):
        coordinator = ReconciliationCoordinator(store)
        await coordinator.start()
        assert store.feed.listener_count(Collection.ORDERS) == 1
        assert store.feed.listener_count(Collection.RESERVATIONS) == 1

        await coordinator.stop()

        assert store.feed.listener_count(Collection.ORDERS) == 0
        assert store.feed.listener_count(Collection.RESERVATIONS) == 0

    def test_request_before_start(self, store):
        with pytest.raises(RuntimeError):
            ReconciliationCoordinator(store).request_recompute()
