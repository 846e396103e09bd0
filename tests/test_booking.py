import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import SERVICE_DAY
from lounge_shared.constants import ActorScope, ReservationStatus
from lounge_shared.errors import (
    CancellationWindowError,
    ConflictError,
    NotFoundError,
    ReservationLimitError,
    ReservationStateError,
)
from lounge_shared.schemas import ReservationForm
from lounge_shared.services.booking_service import (
    cancel_reservation,
    create_reservation,
    get_time_slots,
    get_user_active_reservation,
    transition_reservation,
)
from lounge_shared.services.reservation_state_machine import reservation_state_machine
from lounge_shared.store import ReservationFilter
from lounge_shared.validation import ValidationError

TOMORROW = date(2024, 3, 2)


def _form(table_id, time_slot="19:00-21:00", party_size=2, reservation_date=SERVICE_DAY, **extra):
    return ReservationForm(
        table_id=table_id,
        reservation_date=reservation_date,
        time_slot=time_slot,
        party_size=party_size,
        customer_name="Grace Hopper",
        customer_email="grace@example.com",
        **extra,
    )


class TestCreateReservation:
    async def test_creates_pending_reservation(self, store, floor):
        reservation_id = await create_reservation(
            store, _form(floor[21], pre_order_items=["shisha-mint"]), "user-1"
        )

        reservation = await store.get_reservation(reservation_id)
        assert reservation.status == ReservationStatus.PENDING.value
        assert reservation.table_number == 21
        assert (reservation.start_time, reservation.end_time) == ("19:00", "21:00")
        assert reservation.total_amount == Decimal("11.00")
        assert reservation.pre_order_items == ["shisha-mint"]
        assert reservation.created_at == datetime(2024, 3, 1, 19, 30)

    async def test_party_larger_than_table(self, store, floor):
        with pytest.raises(ValidationError):
            await create_reservation(store, _form(floor[1], party_size=3), "user-1")

    async def test_missing_table(self, store, floor):
        with pytest.raises(NotFoundError):
            await create_reservation(store, _form(4242), "user-1")

    async def test_inactive_table(self, store, floor):
        with pytest.raises(NotFoundError):
            await create_reservation(store, _form(floor[9]), "user-1")

    async def test_outdoor_closed_for_late_slot(self, store, floor):
        with pytest.raises(ConflictError):
            await create_reservation(store, _form(floor[21], time_slot="21:00-23:00"), "user-1")

    async def test_taken_table_is_a_conflict(self, store, floor):
        await create_reservation(store, _form(floor[3]), "user-1")

        with pytest.raises(ConflictError) as excinfo:
            await create_reservation(store, _form(floor[3]), "user-2")

        assert excinfo.value.user_message == "Table no longer available, please choose another."

    async def test_cancelled_booking_frees_the_slot(self, store, floor):
        first_id = await create_reservation(store, _form(floor[3], reservation_date=TOMORROW), "user-1")
        await cancel_reservation(store, first_id, reason="plans changed")

        second_id = await create_reservation(store, _form(floor[3], reservation_date=TOMORROW), "user-2")

        assert second_id != first_id

    async def test_concurrent_bookings_only_one_wins(self, store, floor, monkeypatch):
        insert = store.create_reservation
        checked = []
        both_checked = asyncio.Event()

        async def insert_after_both_checks(data):
            checked.append(data["user_id"])
            if len(checked) == 2:
                both_checked.set()
            await both_checked.wait()
            return await insert(data)

        monkeypatch.setattr(store, "create_reservation", insert_after_both_checks)

        results = await asyncio.gather(
            create_reservation(store, _form(floor[3]), "user-1"),
            create_reservation(store, _form(floor[3]), "user-2"),
            return_exceptions=True,
        )

        assert sorted(checked) == ["user-1", "user-2"]
        successes = [r for r in results if isinstance(r, int)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert conflicts[0].user_message == "Table no longer available, please choose another."
        booked = await store.query_reservations(ReservationFilter(table_number=3))
        assert [r.id for r in booked] == successes

    async def test_store_calls_do_not_block_the_event_loop(self, store, floor):
        ticks = 0

        async def heartbeat():
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.create_task(heartbeat())
        try:
            await store.list_tables()
        finally:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        assert ticks > 0

    async def test_store_rejects_second_active_booking(self, store, floor, add_reservation):
        await add_reservation(3, status=ReservationStatus.SEATED)

        with pytest.raises(ConflictError):
            await add_reservation(3, status=ReservationStatus.PENDING, user_id="other")

    async def test_user_limit_of_two_open_reservations(self, store, floor):
        await create_reservation(store, _form(floor[1]), "user-1")
        await create_reservation(store, _form(floor[3]), "user-1")

        with pytest.raises(ReservationLimitError) as excinfo:
            await create_reservation(store, _form(floor[5]), "user-1")

        assert excinfo.value.code == "FLOOR_409_LIMIT"
        assert isinstance(excinfo.value, ConflictError)


class TestTransitions:
    async def test_staff_confirms_and_stamps(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3, status=ReservationStatus.PENDING)

        reservation = await transition_reservation(
            store, reservation_id, ReservationStatus.CONFIRMED, actor_scope=ActorScope.STAFF
        )

        assert reservation.status == "confirmed"
        assert reservation.confirmed_at == datetime(2024, 3, 1, 19, 30)

    async def test_customer_cannot_confirm(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3, status=ReservationStatus.PENDING)

        with pytest.raises(ReservationStateError):
            await transition_reservation(store, reservation_id, "confirmed", actor_scope="customer")

    async def test_invalid_transition(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3, status=ReservationStatus.COMPLETED)

        with pytest.raises(ReservationStateError) as excinfo:
            await transition_reservation(store, reservation_id, "seated", actor_scope="staff")

        assert excinfo.value.current_status == ReservationStatus.COMPLETED

    async def test_unknown_status(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3)

        with pytest.raises(ReservationStateError):
            await transition_reservation(store, reservation_id, "teleported", actor_scope="staff")

    async def test_only_system_expires(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3)

        with pytest.raises(ReservationStateError):
            await transition_reservation(store, reservation_id, "expired", actor_scope="staff")
        reservation = await transition_reservation(store, reservation_id, "expired", actor_scope="system")

        assert reservation.status == "expired"

    async def test_no_show_stamps(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3)

        reservation = await transition_reservation(
            store, reservation_id, "no_show", actor_scope="staff", notes="never arrived"
        )

        assert reservation.no_show_at is not None
        assert reservation.notes == "never arrived"

    async def test_customer_cancels_well_ahead(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3, reservation_date=TOMORROW)

        reservation = await cancel_reservation(store, reservation_id, reason="sick")

        assert reservation.status == "cancelled"
        assert reservation.cancelled_at == datetime(2024, 3, 1, 19, 30)
        assert reservation.notes == "sick"

    async def test_customer_cannot_cancel_within_two_hours(self, store, floor, add_reservation):
        # Starts at 21:00, the clock says 19:30.
        reservation_id = await add_reservation(3, time_slot="21:00-23:00")

        with pytest.raises(CancellationWindowError):
            await cancel_reservation(store, reservation_id)

    async def test_staff_can_cancel_within_two_hours(self, store, floor, add_reservation):
        reservation_id = await add_reservation(3, time_slot="21:00-23:00")

        reservation = await cancel_reservation(store, reservation_id, actor_scope=ActorScope.STAFF)

        assert reservation.status == "cancelled"

    async def test_missing_reservation(self, store, floor):
        with pytest.raises(NotFoundError):
            await transition_reservation(store, 404, "confirmed", actor_scope="staff")


async def test_user_active_reservation_for_today(store, floor, add_reservation):
    await add_reservation(1, status=ReservationStatus.PENDING, user_id="user-7")
    seated_id = await add_reservation(3, status=ReservationStatus.SEATED, user_id="user-7")
    await add_reservation(5, reservation_date=TOMORROW, user_id="user-7")

    reservation = await get_user_active_reservation(store, "user-7")

    assert reservation.id == seated_id
    assert await get_user_active_reservation(store, "nobody") is None


async def test_time_slots_are_unique_and_in_service_order(store, engine):
    for start, end in [("16:00", "18:00"), ("00:00", "02:00"), ("16:00", "18:00"), ("23:00", "01:00")]:
        await store.create_time_slot({"start_time": start, "end_time": end})

    slots = await get_time_slots(store)

    assert [slot.label for slot in slots] == ["16:00-18:00", "23:00-01:00", "00:00-02:00"]
    assert slots[0].duration_minutes == 120


class TestStateMachine:
    @pytest.mark.parametrize(
        "current,target,scope,allowed",
        [
            ("pending", "confirmed", "staff", True),
            ("pending", "seated", "system", True),
            ("confirmed", "cancelled", "customer", True),
            ("confirmed", "no_show", "customer", False),
            ("seated", "cancelled", "staff", False),
            ("seated", "expired", "system", True),
            ("completed", "seated", "system", False),
        ],
    )
    def test_can_transition(self, current, target, scope, allowed):
        assert reservation_state_machine.can_transition(current, target, scope) is allowed

    def test_policy_names_the_action(self):
        assert reservation_state_machine.get_policy("confirmed", "seated")["action"] == "seat"
        assert reservation_state_machine.get_policy("seated", "pending") is None

    @pytest.mark.parametrize("status", ["completed", "cancelled", "no_show", "expired"])
    def test_terminal_statuses(self, status):
        assert reservation_state_machine.is_terminal(status)

    def test_seated_is_not_terminal(self):
        assert not reservation_state_machine.is_terminal(ReservationStatus.SEATED)
