from datetime import date, datetime
from types import SimpleNamespace

import pytest

from lounge_shared.constants import TableLocation
from lounge_shared.slot_utils import (
    is_location_open_for_slot,
    is_within_occupancy_window,
    is_within_ordering_window,
    parse_slot,
    reservation_bounds,
    slot_bounds,
)
from lounge_shared.validation import ValidationError


def _reservation(time_slot="19:00-21:00", day=date(2024, 3, 1)):
    start, end = time_slot.split("-")
    return SimpleNamespace(
        id=1, reservation_date=day, time_slot=time_slot, start_time=start, end_time=end
    )


class TestParseSlot:
    def test_splits_bounds(self):
        assert parse_slot("19:00-21:00") == ("19:00", "21:00")

    @pytest.mark.parametrize("slot", ["", "19-21", "7:00-9:00", "24:00-01:00", "19:00 21:00"])
    def test_rejects_malformed(self, slot):
        with pytest.raises(ValidationError):
            parse_slot(slot)

    def test_rejects_empty_duration(self):
        with pytest.raises(ValidationError):
            parse_slot("18:00-18:00")


class TestSlotBounds:
    def test_same_day_slot(self):
        start, end = slot_bounds(date(2024, 3, 1), "19:00-21:00")
        assert start == datetime(2024, 3, 1, 19, 0)
        assert end == datetime(2024, 3, 1, 21, 0)

    def test_slot_crossing_midnight_ends_after_start(self):
        start, end = slot_bounds("2024-03-01", "23:00-01:00")
        assert end > start
        assert start == datetime(2024, 3, 1, 23, 0)
        assert end == datetime(2024, 3, 2, 1, 0)

    def test_slot_ending_at_midnight(self):
        start, end = slot_bounds(date(2024, 3, 1), "22:00-00:00")
        assert end == datetime(2024, 3, 2, 0, 0)
        assert (end - start).total_seconds() == 2 * 3600

    def test_after_midnight_slot_belongs_to_next_day(self):
        start, end = slot_bounds(date(2024, 3, 1), "00:00-02:00")
        assert start == datetime(2024, 3, 2, 0, 0)
        assert end == datetime(2024, 3, 2, 2, 0)

    def test_early_start_late_end_is_pushed_forward(self):
        start, end = slot_bounds(date(2024, 3, 1), "05:00-07:00")
        assert start == datetime(2024, 3, 2, 5, 0)
        assert end == datetime(2024, 3, 2, 7, 0)

    def test_invalid_date(self):
        with pytest.raises(ValidationError):
            slot_bounds("01/03/2024", "19:00-21:00")


class TestLocationRule:
    @pytest.mark.parametrize("location", [TableLocation.OUTDOOR, "terrace"])
    def test_outdoor_areas_closed_after_22(self, location):
        assert is_location_open_for_slot(location, "20:00-23:00") is False

    @pytest.mark.parametrize("location", ["indoor", TableLocation.VIP])
    def test_indoor_areas_unrestricted(self, location):
        assert is_location_open_for_slot(location, "20:00-23:00") is True
        assert is_location_open_for_slot(location, "01:00-03:00") is True

    def test_outdoor_open_until_22(self):
        assert is_location_open_for_slot("outdoor", "20:00-22:00") is True

    def test_outdoor_closed_for_after_midnight_end(self):
        assert is_location_open_for_slot("outdoor", "23:00-01:00") is False


class TestWindows:
    def test_reservation_bounds_prefers_start_end(self):
        reservation = _reservation("23:00-01:00")
        start, end = reservation_bounds(reservation)
        assert (start, end) == (datetime(2024, 3, 1, 23, 0), datetime(2024, 3, 2, 1, 0))

    def test_reservation_without_date_is_rejected(self):
        reservation = _reservation()
        reservation.reservation_date = None
        with pytest.raises(ValidationError):
            reservation_bounds(reservation)

    def test_ordering_window_edges(self):
        reservation = _reservation("19:00-21:00")
        assert is_within_ordering_window(reservation, datetime(2024, 3, 1, 18, 30))
        assert not is_within_ordering_window(reservation, datetime(2024, 3, 1, 18, 29))
        assert is_within_ordering_window(reservation, datetime(2024, 3, 2, 0, 0))
        assert not is_within_ordering_window(reservation, datetime(2024, 3, 2, 0, 1))

    def test_occupancy_window_edges(self):
        reservation = _reservation("19:00-21:00")
        assert is_within_occupancy_window(reservation, datetime(2024, 3, 1, 19, 0))
        assert not is_within_occupancy_window(reservation, datetime(2024, 3, 1, 18, 59))
        assert is_within_occupancy_window(reservation, datetime(2024, 3, 1, 23, 0))
        assert not is_within_occupancy_window(reservation, datetime(2024, 3, 1, 23, 1))

    def test_occupancy_window_across_midnight(self):
        reservation = _reservation("23:00-01:00")
        assert is_within_occupancy_window(reservation, datetime(2024, 3, 2, 0, 30))
        assert is_within_occupancy_window(reservation, datetime(2024, 3, 2, 3, 0))
        assert not is_within_occupancy_window(reservation, datetime(2024, 3, 2, 3, 1))
