from datetime import date, datetime, timedelta

import pytest

from lounge_shared.config import AppConfig
from lounge_shared.constants import ReservationStatus, TableLocation
from lounge_shared.db import dispose_engine, init_db, init_engine
from lounge_shared.models import Base
from lounge_shared.store import DocumentStore

SERVICE_DAY = date(2024, 3, 1)
# Friday evening, in the middle of the 19:00-21:00 slot.
NOW = datetime(2024, 3, 1, 19, 30)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_config(**overrides) -> AppConfig:
    values = {
        "app_name": "lounge-test",
        "db_host": "localhost",
        "db_port": 5432,
        "db_user": "lounge",
        "db_password": "lounge",
        "db_name": "lounge",
        "db_sslmode": "disable",
        "database_url_override": "sqlite://",
        "log_level": "WARNING",
        "restaurant_name": "Test Lounge",
        "restaurant_slug": "test-lounge",
        "restaurant_timezone": "",
        "debug_mode": True,
        "seed_sample_data": False,
        "table_warning_minutes": 45,
        "table_overdue_minutes": 90,
        "table_max_service_minutes": 30,
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def engine():
    engine = init_engine(database_url="sqlite://")
    init_db(Base.metadata)
    yield engine
    dispose_engine()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def store(engine, clock):
    return DocumentStore(clock=clock)


FLOOR = [
    {"number": 1, "capacity": 2, "location": TableLocation.INDOOR, "price_multiplier": 1.0},
    {"number": 3, "capacity": 4, "location": TableLocation.INDOOR, "price_multiplier": 1.0},
    {"number": 5, "capacity": 4, "location": TableLocation.INDOOR, "price_multiplier": 1.0},
    {"number": 9, "capacity": 4, "location": TableLocation.INDOOR, "price_multiplier": 1.0, "is_active": False},
    {"number": 20, "capacity": 8, "location": TableLocation.VIP, "price_multiplier": 1.3},
    {"number": 21, "capacity": 4, "location": TableLocation.OUTDOOR, "price_multiplier": 1.1},
    {"number": 24, "capacity": 2, "location": TableLocation.TERRACE, "price_multiplier": 1.2},
]


@pytest.fixture
async def floor(store):
    """Table number -> table id for a small mixed floor."""
    ids = {}
    for table in FLOOR:
        ids[table["number"]] = await store.create_table(table)
    return ids


@pytest.fixture
def add_reservation(store, floor):
    """Insert a reservation directly through the store (no booking rules)."""

    async def _add(
        table_number: int,
        time_slot: str = "19:00-21:00",
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        reservation_date: date = SERVICE_DAY,
        user_id: str = "guest-1",
        **extra,
    ) -> int:
        data = {
            "table_id": floor[table_number],
            "table_number": table_number,
            "user_id": user_id,
            "customer_name": "Ada Lovelace",
            "customer_email": "ada@example.com",
            "customer_phone": "+49 30 1234567",
            "reservation_date": reservation_date,
            "time_slot": time_slot,
            "party_size": 2,
            "status": status,
            "total_amount": 10,
        }
        data.update(extra)
        return await store.create_reservation(data)

    return _add
