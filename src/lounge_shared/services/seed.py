"""
Sample floor for development: 30 tables and the evening time slots.

Loaded only into an empty store.
"""

from __future__ import annotations

from lounge_shared.constants import TableLocation
from lounge_shared.logging_config import get_logger
from lounge_shared.store import DocumentStore

logger = get_logger(__name__)


def _tables(numbers, capacity, location, amenities, multiplier):
    return [
        {
            "number": number,
            "capacity": capacity,
            "location": location,
            "amenities": amenities,
            "is_active": True,
            "price_multiplier": multiplier,
        }
        for number in numbers
    ]


SAMPLE_TABLES = [
    # Indoor 1-19
    *_tables(range(1, 9), 2, TableLocation.INDOOR, ["smoking_area"], 1.0),
    *_tables(range(9, 17), 4, TableLocation.INDOOR, ["smoking_area"], 1.0),
    *_tables(range(17, 20), 6, TableLocation.INDOOR, ["smoking_area", "private"], 1.1),
    # VIP
    *_tables([20], 8, TableLocation.VIP, ["smoking_area", "private", "bar_access"], 1.3),
    # Outdoor 21-30, closes at 22:00
    *_tables(range(21, 25), 2, TableLocation.OUTDOOR, ["smoking_area", "fresh_air"], 1.1),
    *_tables(range(25, 29), 4, TableLocation.OUTDOOR, ["smoking_area", "fresh_air"], 1.1),
    *_tables(range(29, 31), 6, TableLocation.OUTDOOR, ["smoking_area", "fresh_air", "view"], 1.2),
]

# (start, end, max_reservations)
SAMPLE_TIME_SLOTS = [
    ("16:00", "18:00", 30),
    ("17:00", "19:00", 30),
    ("18:00", "20:00", 30),
    ("19:00", "21:00", 30),
    ("20:00", "22:00", 30),
    # Indoor only from here on
    ("21:00", "23:00", 20),
    ("22:00", "00:00", 20),
    ("23:00", "01:00", 20),
    ("00:00", "02:00", 15),
    ("01:00", "03:00", 15),
]


async def seed_sample_floor(store: DocumentStore) -> bool:
    """Insert the sample floor when the store has no tables; True if seeded."""
    if await store.list_tables():
        logger.info("Tables already exist, skipping sample floor")
        return False

    for table in SAMPLE_TABLES:
        await store.create_table(table)

    for start_time, end_time, max_reservations in SAMPLE_TIME_SLOTS:
        await store.create_time_slot(
            {
                "start_time": start_time,
                "end_time": end_time,
                "duration_minutes": 120,
                "max_reservations": max_reservations,
            }
        )

    logger.info(f"Seeded {len(SAMPLE_TABLES)} tables and {len(SAMPLE_TIME_SLOTS)} time slots")
    return True
