"""
Per-app objects shared by the staff blueprints.
"""

from flask import current_app

from lounge_shared.services.table_status_service import TableStatusThresholds
from lounge_shared.store import DocumentStore

STORE_KEY = "lounge_store"


def get_store() -> DocumentStore:
    return current_app.extensions[STORE_KEY]


def get_thresholds() -> TableStatusThresholds:
    return current_app.config["STATUS_THRESHOLDS"]
