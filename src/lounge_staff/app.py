"""
Factory for the staff-facing floor API.
"""

from __future__ import annotations

import asyncio
import logging
import os
from functools import partial

from flask import Flask
from flask_cors import CORS

from lounge_shared.config import AppConfig, load_config
from lounge_shared.datetime_utils import local_now
from lounge_shared.db import init_db, init_engine
from lounge_shared.error_handlers import register_error_handlers
from lounge_shared.logging_config import configure_logging
from lounge_shared.models import Base
from lounge_shared.realtime import build_change_feed
from lounge_shared.services.seed import seed_sample_floor
from lounge_shared.store import DocumentStore
from lounge_staff.extensions import STORE_KEY

logger = logging.getLogger(__name__)


def create_app(config: AppConfig | None = None) -> Flask:
    """
    Build the Flask application that serves the staff floor tools.
    """
    config = config or load_config("lounge-staff")
    configure_logging(config.app_name, config.log_level)

    app = Flask(__name__)

    # Initialize database engine first (before any DB queries)
    init_engine(config)
    init_db(Base.metadata)

    # Writes are relayed over Redis (when configured) so the board monitor sees them.
    store = DocumentStore(
        feed=build_change_feed(config.redis_url, config.redis_channel_prefix),
        clock=partial(local_now, config.restaurant_timezone or None),
    )
    app.extensions[STORE_KEY] = store

    app.config["APP_NAME"] = config.app_name
    app.config["RESTAURANT_NAME"] = config.restaurant_name
    app.config["RESTAURANT_SLUG"] = config.restaurant_slug
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["STATUS_THRESHOLDS"] = config.status_thresholds()

    if config.seed_sample_data:
        logger.info("[SEED] Loading sample floor (only if the store is empty)")
        asyncio.run(seed_sample_floor(store))

    register_error_handlers(app)

    from lounge_staff.routes.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Configure CORS with secure defaults
    allowed_origins = (
        os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
        if os.getenv("CORS_ALLOWED_ORIGINS")
        else []
    )
    if config.debug_mode or not allowed_origins:
        allowed_origins = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    CORS(
        app,
        resources={r"/api/*": {"origins": allowed_origins, "supports_credentials": True}},
        supports_credentials=True,
    )

    logger.info(f"{config.app_name} ready for {config.restaurant_name}")
    return app
