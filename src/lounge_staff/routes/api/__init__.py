"""
Staff API - Modular Blueprint Structure

Each module handles one resource of the floor.
"""

import logging

from flask import Blueprint

logger = logging.getLogger(__name__)

# Create main API blueprint
api_bp = Blueprint("api", __name__)

# Import and register sub-blueprints
from .orders import orders_bp
from .reservations import reservations_bp
from .tables import tables_bp

api_bp.register_blueprint(tables_bp)
api_bp.register_blueprint(reservations_bp)
api_bp.register_blueprint(orders_bp)


# Health check endpoint
@api_bp.get("/health")
def health_check():
    """Simple health check endpoint"""
    return {"status": "ok", "service": "lounge-staff-api"}, 200


__all__ = ["api_bp"]
