"""
ClassHub API Routes
===================

All API route blueprints for the ClassHub application.

Usage:
    from classhub.routes import register_routes
    register_routes(app)
"""
from .worksheet_routes import worksheet_bp
from .marking_routes import marking_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(worksheet_bp)
    app.register_blueprint(marking_bp)


__all__ = [
    'register_routes',
    'worksheet_bp',
    'marking_bp',
]
