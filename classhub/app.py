#!/usr/bin/env python3
"""
ClassHub - Worksheet Sync Backend
=================================
Run: python3 -m classhub.app
Then point the classroom frontend at http://localhost:3000
"""
import logging

from flask import Flask
from flask_cors import CORS

from . import config as app_config
from .auth import init_auth
from .routes import register_routes
from .services.assignment_store import set_store

logger = logging.getLogger(__name__)


def create_app(store=None):
    """
    Build the Flask app. Pass a store to run against something other than
    Supabase (the in-memory store for local development and tests).
    """
    app = Flask(__name__)
    CORS(app)
    app.config['MAX_CONTENT_LENGTH'] = app_config.MAX_MESSAGE_BYTES * 2

    # Auth hook goes in before the blueprints
    init_auth(app)
    register_routes(app)

    if store is not None:
        set_store(store)
    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG if app_config.DEBUG else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app = create_app()
    logger.info("ClassHub backend listening on %s:%d", app_config.HOST, app_config.PORT)
    app.run(host=app_config.HOST, port=app_config.PORT, debug=app_config.DEBUG)
