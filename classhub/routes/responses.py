"""
Shared JSON error responses for the ClassHub blueprints.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from ..errors import ClassHubError

logger = logging.getLogger(__name__)


def error_response(e):
    """Map a service error to (json, status). Anything unexpected is a 500."""
    if isinstance(e, ClassHubError):
        if e.http_status >= 500:
            logger.warning("%s: %s", e.code, e.message)
        return jsonify(e.to_dict()), e.http_status
    if isinstance(e, HTTPException):
        # Raised by werkzeug while reading the request (e.g. body over MAX_CONTENT_LENGTH)
        logger.warning("Rejected request: %s", e.description)
        return jsonify({"error": e.description, "code": e.name.lower().replace(' ', '-')}), e.code
    logger.exception("Unhandled error in request")
    return jsonify({"error": str(e), "code": "internal"}), 500
