"""
Student Worksheet Routes for ClassHub.
Opening a worksheet, the autosave relay from the sandboxed frame, hand-in,
and closed-form quiz submission.
"""
import logging

from flask import Blueprint, request, jsonify, g
from werkzeug.exceptions import RequestEntityTooLarge

from ..services import access, autosave, quiz_grading, replay
from ..services.assignment_store import get_store
from ..services.sandbox import parse_message
from .responses import error_response

worksheet_bp = Blueprint('worksheet', __name__)
logger = logging.getLogger(__name__)


@worksheet_bp.route('/api/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@worksheet_bp.route('/api/assignments/<assignment_id>/worksheet', methods=['GET'])
def open_worksheet(assignment_id):
    """Everything the student's page needs to embed (or resume) a worksheet."""
    try:
        view = replay.student_embed(get_store(), assignment_id, g.get('user_id'))
        return jsonify(view)
    except Exception as e:
        return error_response(e)


@worksheet_bp.route('/api/assignments/<assignment_id>/autosave', methods=['POST'])
def autosave_worksheet(assignment_id):
    """
    Relay one SAVE_WORKSHEET_DATA message posted by the frame.

    The raw body is handed to the message validator as-is, so the size cap
    applies to what the frame actually sent.
    """
    try:
        store = get_store()
        assignment = store.get(assignment_id)
        access.require_student_owner(assignment, g.get('user_id'))
        try:
            raw = request.get_data()
        except RequestEntityTooLarge:
            logger.warning("Rejected frame message for %s: body over the request size limit", assignment_id)
            return jsonify({"accepted": False, "reason": "invalid-message"}), 400
        result = autosave.handle_frame_message(store, assignment, raw)
        if not result["accepted"]:
            return jsonify(result), 400
        return jsonify(result)
    except Exception as e:
        return error_response(e)


@worksheet_bp.route('/api/assignments/<assignment_id>/hand-in', methods=['POST'])
def hand_in_worksheet(assignment_id):
    """Freeze the assignment. An optional final message is saved with it."""
    try:
        store = get_store()
        assignment = store.get(assignment_id)
        access.require_student_owner(assignment, g.get('user_id'))

        snapshot = None
        body = request.get_data()
        if body:
            message = parse_message(body)
            if message is None:
                return jsonify({"error": "Invalid worksheet message", "code": "invalid-argument"}), 400
            snapshot = message["payload"]

        row = autosave.hand_in(store, assignment_id, snapshot, assignment=assignment)
        return jsonify({"status": row.get('status')})
    except Exception as e:
        return error_response(e)


@worksheet_bp.route('/api/submit-quiz', methods=['POST'])
def submit_quiz():
    """Grade a quiz on the server and complete the assignment."""
    try:
        data = request.get_json(silent=True) or {}
        result = quiz_grading.submit_quiz(get_store(), g.get('user_id'), data)
        return jsonify(result)
    except Exception as e:
        return error_response(e)
