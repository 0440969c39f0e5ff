"""
Marking Routes for ClassHub.
Read-only replay of a student's worksheet, recording a mark, and the bulk
feedback exchange (answers export, template download, feedback import).
"""
import logging
from urllib.parse import quote

from flask import Blueprint, Response, request, jsonify, g

from ..errors import InvalidArgument
from ..services import marking, replay
from ..services.assignment_store import get_store
from .responses import error_response

marking_bp = Blueprint('marking', __name__)
logger = logging.getLogger(__name__)


def _text_download(filename, text):
    return Response(
        text,
        mimetype='text/plain',
        headers={'Content-Disposition': f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@marking_bp.route('/api/assignments/<assignment_id>/replay', methods=['GET'])
def replay_assignment(assignment_id):
    try:
        view = replay.marking_view(get_store(), assignment_id, g.get('user_id'))
        return jsonify(view)
    except Exception as e:
        return error_response(e)


@marking_bp.route('/api/assignments/<assignment_id>/mark', methods=['POST'])
def mark_assignment(assignment_id):
    """Save mark and feedback; the assignment becomes Completed."""
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidArgument("Expected a JSON object with 'mark' and 'feedback'.")
        mark = data.get('mark')
        feedback = data.get('feedback', '')
        if mark is None or not isinstance(feedback, str):
            raise InvalidArgument("A 'mark' and text 'feedback' are required.")
        row = marking.record_mark(get_store(), assignment_id, g.get('user_id'), mark, feedback)
        return jsonify({"status": row.get('status'), "mark": row.get('mark'), "feedback": row.get('feedback')})
    except Exception as e:
        return error_response(e)


# ============ Bulk Feedback ============

@marking_bp.route('/api/classes/<class_id>/worksheets/<worksheet_id>/answers-export', methods=['GET'])
def export_answers(class_id, worksheet_id):
    try:
        filename, text = marking.export_answers(get_store(), class_id, worksheet_id, g.get('user_id'))
        return _text_download(filename, text)
    except Exception as e:
        return error_response(e)


@marking_bp.route('/api/classes/<class_id>/worksheets/<worksheet_id>/feedback-template', methods=['GET'])
def feedback_template(class_id, worksheet_id):
    try:
        filename, text = marking.feedback_template(get_store(), class_id, worksheet_id, g.get('user_id'))
        return _text_download(filename, text)
    except Exception as e:
        return error_response(e)


@marking_bp.route('/api/classes/<class_id>/worksheets/<worksheet_id>/feedback-import', methods=['POST'])
def import_feedback(class_id, worksheet_id):
    """Accepts the filled-in template as a file upload or as the raw body."""
    try:
        if request.mimetype == 'multipart/form-data':
            upload = request.files.get('file')
            content = upload.read().decode('utf-8', errors='replace') if upload else ''
        else:
            content = request.get_data(as_text=True)
        result = marking.import_feedback(get_store(), class_id, worksheet_id, g.get('user_id'), content)
        return jsonify(result)
    except Exception as e:
        return error_response(e)
