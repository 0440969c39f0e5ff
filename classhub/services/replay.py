"""
Worksheet views: the student's live embed and the marker's replay.

The replay embeds the same worksheet with the saved snapshot and the
read-only mode flag, with no autosave timer attached. It never writes, and
it always reads the assignment fresh from the store before rendering so a
save that just landed is what the marker sees.
"""
import logging

from ..errors import PreconditionFailed
from . import access, lifecycle
from .quiz_grading import quiz_review, strip_answer_key
from .sandbox import (
    VIEW_READ_ONLY, SandboxedFrame, build_embed, render_frame, view_mode_for,
)
from .snapshot import normalize_student_work

logger = logging.getLogger(__name__)


def worksheet_html(worksheet):
    html = worksheet.get('htmlContent')
    if not html:
        raise PreconditionFailed("Worksheet data is incomplete for an HTML worksheet.")
    return html


def is_quiz(worksheet):
    return worksheet.get('type') == 'quiz'


def student_embed(store, assignment_id, user_id):
    """What a student's browser needs to open (or resume) a worksheet."""
    assignment = store.get(assignment_id)
    access.require_student_owner(assignment, user_id)
    worksheet = store.get_worksheet(assignment.get('worksheetId'))
    status = lifecycle.normalize_status(assignment.get('status'))
    mode = view_mode_for(status)

    view = {
        "assignmentId": assignment_id,
        "title": worksheet.get('title', 'Worksheet'),
        "type": worksheet.get('type', 'html'),
        "status": status,
        "mode": mode,
        "mark": assignment.get('mark'),
        "feedback": assignment.get('feedback'),
    }

    if is_quiz(worksheet):
        view["questions"] = strip_answer_key(worksheet)
        stored = assignment.get('studentWork') or {}
        view["answers"] = stored.get('answers') if isinstance(stored.get('answers'), list) else None
        if status == lifecycle.COMPLETED:
            view["review"] = quiz_review(worksheet, assignment)
        return view

    snapshot = normalize_student_work(assignment.get('studentWork'))
    srcdoc = build_embed(worksheet_html(worksheet), snapshot, mode, worksheet.get('fileMap'))
    view["frame"] = render_frame(srcdoc, title=view["title"])
    view["autosave"] = mode != VIEW_READ_ONLY and lifecycle.accepts_autosave(status)
    return view


def reconstruct(worksheet, assignment):
    """Rebuild the frame exactly as the student left it, locked for review."""
    snapshot = normalize_student_work(assignment.get('studentWork'))
    srcdoc = build_embed(worksheet_html(worksheet), snapshot, VIEW_READ_ONLY, worksheet.get('fileMap'))
    return srcdoc, SandboxedFrame.from_srcdoc(srcdoc)


def marking_view(store, assignment_id, user_id):
    """Replay an assignment for its class teacher."""
    assignment = store.get(assignment_id)
    access.require_class_teacher(store, assignment.get('classId'), user_id)
    worksheet = store.get_worksheet(assignment.get('worksheetId'))

    view = {
        "assignmentId": assignment_id,
        "studentName": store.get_student_name(assignment.get('studentUID')),
        "title": worksheet.get('title', 'Worksheet'),
        "type": worksheet.get('type', 'html'),
        "status": lifecycle.normalize_status(assignment.get('status')),
        "mode": VIEW_READ_ONLY,
        "mark": assignment.get('mark') or '',
        "feedback": assignment.get('feedback') or '',
    }

    if is_quiz(worksheet):
        view["review"] = quiz_review(worksheet, assignment)
        return view

    srcdoc, frame = reconstruct(worksheet, assignment)
    view["frame"] = render_frame(srcdoc, title=view["title"])
    view["snapshot"] = frame.extractor.extract()
    view["reconstruction"] = frame.render()
    return view
