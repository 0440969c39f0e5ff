"""
Host side of the autosave: what happens once a frame message has been
validated and found to differ from what was last saved.
"""
import logging

from . import lifecycle
from .sandbox import parse_message
from .snapshot import normalize_student_work

logger = logging.getLogger(__name__)


def accept_autosave(store, assignment_id, snapshot, assignment=None):
    """
    Replace the assignment's snapshot and move it to In Progress.

    Raises PreconditionFailed once the assignment is handed in or completed;
    nothing is written in that case. Storage failures surface as
    PersistenceError and leave the stored snapshot untouched.
    """
    if assignment is None:
        assignment = store.get(assignment_id)
    next_status = lifecycle.status_after_autosave(assignment.get('status'))
    row = store.replace_snapshot(assignment_id, snapshot, status=next_status)
    logger.debug("Saved worksheet state for %s", assignment_id)
    return row


def hand_in(store, assignment_id, snapshot=None, assignment=None):
    """Freeze the assignment, writing the final snapshot in the same update."""
    if assignment is None:
        assignment = store.get(assignment_id)
    lifecycle.check_hand_in(assignment.get('status'))
    row = store.hand_in(assignment_id, snapshot)
    logger.info("Assignment %s handed in", assignment_id)
    return row


def handle_frame_message(store, assignment, raw, max_bytes=None):
    """
    Process one message relayed from a student's frame.

    Returns a small result dict for the caller; a malformed message is
    answered with accepted=False rather than an error so the frame keeps
    autosaving on the next tick.
    """
    message = parse_message(raw, max_bytes=max_bytes)
    if message is None:
        return {"accepted": False, "reason": "invalid-message"}

    snapshot = message["payload"]
    # Raises once handed in, even when nothing changed.
    lifecycle.status_after_autosave(assignment.get('status'))
    if snapshot == normalize_student_work(assignment.get('studentWork')):
        return {"accepted": True, "changed": False, "status": assignment.get('status')}

    row = accept_autosave(store, assignment['id'], snapshot, assignment=assignment)
    return {"accepted": True, "changed": True, "status": row.get('status')}
