"""
Assignment lifecycle.

    Not Started -> In Progress -> Handed In -> Completed

- the first successful autosave moves Not Started to In Progress
- an explicit hand-in freezes the snapshot (no more autosave)
- a marker recording mark/feedback completes it; markers may amend a
  Completed assignment without changing its status
- closed-form quizzes go straight to Completed when graded
"""
from ..errors import PreconditionFailed

NOT_STARTED = "Not Started"
IN_PROGRESS = "In Progress"
HANDED_IN = "Handed In"
COMPLETED = "Completed"

STATUS_ORDER = (NOT_STARTED, IN_PROGRESS, HANDED_IN, COMPLETED)

# Statuses in which the student's snapshot may still change.
AUTOSAVE_OPEN = (NOT_STARTED, IN_PROGRESS)
FROZEN = (HANDED_IN, COMPLETED)
MARKABLE = (HANDED_IN, COMPLETED)
QUIZ_SUBMITTABLE = (NOT_STARTED, IN_PROGRESS, HANDED_IN)


def normalize_status(status):
    """Missing status on an old record means nobody has opened it yet."""
    return status if status in STATUS_ORDER else NOT_STARTED


def is_frozen(status) -> bool:
    return normalize_status(status) in FROZEN


def accepts_autosave(status) -> bool:
    return normalize_status(status) in AUTOSAVE_OPEN


def status_after_autosave(status):
    status = normalize_status(status)
    if status not in AUTOSAVE_OPEN:
        raise PreconditionFailed(f"Assignment is {status}; autosave is closed.")
    return IN_PROGRESS


def check_hand_in(status):
    status = normalize_status(status)
    if status not in AUTOSAVE_OPEN:
        raise PreconditionFailed(f"Assignment is already {status}.")
    return HANDED_IN


def check_finalize(status):
    status = normalize_status(status)
    if status not in MARKABLE:
        raise PreconditionFailed(f"Assignment is {status}; it must be handed in before marking.")
    return COMPLETED


def check_quiz_submission(status):
    status = normalize_status(status)
    if status not in QUIZ_SUBMITTABLE:
        raise PreconditionFailed("This quiz has already been submitted.")
    return COMPLETED
