"""
State Snapshot helpers.

A snapshot is a plain dict and travels as JSON:

    {
        "inputs": {element_id: text},
        "interactiveStates": {task_id: task_state},
        "engagementMetrics": {"timeOnSection": {...}, "clicks": {...}}   # optional
    }

Snapshots are always written whole; nothing here merges two snapshots.
"""
import logging

from .task_handlers import TextFieldHandler, handler_for

logger = logging.getLogger(__name__)

INPUTS = "inputs"
INTERACTIVE_STATES = "interactiveStates"
ENGAGEMENT_METRICS = "engagementMetrics"
TIME_ON_SECTION = "timeOnSection"
CLICKS = "clicks"

SNAPSHOT_KEYS = (INPUTS, INTERACTIVE_STATES, ENGAGEMENT_METRICS)

_text_fields = TextFieldHandler()


def empty_snapshot():
    return {INPUTS: {}, INTERACTIVE_STATES: {}}


def _sanitize_metrics(metrics):
    if not isinstance(metrics, dict):
        return None
    cleaned = {}
    seconds = metrics.get(TIME_ON_SECTION)
    if isinstance(seconds, dict):
        seconds = {
            k: v for k, v in seconds.items()
            if isinstance(k, str) and isinstance(v, (int, float))
            and not isinstance(v, bool) and v >= 0
        }
        if seconds:
            cleaned[TIME_ON_SECTION] = seconds
    clicks = metrics.get(CLICKS)
    if isinstance(clicks, dict):
        clicks = {
            k: v for k, v in clicks.items()
            if isinstance(k, str) and isinstance(v, int)
            and not isinstance(v, bool) and v >= 0
        }
        if clicks:
            cleaned[CLICKS] = clicks
    return cleaned or None


def sanitize_snapshot(value):
    """
    Build a well-formed snapshot out of untrusted data.

    Returns None when value is not an object at all. Unknown top-level keys
    are dropped, and so are individual entries that do not fit their task
    kind, so one bad field never costs the rest of the snapshot.
    """
    if not isinstance(value, dict):
        return None

    snapshot = empty_snapshot()

    inputs = value.get(INPUTS)
    if isinstance(inputs, dict):
        for element_id, text in inputs.items():
            text = _text_fields.sanitize(text)
            if isinstance(element_id, str) and text is not None:
                snapshot[INPUTS][element_id] = text

    states = value.get(INTERACTIVE_STATES)
    if isinstance(states, dict):
        for task_id, state in states.items():
            handler = handler_for(task_id)
            if handler is None:
                logger.debug("Dropping state for unknown task kind %r", task_id)
                continue
            cleaned = handler.sanitize(state)
            if cleaned is not None:
                snapshot[INTERACTIVE_STATES][task_id] = cleaned

    metrics = _sanitize_metrics(value.get(ENGAGEMENT_METRICS))
    if metrics:
        snapshot[ENGAGEMENT_METRICS] = metrics

    ignored = [k for k in value if k not in SNAPSHOT_KEYS]
    if ignored:
        logger.debug("Ignoring unknown snapshot keys: %s", ignored)

    return snapshot


def normalize_student_work(student_work):
    """
    Read whatever is stored in an assignment's studentWork as a snapshot.

    Older records stored the text inputs as a flat {id: text} mapping; those
    are read as the inputs map.
    """
    if not isinstance(student_work, dict) or not student_work:
        return empty_snapshot()
    if any(key in student_work for key in SNAPSHOT_KEYS):
        return sanitize_snapshot(student_work)
    return sanitize_snapshot({INPUTS: student_work})
