"""
State Extractor / Loader
========================
Runs against the live worksheet document inside the sandboxed frame.

extract() reads the current interaction state into a snapshot without
touching the document. load() replays a snapshot back into a freshly loaded
document; entries that no longer resolve (the worksheet was edited after the
snapshot was taken) are skipped.

For any snapshot produced by extract() whose ids all resolve,
extract() after load(snapshot) on a fresh document gives the same snapshot.
"""
import logging

from .snapshot import (
    INPUTS, INTERACTIVE_STATES, ENGAGEMENT_METRICS, TIME_ON_SECTION, CLICKS,
    empty_snapshot, sanitize_snapshot,
)
from .task_handlers import TextFieldHandler, handler_for, lock_element, unlock_element

logger = logging.getLogger(__name__)


class EngagementTracker:
    """Cumulative seconds visible and click counts per section."""

    def __init__(self):
        self.time_on_section = {}
        self.clicks = {}

    def record_visible(self, section_id, seconds):
        if seconds <= 0:
            return
        self.time_on_section[section_id] = self.time_on_section.get(section_id, 0) + seconds

    def record_click(self, section_id):
        self.clicks[section_id] = self.clicks.get(section_id, 0) + 1

    def restore(self, metrics):
        self.time_on_section = dict(metrics.get(TIME_ON_SECTION, {}))
        self.clicks = dict(metrics.get(CLICKS, {}))

    def to_dict(self):
        metrics = {}
        if self.time_on_section:
            metrics[TIME_ON_SECTION] = dict(self.time_on_section)
        if self.clicks:
            metrics[CLICKS] = dict(self.clicks)
        return metrics or None


class StateExtractor:
    def __init__(self, document):
        self.document = document
        self.engagement = EngagementTracker()
        self.text_fields = TextFieldHandler()
        self.interactive = True

    # ---- discovery ----

    def tasks(self):
        """(task_id, element, handler) for every task with a known kind."""
        seen = set()
        for element in self.document.elements_with_attr('data-task'):
            task_id = element.attrs.get('data-task')
            if not task_id or task_id in seen:
                continue
            handler = handler_for(task_id)
            if handler is None:
                continue
            seen.add(task_id)
            yield task_id, element, handler

    def find_task(self, task_id):
        for candidate_id, element, handler in self.tasks():
            if candidate_id == task_id:
                return element, handler
        return None, None

    def fields(self):
        """Free-text fields that belong to no task, keyed by element id."""
        found = {}
        for element in self.document.find_all(lambda el: el.is_text_field() and el.id):
            if element.closest(lambda el: el.has_attr('data-task')) is not None:
                continue
            found.setdefault(element.id, element)
        return found

    def sections(self):
        return [el.id for el in self.document.find_all(lambda el: el.tag == 'section' and el.id)]

    # ---- snapshot ----

    def extract(self):
        snapshot = empty_snapshot()
        for element_id, field in self.fields().items():
            value = self.text_fields.extract(field)
            if value is not None:
                snapshot[INPUTS][element_id] = value

        for task_id, element, handler in self.tasks():
            state = handler.extract(element)
            if state is not None:
                snapshot[INTERACTIVE_STATES][task_id] = state

        metrics = self.engagement.to_dict()
        if metrics:
            snapshot[ENGAGEMENT_METRICS] = metrics
        return snapshot

    def load(self, snapshot):
        """Apply every resolvable entry of snapshot to the document."""
        snapshot = sanitize_snapshot(snapshot)
        if snapshot is None:
            return
        fields = self.fields()
        for element_id, value in snapshot.get(INPUTS, {}).items():
            field = fields.get(element_id)
            if field is None:
                logger.debug("Skipping stale input %s", element_id)
                continue
            self.text_fields.load(field, value)

        for task_id, state in snapshot.get(INTERACTIVE_STATES, {}).items():
            element, handler = self.find_task(task_id)
            if element is None:
                logger.debug("Skipping stale task %s", task_id)
                continue
            handler.load(element, state)
            if handler.has_check(element):
                handler.check(element)

        metrics = snapshot.get(ENGAGEMENT_METRICS)
        if metrics:
            self.engagement.restore(metrics)

    def set_interactive(self, interactive):
        for field in self.fields().values():
            self.text_fields.set_interactive(field, interactive)
        for _task_id, element, handler in self.tasks():
            handler.set_interactive(element, interactive)
        # Anything else clickable (reveal buttons, inline handlers) outside a task.
        body = self.document.body
        for element in body.iter():
            if interactive:
                unlock_element(element)
            else:
                lock_element(element)
        if interactive:
            body.remove_attr('data-locked-document')
        else:
            body.set('data-locked-document', 'true')
        self.interactive = interactive
