"""
Task Kind Handlers
==================
One handler per interactive task kind found in a worksheet. A task is any
element carrying ``data-task="<prefix><name>"``; the prefix picks the handler.

Every handler exposes the same capabilities:
- extract(task)          -> task state dict, or None when untouched
- load(task, state)      -> apply a saved state to the live task
- check(task)            -> run the task's "check my answer" feedback
- set_interactive(task, interactive)
- sanitize(state)        -> cleaned state from untrusted input, or None

New kinds register with ``register_task_handler`` without touching the
existing ones.
"""
import logging

from .worksheet_document import TextNode

logger = logging.getLogger(__name__)

LOCK_MARKER = 'data-locked'
FORM_TAGS = ('input', 'textarea', 'select')


def _is_str(value):
    return isinstance(value, str)


def _is_index(value):
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _set_feedback(task, text):
    target = task.find(lambda el: el.has_attr('data-feedback'))
    if target is None:
        return
    for child in list(target.children):
        target.remove(child)
    target.append(TextNode(text))


def _mark_correctness(element, is_correct):
    element.remove_class('correct' if not is_correct else 'incorrect')
    element.add_class('correct' if is_correct else 'incorrect')


def lock_element(element):
    """Make a single element non-interactive, remembering what was changed."""
    changed = []
    if element.tag in FORM_TAGS:
        if not element.has_attr('readonly'):
            element.set('readonly')
            changed.append('readonly')
        if not element.has_attr('disabled'):
            element.set('disabled')
            changed.append('disabled')
    elif element.tag == 'button' and not element.has_attr('disabled'):
        element.set('disabled')
        changed.append('disabled')

    if element.attrs.get('draggable') == 'true':
        element.set('draggable', 'false')
        changed.append('draggable')

    for name in [n for n in element.attrs if n.startswith('on')]:
        element.set('data-locked-' + name, element.attrs.pop(name))
        changed.append(name)

    if changed:
        element.set(LOCK_MARKER, ' '.join(changed))


def unlock_element(element):
    changed = element.attrs.pop(LOCK_MARKER, None)
    if not changed:
        return
    for name in changed.split():
        if name in ('readonly', 'disabled'):
            element.remove_attr(name)
        elif name == 'draggable':
            element.set('draggable', 'true')
        elif name.startswith('on'):
            element.set(name, element.attrs.pop('data-locked-' + name, ''))


class TaskHandler:
    """Base class for task kinds."""

    prefix = None
    kind = None

    def extract(self, task):
        raise NotImplementedError

    def load(self, task, state):
        raise NotImplementedError

    def sanitize(self, state):
        raise NotImplementedError

    def check(self, task):
        """Default: the task has no correctness feedback."""

    def has_check(self, task):
        return task.find(lambda el: el.has_attr('data-check')) is not None

    def set_interactive(self, task, interactive):
        for element in task.iter():
            if interactive:
                unlock_element(element)
            else:
                lock_element(element)


# =============================================================================
# TEXT FIELDS (the "inputs" map, keyed by element id rather than task prefix)
# =============================================================================

class TextFieldHandler:
    kind = 'text-input'

    def extract(self, field):
        return field.value

    def load(self, field, value):
        field.set_value(value)

    def set_interactive(self, field, interactive):
        if interactive:
            unlock_element(field)
        else:
            lock_element(field)

    def sanitize(self, value):
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        return value if _is_str(value) else None


# =============================================================================
# MATCH PAIRS
# =============================================================================

class MatchPairsHandler(TaskHandler):
    """Items sharing ``data-pair`` form a pair; matched items carry class
    ``matched`` and ``data-match-seq`` (the order the pairs were matched)."""

    prefix = 'match-'
    kind = 'match-pairs'

    def _items(self, task, pair_id=None):
        if pair_id is None:
            return task.find_all(lambda el: el.has_attr('data-pair'))
        return task.find_all(lambda el: el.attrs.get('data-pair') == pair_id)

    def _next_seq(self, task):
        seqs = [int(el.attrs['data-match-seq']) for el in self._items(task)
                if (el.attrs.get('data-match-seq') or '').isdigit()]
        return max(seqs) + 1 if seqs else 0

    def match(self, task, pair_id):
        """Mark a pair as matched (what a successful drag/click does live)."""
        items = self._items(task, pair_id)
        if not items:
            return False
        seq = self._next_seq(task)
        for item in items:
            item.add_class('matched')
            item.set('data-match-seq', str(seq))
        return True

    def extract(self, task):
        position = {}
        for index, item in enumerate(self._items(task)):
            if not item.has_class('matched'):
                continue
            pair_id = item.attrs['data-pair']
            seq = item.attrs.get('data-match-seq') or ''
            key = (int(seq) if seq.isdigit() else float('inf'), index)
            if pair_id not in position or key < position[pair_id]:
                position[pair_id] = key
        matched = sorted(position, key=position.get)
        if not matched:
            return None
        return {"matched": matched}

    def load(self, task, state):
        for pair_id in state.get("matched", []):
            if not self.match(task, pair_id):
                logger.debug("Skipping stale pair %s in %s", pair_id, task.attrs.get('data-task'))

    def check(self, task):
        pairs = {item.attrs['data-pair'] for item in self._items(task)}
        done = {item.attrs['data-pair'] for item in self._items(task) if item.has_class('matched')}
        task.set('data-score', f"{len(done)}/{len(pairs)}")
        _set_feedback(task, f"{len(done)} of {len(pairs)} pairs matched.")

    def sanitize(self, state):
        matched = state.get("matched") if isinstance(state, dict) else None
        if not isinstance(matched, list):
            return None
        cleaned = []
        for pair_id in matched:
            if _is_str(pair_id) and pair_id not in cleaned:
                cleaned.append(pair_id)
        return {"matched": cleaned} if cleaned else None


# =============================================================================
# FILL IN THE BLANK
# =============================================================================

class FillBlankHandler(TaskHandler):
    """Blanks are inputs carrying ``data-blank``; ``data-answer`` (alternatives
    separated by ``|``) enables checking."""

    prefix = 'blank-'
    kind = 'fill-blank'

    def _blank(self, task, blank_id):
        return task.find(lambda el: el.attrs.get('data-blank') == blank_id)

    def _blanks(self, task):
        return task.find_all(lambda el: el.has_attr('data-blank'))

    def extract(self, task):
        blanks = {}
        for blank in self._blanks(task):
            value = blank.value
            if value is not None:
                blanks.setdefault(blank.attrs['data-blank'], value)
        return {"blanks": blanks} if blanks else None

    def load(self, task, state):
        for blank_id, text in state.get("blanks", {}).items():
            blank = self._blank(task, blank_id)
            if blank is None:
                logger.debug("Skipping stale blank %s", blank_id)
                continue
            blank.set_value(text)

    def check(self, task):
        for blank in self._blanks(task):
            answer = blank.attrs.get('data-answer')
            if answer is None or blank.value is None:
                continue
            accepted = [a.strip().lower() for a in answer.split('|')]
            _mark_correctness(blank, blank.value.strip().lower() in accepted)

    def sanitize(self, state):
        blanks = state.get("blanks") if isinstance(state, dict) else None
        if not isinstance(blanks, dict):
            return None
        cleaned = {k: v for k, v in blanks.items() if _is_str(k) and _is_str(v)}
        return {"blanks": cleaned} if cleaned else None


# =============================================================================
# DRAG AND DROP LABELS
# =============================================================================

class DragDropLabelHandler(TaskHandler):
    """Zones carry ``data-zone``, draggable items ``data-drag-item``. An item
    is placed when it is a descendant of a zone; unplaced items live in the
    element carrying ``data-pool`` (or the task itself)."""

    prefix = 'dnd-'
    kind = 'drag-drop-label'

    def _zones(self, task):
        return task.find_all(lambda el: el.has_attr('data-zone'))

    def _zone(self, task, zone_id):
        return task.find(lambda el: el.attrs.get('data-zone') == zone_id)

    def _item(self, task, item_id):
        return task.find(lambda el: el.attrs.get('data-drag-item') == item_id)

    def _placed_item(self, zone):
        return zone.find(lambda el: el.has_attr('data-drag-item'))

    def _pool(self, task):
        return task.find(lambda el: el.has_attr('data-pool')) or task

    def place(self, task, zone_id, item_id):
        zone = self._zone(task, zone_id)
        item = self._item(task, item_id)
        if zone is None or item is None:
            return False
        current = self._placed_item(zone)
        if current is item:
            return True
        if current is not None:
            self._pool(task).append(current)
        zone.append(item)
        return True

    def extract(self, task):
        placements = {}
        for zone in self._zones(task):
            item = self._placed_item(zone)
            if item is not None:
                placements[zone.attrs['data-zone']] = item.attrs['data-drag-item']
        return {"placements": placements} if placements else None

    def load(self, task, state):
        for zone_id, item_id in state.get("placements", {}).items():
            if not self.place(task, zone_id, item_id):
                logger.debug("Skipping stale placement %s -> %s", item_id, zone_id)

    def check(self, task):
        for zone in self._zones(task):
            expected = zone.attrs.get('data-accepts')
            item = self._placed_item(zone)
            if expected is None or item is None:
                continue
            _mark_correctness(zone, item.attrs['data-drag-item'] == expected)

    def sanitize(self, state):
        placements = state.get("placements") if isinstance(state, dict) else None
        if not isinstance(placements, dict):
            return None
        cleaned = {}
        used = set()
        for zone_id, item_id in placements.items():
            if _is_str(zone_id) and _is_str(item_id) and item_id not in used:
                cleaned[zone_id] = item_id
                used.add(item_id)
        return {"placements": cleaned} if cleaned else None


# =============================================================================
# SINGLE CHOICE
# =============================================================================

class SingleChoiceHandler(TaskHandler):
    """Options carry ``data-option="<index>"``; the chosen one has class
    ``selected`` and the right one may carry ``data-correct``."""

    prefix = 'choice-'
    kind = 'single-choice'

    def _options(self, task):
        return task.find_all(lambda el: el.has_attr('data-option'))

    def select(self, task, index):
        options = self._options(task)
        chosen = [el for el in options if el.attrs.get('data-option') == str(index)]
        if not chosen:
            return False
        for option in options:
            option.remove_class('selected')
        chosen[0].add_class('selected')
        return True

    def extract(self, task):
        for option in self._options(task):
            if option.has_class('selected'):
                value = option.attrs.get('data-option') or ''
                if value.isdigit():
                    return {"selected": int(value)}
        return None

    def load(self, task, state):
        if not self.select(task, state["selected"]):
            logger.debug("Skipping stale option %s in %s", state["selected"], task.attrs.get('data-task'))

    def check(self, task):
        for option in self._options(task):
            if option.has_class('selected') and any(o.has_attr('data-correct') for o in self._options(task)):
                _mark_correctness(option, option.has_attr('data-correct'))

    def sanitize(self, state):
        selected = state.get("selected") if isinstance(state, dict) else None
        return {"selected": selected} if _is_index(selected) else None


# =============================================================================
# REGISTRY
# =============================================================================

_HANDLERS = {}


def register_task_handler(handler):
    """Register a handler instance under its prefix."""
    if not handler.prefix:
        raise ValueError("Task handler needs a prefix")
    _HANDLERS[handler.prefix] = handler
    return handler


def handler_for(task_id):
    """Return the handler whose prefix matches task_id (longest wins)."""
    if not _is_str(task_id):
        return None
    best = None
    for prefix, handler in _HANDLERS.items():
        if task_id.startswith(prefix) and (best is None or len(prefix) > len(best.prefix)):
            best = handler
    return best


for _handler in (MatchPairsHandler(), FillBlankHandler(),
                 DragDropLabelHandler(), SingleChoiceHandler()):
    register_task_handler(_handler)
