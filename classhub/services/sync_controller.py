"""
Sync Controller
===============
Decides when to sample the worksheet frame and whether the sample is worth
persisting.

- every SYNC_INTERVAL_SECONDS the frame posts its current state
- the state is compared (deep equality) with the last snapshot that was
  successfully persisted; equal means no write and no status change
- a changed snapshot is persisted through accept_autosave()
- a failed write leaves the baseline alone, so the next tick sees the same
  change and retries it
- once the assignment is handed in (here or in another session) autosave
  stops for good

The baseline belongs to the controller instance. Two tabs on the same
assignment have two controllers and the last write wins.
"""
import copy
import logging
import threading
import time

from ..config import MAX_MESSAGE_BYTES, STATUS_REVERT_SECONDS, SYNC_INTERVAL_SECONDS
from ..errors import NotFound, PersistenceError, PreconditionFailed
from . import autosave
from .sandbox import parse_message

logger = logging.getLogger(__name__)

PHASE_IDLE = "idle"
PHASE_SAVING = "saving"
PHASE_SAVED = "saved"
PHASE_ERROR = "error"

TICK_STOPPED = "stopped"
TICK_FROZEN = "frozen"
TICK_INVALID = "invalid"
TICK_UNCHANGED = "unchanged"
TICK_SAVED = "saved"
TICK_ERROR = "error"


class SaveStatusIndicator:
    """The save status shown to the student. Every phase falls back to idle
    once revert_after seconds have passed since it was set."""

    def __init__(self, revert_after=None, clock=time.monotonic):
        self.revert_after = STATUS_REVERT_SECONDS if revert_after is None else revert_after
        self.clock = clock
        self._phase = PHASE_IDLE
        self._since = clock()

    def set(self, phase):
        self._phase = phase
        self._since = self.clock()

    def clear(self):
        self.set(PHASE_IDLE)

    @property
    def phase(self):
        if self._phase != PHASE_IDLE and self.clock() - self._since >= self.revert_after:
            self._phase = PHASE_IDLE
        return self._phase

    def to_dict(self):
        return {"phase": self.phase}


class SyncController:
    def __init__(self, assignment_id, frame, store, interval=None,
                 clock=time.monotonic, revert_after=None, max_bytes=None):
        self.assignment_id = assignment_id
        self.frame = frame
        self.store = store
        self.interval = SYNC_INTERVAL_SECONDS if interval is None else interval
        self.max_bytes = max_bytes or MAX_MESSAGE_BYTES
        self.status = SaveStatusIndicator(revert_after=revert_after, clock=clock)
        self._frozen = False
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread = None
        # What the frame shows right after loading is what is already stored.
        self._baseline = self._sample()
        # Submitted and read-only frames never post, so there is nothing to sync.
        if not frame.interactive:
            self._frozen = True

    @property
    def baseline(self):
        return copy.deepcopy(self._baseline)

    @property
    def frozen(self):
        return self._frozen

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def _sample(self):
        message = parse_message(self.frame.post_state(), max_bytes=self.max_bytes)
        return message["payload"] if message else None

    def tick(self):
        """One autosave cycle. Returns what happened (one of the TICK_* values)."""
        with self._tick_lock:
            if self._stop_event.is_set():
                return TICK_STOPPED
            if self._frozen:
                return TICK_FROZEN

            snapshot = self._sample()
            if snapshot is None:
                if self.frame.interactive:
                    logger.warning("Assignment %s: frame produced no usable state this tick", self.assignment_id)
                return TICK_INVALID

            if snapshot == self._baseline:
                return TICK_UNCHANGED

            self.status.set(PHASE_SAVING)
            try:
                autosave.accept_autosave(self.store, self.assignment_id, snapshot)
            except PreconditionFailed as e:
                logger.info("Assignment %s no longer accepts autosave: %s", self.assignment_id, e)
                self._frozen = True
                self.status.clear()
                return TICK_FROZEN
            except (PersistenceError, NotFound) as e:
                logger.warning("Autosave failed for %s: %s", self.assignment_id, e)
                self.status.set(PHASE_ERROR)
                return TICK_ERROR

            self._baseline = snapshot
            self.status.set(PHASE_SAVED)
            return TICK_SAVED

    def hand_in(self):
        """Submit: write the current state as final and stop autosaving."""
        with self._tick_lock:
            if self._frozen:
                return None
            snapshot = self._sample()
            row = autosave.hand_in(self.store, self.assignment_id, snapshot)
            self._frozen = True
            self._baseline = snapshot
        self.stop()
        return row

    # ---- timer ----

    def _run(self):
        while not self._stop_event.wait(self.interval):
            try:
                result = self.tick()
            except Exception:
                logger.exception("Autosave tick crashed for %s", self.assignment_id)
                continue
            if result in (TICK_FROZEN, TICK_STOPPED):
                break

    def start(self):
        if self._thread is not None:
            return self._thread
        self._thread = threading.Thread(
            target=self._run, name=f"autosave-{self.assignment_id}", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self):
        """Stop the timer. A save already in flight finishes on its own."""
        self._stop_event.set()

    def close(self):
        """Navigating away: stop the timer and tear the frame down."""
        self.stop()
        self.frame.teardown()
