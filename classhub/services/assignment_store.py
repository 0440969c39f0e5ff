"""
Assignment persistence.

AssignmentStore is the adapter the worksheet sync talks to. Every write is a
single update of one assignment row, and the snapshot is always replaced
whole, never merged field by field. Writes that must respect the lifecycle
carry the statuses they expect; the update only applies while the row is in
one of them, so a hand-in from another session is honoured atomically.

Two implementations:
- SupabaseAssignmentStore: the hosted Postgres tables used in production
- InMemoryAssignmentStore: local development and tests
"""
import copy
import logging
import os
import threading

from .. import config as app_config
from ..errors import ClassHubError, NotFound, PersistenceError, PreconditionFailed
from . import lifecycle

logger = logging.getLogger(__name__)


class AssignmentStore:
    """Base adapter. Subclasses implement the _fetch/_update primitives."""

    # ---- primitives ----

    def _fetch(self, table, row_id):
        raise NotImplementedError

    def _update(self, assignment_id, fields, expected_statuses=None):
        raise NotImplementedError

    def _select(self, table, **filters):
        raise NotImplementedError

    # ---- reads ----

    def get(self, assignment_id) -> dict:
        row = self._fetch(app_config.ASSIGNMENTS_TABLE, assignment_id)
        if row is None:
            raise NotFound("Assignment not found.")
        return row

    def get_worksheet(self, worksheet_id) -> dict:
        row = self._fetch(app_config.WORKSHEETS_TABLE, worksheet_id)
        if row is None:
            raise NotFound("Worksheet not found.")
        return row

    def get_class(self, class_id) -> dict:
        row = self._fetch(app_config.CLASSES_TABLE, class_id)
        if row is None:
            raise NotFound("Class not found.")
        return row

    def list_assignments(self, class_id, worksheet_id):
        return self._select(app_config.ASSIGNMENTS_TABLE, classId=class_id, worksheetId=worksheet_id)

    def get_student_name(self, student_uid):
        rows = self._select(app_config.STUDENTS_TABLE, studentUID=student_uid)
        return rows[0].get('username', 'Unknown Student') if rows else 'Unknown Student'

    # ---- writes ----

    def replace_snapshot(self, assignment_id, snapshot, status=None,
                         expected_statuses=lifecycle.AUTOSAVE_OPEN):
        """Replace studentWork with snapshot (and optionally set status) in one update.

        Pass expected_statuses=None for a marker-initiated overwrite.
        """
        fields = {"studentWork": copy.deepcopy(snapshot)}
        if status is not None:
            fields["status"] = status
        return self._update(assignment_id, fields, expected_statuses)

    def set_status(self, assignment_id, status, expected_statuses=None):
        if status not in lifecycle.STATUS_ORDER:
            raise ValueError(f"Unknown status: {status}")
        return self._update(assignment_id, {"status": status}, expected_statuses)

    def hand_in(self, assignment_id, snapshot=None):
        fields = {"status": lifecycle.HANDED_IN}
        if snapshot is not None:
            fields["studentWork"] = copy.deepcopy(snapshot)
        return self._update(assignment_id, fields, lifecycle.AUTOSAVE_OPEN)

    def finalize(self, assignment_id, mark, feedback):
        fields = {"mark": mark, "feedback": feedback, "status": lifecycle.COMPLETED}
        return self._update(assignment_id, fields, lifecycle.MARKABLE)

    def record_quiz_submission(self, assignment_id, answers, mark, feedback):
        fields = {
            "status": lifecycle.COMPLETED,
            "mark": mark,
            "feedback": feedback,
            "studentWork": {"answers": list(answers), "score": mark},
        }
        return self._update(assignment_id, fields, lifecycle.QUIZ_SUBMITTABLE)


# =============================================================================
# IN-MEMORY
# =============================================================================

class InMemoryAssignmentStore(AssignmentStore):
    def __init__(self, assignments=None, worksheets=None, classes=None, students=None):
        self._lock = threading.Lock()
        self._tables = {
            app_config.ASSIGNMENTS_TABLE: {},
            app_config.WORKSHEETS_TABLE: {},
            app_config.CLASSES_TABLE: {},
            app_config.STUDENTS_TABLE: {},
        }
        for table, rows in (
            (app_config.ASSIGNMENTS_TABLE, assignments),
            (app_config.WORKSHEETS_TABLE, worksheets),
            (app_config.CLASSES_TABLE, classes),
            (app_config.STUDENTS_TABLE, students),
        ):
            for row in rows or []:
                self.insert(table, row)
        self.write_count = 0

    def insert(self, table, row):
        with self._lock:
            self._tables[table][row['id']] = copy.deepcopy(row)

    def _fetch(self, table, row_id):
        with self._lock:
            row = self._tables[table].get(row_id)
            return copy.deepcopy(row) if row is not None else None

    def _select(self, table, **filters):
        with self._lock:
            return [copy.deepcopy(row) for row in self._tables[table].values()
                    if all(row.get(k) == v for k, v in filters.items())]

    def _update(self, assignment_id, fields, expected_statuses=None):
        with self._lock:
            row = self._tables[app_config.ASSIGNMENTS_TABLE].get(assignment_id)
            if row is None:
                raise NotFound("Assignment not found.")
            current = lifecycle.normalize_status(row.get('status'))
            if expected_statuses is not None and current not in expected_statuses:
                raise PreconditionFailed(f"Assignment is {current}.")
            row.update(copy.deepcopy(fields))
            self.write_count += 1
            return copy.deepcopy(row)


# =============================================================================
# SUPABASE
# =============================================================================

class SupabaseAssignmentStore(AssignmentStore):
    def __init__(self, client):
        self.db = client

    def _fetch(self, table, row_id):
        try:
            result = self.db.table(table).select('*').eq('id', row_id).execute()
        except Exception as e:
            raise PersistenceError(f"Could not read {table}/{row_id}: {e}") from e
        return result.data[0] if result.data else None

    def _select(self, table, **filters):
        try:
            query = self.db.table(table).select('*')
            for column, value in filters.items():
                query = query.eq(column, value)
            return query.execute().data or []
        except Exception as e:
            raise PersistenceError(f"Could not query {table}: {e}") from e

    def _update(self, assignment_id, fields, expected_statuses=None):
        table = app_config.ASSIGNMENTS_TABLE
        try:
            query = self.db.table(table).update(fields).eq('id', assignment_id)
            if expected_statuses is not None:
                query = query.in_('status', list(expected_statuses))
            result = query.execute()
        except Exception as e:
            raise PersistenceError(f"Could not update assignment {assignment_id}: {e}") from e

        if result.data:
            return result.data[0]

        # Nothing matched: either the row is gone or the status guard refused.
        row = self._fetch(table, assignment_id)
        if row is None:
            raise NotFound("Assignment not found.")
        raise PreconditionFailed(f"Assignment is {lifecycle.normalize_status(row.get('status'))}.")


# =============================================================================
# ACCESS
# =============================================================================

_store = None
_supabase = None


def get_supabase():
    """Get or create Supabase client."""
    global _supabase
    if _supabase is None:
        from supabase import create_client
        url = os.getenv("SUPABASE_URL") or app_config.SUPABASE_URL
        key = os.getenv("SUPABASE_SERVICE_KEY") or app_config.SUPABASE_SERVICE_KEY
        if not url or not key:
            raise ClassHubError("Supabase credentials not configured. Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env")
        _supabase = create_client(url, key)
    return _supabase


def get_store() -> AssignmentStore:
    """The store used by the routes (Supabase unless one was set)."""
    global _store
    if _store is None:
        _store = SupabaseAssignmentStore(get_supabase())
        logger.info("Using Supabase assignment store")
    return _store


def set_store(store):
    global _store
    _store = store
