"""
Test: Assignment persistence. Whole-snapshot writes guarded by status, on
the in-memory store and the Supabase store (against a fake client).
"""
import pytest

from classhub.errors import NotFound, PersistenceError, PreconditionFailed
from classhub.services import lifecycle
from classhub.services.assignment_store import SupabaseAssignmentStore

SNAPSHOT = {"inputs": {"q1": "RAM"}, "interactiveStates": {}}


class TestInMemoryStore:
    def test_get_returns_a_copy(self, store):
        row = store.get("a-alice")
        row["status"] = "Completed"
        assert store.get("a-alice")["status"] == "Not Started"

    def test_missing(self, store):
        with pytest.raises(NotFound):
            store.get("nope")
        with pytest.raises(NotFound):
            store.get_worksheet("nope")

    def test_replace_snapshot(self, store):
        row = store.replace_snapshot("a-alice", SNAPSHOT, status=lifecycle.IN_PROGRESS)
        assert row["studentWork"] == SNAPSHOT
        assert store.get("a-alice")["status"] == "In Progress"
        assert store.write_count == 1

    def test_snapshot_is_replaced_not_merged(self, store):
        store.replace_snapshot("a-bob", {"inputs": {"q2": "new"}, "interactiveStates": {}})
        assert store.get("a-bob")["studentWork"] == {"inputs": {"q2": "new"}, "interactiveStates": {}}

    def test_frozen_assignment_refuses_snapshot(self, store):
        store.hand_in("a-bob")
        writes = store.write_count
        with pytest.raises(PreconditionFailed):
            store.replace_snapshot("a-bob", SNAPSHOT)
        assert store.write_count == writes
        assert store.get("a-bob")["studentWork"]["inputs"] == {"q1": "It stores DNA"}

    def test_hand_in_with_final_snapshot(self, store):
        row = store.hand_in("a-alice", SNAPSHOT)
        assert row["status"] == "Handed In"
        assert row["studentWork"] == SNAPSHOT

    def test_finalize_needs_hand_in(self, store):
        with pytest.raises(PreconditionFailed):
            store.finalize("a-bob", "B", "Good")
        store.hand_in("a-bob")
        assert store.finalize("a-bob", "B", "Good")["status"] == "Completed"

    def test_set_status_rejects_unknown(self, store):
        with pytest.raises(ValueError):
            store.set_status("a-alice", "Lost")

    def test_lookups(self, store):
        assert store.get_student_name("stu-bob") == "Bob"
        assert store.get_student_name("stu-nobody") == "Unknown Student"
        ids = sorted(a["id"] for a in store.list_assignments("class-1", "ws-cells"))
        assert ids == ["a-alice", "a-bob"]


# ============ Supabase ============

class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table_name = table
        self.calls = []

    def select(self, *columns):
        self.calls.append(("select",) + columns)
        return self

    def update(self, fields):
        self.calls.append(("update", fields))
        return self

    def eq(self, column, value):
        self.calls.append(("eq", column, value))
        return self

    def in_(self, column, values):
        self.calls.append(("in_", column, list(values)))
        return self

    def execute(self):
        self.client.executed.append(self)
        if self.client.fail:
            raise RuntimeError("connection reset")
        return FakeResult(self.client.responses.pop(0) if self.client.responses else [])


class FakeSupabase:
    def __init__(self, responses=None, fail=False):
        self.responses = list(responses or [])
        self.fail = fail
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


class TestSupabaseStore:
    def test_conditional_update(self):
        client = FakeSupabase([[{"id": "a1", "status": "In Progress", "studentWork": SNAPSHOT}]])
        row = SupabaseAssignmentStore(client).replace_snapshot("a1", SNAPSHOT, status="In Progress")
        assert row["studentWork"] == SNAPSHOT

        query = client.executed[0]
        assert query.table_name == "assignments"
        assert ("update", {"studentWork": SNAPSHOT, "status": "In Progress"}) in query.calls
        assert ("eq", "id", "a1") in query.calls
        assert ("in_", "status", ["Not Started", "In Progress"]) in query.calls

    def test_unguarded_update(self):
        client = FakeSupabase([[{"id": "a1", "status": "Handed In"}]])
        SupabaseAssignmentStore(client).set_status("a1", "Handed In")
        assert not any(call[0] == "in_" for call in client.executed[0].calls)

    def test_refused_by_status(self):
        client = FakeSupabase([[], [{"id": "a1", "status": "Handed In"}]])
        with pytest.raises(PreconditionFailed):
            SupabaseAssignmentStore(client).replace_snapshot("a1", SNAPSHOT)

    def test_row_gone(self):
        client = FakeSupabase([[], []])
        with pytest.raises(NotFound):
            SupabaseAssignmentStore(client).replace_snapshot("a1", SNAPSHOT)

    def test_transport_error(self):
        store = SupabaseAssignmentStore(FakeSupabase(fail=True))
        with pytest.raises(PersistenceError):
            store.replace_snapshot("a1", SNAPSHOT)
        with pytest.raises(PersistenceError):
            store.get("a1")

    def test_fetch(self):
        client = FakeSupabase([[{"id": "ws-1", "title": "Cells"}]])
        assert SupabaseAssignmentStore(client).get_worksheet("ws-1")["title"] == "Cells"
        assert client.executed[0].table_name == "worksheets"
