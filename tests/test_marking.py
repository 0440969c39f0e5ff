"""
Test: Marking. Recording marks and the bulk feedback export/import.
"""
import pytest

from classhub.errors import InvalidArgument, NotFound, PermissionDenied, PreconditionFailed
from classhub.services.marking import (
    export_answers, feedback_template, import_feedback, parse_feedback_file, record_mark,
    written_questions,
)
from classhub.services.worksheet_document import WorksheetDocument


def feedback_block(assignment_id, grade, feedback):
    return (
        "========================================\n[START STUDENT]\n"
        f"Student: someone\nAssignment ID: {assignment_id}\n---\n"
        f"Grade: {grade}\nFeedback:\n{feedback}\n[END STUDENT]\n\n"
    )


class TestRecordMark:
    def test_completes_handed_in_work(self, store):
        store.hand_in("a-bob")
        row = record_mark(store, "a-bob", "teacher-1", "B", "Good use of key words.")
        assert row["status"] == "Completed"
        assert row["mark"] == "B"

    def test_amend(self, store):
        store.hand_in("a-bob")
        record_mark(store, "a-bob", "teacher-1", "B", "Good")
        assert record_mark(store, "a-bob", "teacher-1", "A", "Better")["mark"] == "A"

    def test_not_handed_in(self, store):
        with pytest.raises(PreconditionFailed):
            record_mark(store, "a-bob", "teacher-1", "B", "Good")

    def test_not_the_teacher(self, store):
        store.hand_in("a-bob")
        with pytest.raises(PermissionDenied):
            record_mark(store, "a-bob", "auth-bob", "A*", "Self-marked")


class TestExport:
    def test_written_questions(self, worksheet_html):
        questions = written_questions(WorksheetDocument(worksheet_html))
        assert questions == [(
            "q1",
            "Question 1\nDescribe the function of the nucleus.",
            "Controls the cell and holds DNA.",
        )]

    def test_export_answers(self, store):
        filename, text = export_answers(store, "class-1", "ws-cells", "teacher-1")
        assert filename == "Year_7_Biology-Cells_Answers.txt"
        assert text.startswith("Worksheet: Cells\nClass: Year 7 Biology\n")
        assert "Assignment ID: a-bob" in text
        assert "Answer: It stores DNA" in text
        assert "No written answers submitted." in text
        # Sorted by student name, case-insensitively.
        assert text.index("Student: alice") < text.index("Student: Bob")

    def test_nothing_to_export(self, store):
        with pytest.raises(NotFound):
            export_answers(store, "class-1", "ws-none", "teacher-1")

    def test_template(self, store):
        filename, text = feedback_template(store, "class-1", "ws-cells", "teacher-1")
        assert filename == "Year_7_Biology-Cells_Feedback_Template.txt"
        assert text.count("[START STUDENT]") == 2
        assert "Grade: \nFeedback:\n[END STUDENT]" in text

    def test_other_teacher(self, store):
        with pytest.raises(PermissionDenied):
            feedback_template(store, "class-1", "ws-cells", "teacher-2")


class TestImport:
    def test_parse(self):
        content = (feedback_block("a-1", "B", "Well done.\nKeep going.")
                   + feedback_block("a-2", "", "No grade given")
                   + feedback_block("a-3", "C", ""))
        assert parse_feedback_file(content) == [
            {"assignmentId": "a-1", "grade": "B", "feedback": "Well done.\nKeep going."},
        ]

    def test_blank_template_has_nothing(self, store):
        _filename, template = feedback_template(store, "class-1", "ws-cells", "teacher-1")
        assert parse_feedback_file(template) == []

    def test_import(self, store):
        store.hand_in("a-bob")
        content = feedback_block("a-bob", "B", "Good.") + feedback_block("a-alice", "C", "Finish it.")
        result = import_feedback(store, "class-1", "ws-cells", "teacher-1", content)
        assert result["updated"] == 1
        assert result["skipped"] == [{"assignmentId": "a-alice", "reason": "not-handed-in"}]
        row = store.get("a-bob")
        assert (row["status"], row["mark"], row["feedback"]) == ("Completed", "B", "Good.")
        assert store.get("a-alice")["status"] == "Not Started"

    def test_foreign_blocks_skipped(self, store):
        store.hand_in("quiz-alice")
        content = feedback_block("quiz-alice", "A", "Wrong sheet.") + feedback_block("ghost", "A", "Who?")
        result = import_feedback(store, "class-1", "ws-cells", "teacher-1", content)
        assert result["updated"] == 0
        assert {s["reason"] for s in result["skipped"]} == {"wrong-class", "not-found"}

    def test_empty_file(self, store):
        with pytest.raises(InvalidArgument):
            import_feedback(store, "class-1", "ws-cells", "teacher-1", "  ")

    def test_no_valid_blocks(self, store):
        result = import_feedback(store, "class-1", "ws-cells", "teacher-1", "hello")
        assert result["updated"] == 0
