"""
Marking
=======
Recording a mark and feedback on one assignment, and the bulk feedback
exchange used by the marking view:

- export every student's written answers for one worksheet as a text file
- download a blank feedback template for the class
- import a filled-in template, finalizing every valid block

File format (one block per student):

    ========================================
    [START STUDENT]
    Student: alice
    Assignment ID: a1
    ---
    Grade: G
    Feedback:
    Good use of key words.
    [END STUDENT]
"""
import logging
import re

from ..errors import InvalidArgument, NotFound, PreconditionFailed
from . import access, lifecycle
from .replay import worksheet_html
from .snapshot import INPUTS, normalize_student_work
from .worksheet_document import WorksheetDocument

logger = logging.getLogger(__name__)

BLOCK_RULE = "=" * 40
START_MARKER = "[START STUDENT]"
END_MARKER = "[END STUDENT]"

_ASSIGNMENT_ID_RE = re.compile(r'Assignment ID:[ \t]*([\w-]+)')
_GRADE_RE = re.compile(r'Grade:[ \t]*(\S+)')
_FEEDBACK_RE = re.compile(r'Feedback:\n([\s\S]*?)(?=\[END STUDENT\]|\Z)')


def record_mark(store, assignment_id, user_id, mark, feedback):
    """Finalize one assignment. Markers may amend a completed one."""
    assignment = store.get(assignment_id)
    access.require_class_teacher(store, assignment.get('classId'), user_id)
    lifecycle.check_finalize(assignment.get('status'))
    row = store.finalize(assignment_id, mark, feedback)
    logger.info("Assignment %s marked", assignment_id)
    return row


def _file_stem(text):
    return re.sub(r'\s', '_', text or '')


def _header(class_row, worksheet):
    return f"Worksheet: {worksheet.get('title', '')}\nClass: {class_row.get('className', '')}\n\n"


def _class_context(store, class_id, worksheet_id, user_id):
    access.require_class_teacher(store, class_id, user_id)
    class_row = store.get_class(class_id)
    worksheet = store.get_worksheet(worksheet_id)
    assignments = store.list_assignments(class_id, worksheet_id)
    for assignment in assignments:
        assignment['username'] = store.get_student_name(assignment.get('studentUID'))
    assignments.sort(key=lambda a: a['username'].lower())
    return class_row, worksheet, assignments


def written_questions(document):
    """
    (question_id, question_text, mark_scheme) for every written question.

    A written question is a div.task-container (or a div whose id starts
    with "Question") holding a textarea; the textarea id is the question id.
    """
    containers = document.find_all(
        lambda el: el.tag == 'div' and (el.has_class('task-container') or (el.id or '').startswith('Question')))
    questions = []
    for container in containers:
        textarea = container.find(lambda el: el.tag == 'textarea')
        if textarea is None or not textarea.id:
            continue
        heading = container.find(lambda el: el.tag == 'h4')
        scheme = container.find(lambda el: el.has_class('mark-scheme'))

        parts = []
        if heading is not None:
            parts.append(heading.text.strip())
        for paragraph in container.find_all(lambda el: el.tag == 'p'):
            if scheme is not None and scheme.contains(paragraph):
                continue
            parts.append(paragraph.text.strip())

        scheme_text = 'Mark scheme not found.'
        if scheme is not None:
            scheme_text = re.sub(r'^Mark Scheme:\s*', '', scheme.text.strip())

        questions.append((textarea.id, '\n'.join(parts) if parts else 'Question text not found.', scheme_text))
    return questions


def export_answers(store, class_id, worksheet_id, user_id):
    """(filename, text) with every student's written answers."""
    class_row, worksheet, assignments = _class_context(store, class_id, worksheet_id, user_id)
    if not assignments:
        raise NotFound("No assignments to export.")

    questions = written_questions(WorksheetDocument(worksheet_html(worksheet)))
    lines = [_header(class_row, worksheet)]
    for assignment in assignments:
        lines.append(f"{BLOCK_RULE}\n{START_MARKER}\n")
        lines.append(f"Student: {assignment['username']}\n")
        lines.append(f"Assignment ID: {assignment['id']}\n---\n")

        answers = normalize_student_work(assignment.get('studentWork'))[INPUTS]
        found = False
        for question_id, question_text, scheme_text in questions:
            answer = answers.get(question_id)
            if answer is None or not str(answer).strip():
                continue
            found = True
            lines.append(f"Question ID: {question_id}\n")
            lines.append(f"Question: {question_text}\n")
            lines.append(f"Mark Scheme: {scheme_text}\n")
            lines.append(f"Answer: {answer}\n\n")
        if not found:
            lines.append("No written answers submitted.\n\n")
        lines.append(f"{END_MARKER}\n\n")

    filename = f"{_file_stem(class_row.get('className'))}-{_file_stem(worksheet.get('title'))}_Answers.txt"
    return filename, ''.join(lines)


def feedback_template(store, class_id, worksheet_id, user_id):
    """(filename, text) blank template, one block per student."""
    class_row, worksheet, assignments = _class_context(store, class_id, worksheet_id, user_id)
    if not assignments:
        raise NotFound("No assignments to create a template for.")

    lines = [_header(class_row, worksheet)]
    for assignment in assignments:
        lines.append(f"{BLOCK_RULE}\n{START_MARKER}\n")
        lines.append(f"Student: {assignment['username']}\n")
        lines.append(f"Assignment ID: {assignment['id']}\n---\n")
        lines.append("Grade: \nFeedback:\n")
        lines.append(f"{END_MARKER}\n\n")

    filename = f"{_file_stem(class_row.get('className'))}-{_file_stem(worksheet.get('title'))}_Feedback_Template.txt"
    return filename, ''.join(lines)


def parse_feedback_file(content):
    """Blocks with an assignment id, a grade and non-empty feedback."""
    entries = []
    for block in content.split(START_MARKER)[1:]:
        id_match = _ASSIGNMENT_ID_RE.search(block)
        grade_match = _GRADE_RE.search(block)
        feedback_match = _FEEDBACK_RE.search(block)
        if not (id_match and grade_match and feedback_match):
            continue
        grade = grade_match.group(1).strip()
        feedback = feedback_match.group(1).strip()
        if not feedback:
            continue
        entries.append({
            "assignmentId": id_match.group(1).strip(),
            "grade": grade,
            "feedback": feedback,
        })
    return entries


def import_feedback(store, class_id, worksheet_id, user_id, content):
    """
    Apply a filled-in template. Every block is checked before anything is
    written; blocks that name a different class/worksheet or an assignment
    that has not been handed in are reported and left alone.
    """
    if not isinstance(content, str) or not content.strip():
        raise InvalidArgument("No feedback file provided.")
    access.require_class_teacher(store, class_id, user_id)

    entries = parse_feedback_file(content)
    if not entries:
        return {"updated": 0, "skipped": [],
                "message": "No valid feedback blocks found or fields were empty."}

    ready, skipped = [], []
    for entry in entries:
        try:
            assignment = store.get(entry["assignmentId"])
        except NotFound:
            skipped.append({"assignmentId": entry["assignmentId"], "reason": "not-found"})
            continue
        if assignment.get('classId') != class_id or assignment.get('worksheetId') != worksheet_id:
            skipped.append({"assignmentId": entry["assignmentId"], "reason": "wrong-class"})
            continue
        if lifecycle.normalize_status(assignment.get('status')) not in lifecycle.MARKABLE:
            skipped.append({"assignmentId": entry["assignmentId"], "reason": "not-handed-in"})
            continue
        ready.append(entry)

    updated = 0
    for entry in ready:
        try:
            store.finalize(entry["assignmentId"], entry["grade"], entry["feedback"])
            updated += 1
        except PreconditionFailed:
            skipped.append({"assignmentId": entry["assignmentId"], "reason": "not-handed-in"})

    logger.info("Imported feedback for %d assignments (%d skipped)", updated, len(skipped))
    return {"updated": updated, "skipped": skipped,
            "message": f"{updated} assignments updated successfully!"}
