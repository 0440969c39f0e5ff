"""
Quiz Grading
============
Closed-form quizzes are graded here, on the server, against the answer key
stored with the worksheet. Whatever score a client may have computed is
never trusted.

submit_quiz() is the callable behind POST /api/submit-quiz:

    in:  {"assignmentId": str, "answers": [int | None, ...]}
    out: {"status": "success", "score": int, "totalMarks": int, "mark": "c / n"}
"""
import logging

from ..config import QUIZ_AUTO_FEEDBACK
from ..errors import InvalidArgument, PermissionDenied, PreconditionFailed, Unauthenticated
from . import lifecycle

logger = logging.getLogger(__name__)


def quiz_questions(worksheet):
    """The question list of a quiz worksheet, or PreconditionFailed."""
    questions = worksheet.get('questions')
    if worksheet.get('type') != 'quiz' or not isinstance(questions, list) or len(questions) == 0:
        raise PreconditionFailed("This worksheet is not a valid, non-empty quiz.")
    if not all(isinstance(q, dict) for q in questions):
        raise PreconditionFailed("This worksheet's questions are malformed.")
    return questions


def normalize_answers(answers, question_count):
    """One entry per question: the chosen option index, or None."""
    normalized = []
    for index in range(question_count):
        answer = answers[index] if index < len(answers) else None
        if isinstance(answer, bool) or not isinstance(answer, int) or answer < 0:
            answer = None
        normalized.append(answer)
    return normalized


def score_answers(questions, answers):
    correct = 0
    for question, answer in zip(questions, answers):
        if answer is not None and question.get('correctAnswerIndex') == answer:
            correct += 1
    return correct


def format_mark(score, total):
    return f"{score} / {total}"


def submit_quiz(store, caller_uid, data):
    """Grade and record a quiz submission. All checks run before any write."""
    if not caller_uid:
        raise Unauthenticated("You must be logged in to submit a quiz.")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidArgument("The function must be called with an object.")
    assignment_id = data.get('assignmentId')
    answers = data.get('answers')
    if not assignment_id or not isinstance(answers, list):
        raise InvalidArgument("The function must be called with an 'assignmentId' and 'answers' array.")

    assignment = store.get(assignment_id)
    if not assignment.get('studentAuthUID'):
        raise PreconditionFailed("Assignment is missing student authentication ID.")
    if assignment['studentAuthUID'] != caller_uid:
        raise PermissionDenied("You do not have permission to submit this assignment.")

    lifecycle.check_quiz_submission(assignment.get('status'))

    worksheet = store.get_worksheet(assignment.get('worksheetId'))
    questions = quiz_questions(worksheet)

    final_answers = normalize_answers(answers, len(questions))
    score = score_answers(questions, final_answers)
    total = len(questions)
    mark = format_mark(score, total)

    store.record_quiz_submission(assignment_id, final_answers, mark, QUIZ_AUTO_FEEDBACK)
    logger.info("Quiz %s graded: %s", assignment_id, mark)

    return {"status": "success", "score": score, "totalMarks": total, "mark": mark}


def quiz_review(worksheet, assignment):
    """Per-question breakdown for the marking view and the student's results."""
    questions = quiz_questions(worksheet)
    stored = (assignment.get('studentWork') or {}).get('answers') or []
    answers = normalize_answers(stored, len(questions))

    review = []
    for index, (question, answer) in enumerate(zip(questions, answers)):
        options = question.get('options') or []
        correct_index = question.get('correctAnswerIndex')
        review.append({
            "number": index + 1,
            "questionText": question.get('questionText', ''),
            "studentAnswerIndex": answer,
            "studentAnswer": options[answer] if answer is not None and answer < len(options) else 'Not answered',
            "correctAnswerIndex": correct_index,
            "correctAnswer": options[correct_index]
            if isinstance(correct_index, int) and 0 <= correct_index < len(options) else None,
            "isCorrect": answer is not None and answer == correct_index,
        })
    return review


def strip_answer_key(worksheet):
    """Quiz questions as a student may see them."""
    return [
        {"questionText": q.get('questionText', ''), "options": list(q.get('options') or [])}
        for q in quiz_questions(worksheet)
    ]
