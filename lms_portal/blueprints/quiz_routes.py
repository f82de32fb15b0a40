import logging

from flask import Blueprint, jsonify

from lms_portal.models import Content, Quiz, QuizAttempt, User
from lms_portal.schemas import AttemptAnswers, AttemptStart, QuizCreate, QuizUpdate
from lms_portal.utils import quiz_service
from lms_portal.utils.auth_utils import (
    admin_required,
    login_required,
    require_user,
    role_required,
)
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ForbiddenError, NotFoundError, ValidationError, get_or_404
from lms_portal.utils.validation import parse_body, query_flag, query_int
from lms_portal.blueprints.content_routes import ensure_can_edit

logger = logging.getLogger(__name__)

quizzes_bp = Blueprint("quizzes", __name__)


def _visible_quiz(quiz_id, user):
    quiz = get_or_404(Quiz, quiz_id, "Quiz")
    if user.role == "student" and quiz.content.effective_status != "published":
        raise NotFoundError("Quiz not found")
    return quiz


def _owned_attempt(attempt_id, user):
    attempt = get_or_404(QuizAttempt, attempt_id, "Attempt")
    if user.role == "student" and attempt.student_id != user.id:
        raise ForbiddenError("This attempt belongs to another student")
    return attempt


# Route: GET "/api/quizzes"
# Used by: /admin/quizzes, /quiz (student list), teacher dashboard
# Purpose: Filter by classId/subjectId/authorId; withDetails adds the questions.
@quizzes_bp.route("/api/quizzes", methods=["GET"])
@login_required
def list_quizzes():
    user = require_user()
    query = Quiz.query.join(Content, Quiz.content_id == Content.id)
    for param, column in (
        ("classId", Content.class_id),
        ("subjectId", Content.subject_id),
        ("authorId", Content.author_id),
    ):
        value = query_int(param)
        if value is not None:
            query = query.filter(column == value)
    if user.role == "student":
        query = query.filter(Content.status == "published")

    with_details = query_flag("withDetails")
    hide_answers = user.role == "student"
    quizzes = query.order_by(Content.created_at.desc(), Quiz.id.desc()).all()
    return jsonify(
        [
            quiz.to_dict(with_questions=with_details, hide_answers=hide_answers)
            for quiz in quizzes
        ]
    )


# Route: POST "/api/quizzes"
# Used by: /quiz/create
# Purpose: Content + Quiz + Questions in a single transaction.
@quizzes_bp.route("/api/quizzes", methods=["POST"])
@role_required("teacher")
def create_quiz():
    user = require_user()
    data = parse_body(QuizCreate)
    quiz = quiz_service.create_quiz(data, user)
    return jsonify(quiz.to_dict(with_questions=True)), 201


@quizzes_bp.route("/api/quizzes/<int:quiz_id>", methods=["GET"])
@login_required
def get_quiz(quiz_id):
    user = require_user()
    quiz = _visible_quiz(quiz_id, user)
    return jsonify(
        quiz.to_dict(with_questions=True, hide_answers=user.role == "student")
    )


@quizzes_bp.route("/api/quizzes/<int:quiz_id>", methods=["PATCH"])
@role_required("teacher")
def update_quiz(quiz_id):
    user = require_user()
    quiz = get_or_404(Quiz, quiz_id, "Quiz")
    ensure_can_edit(quiz.content, user)
    data = parse_body(QuizUpdate)
    quiz_service.update_quiz(quiz, data)
    return jsonify(quiz.to_dict(with_questions=True))


# Route: GET "/api/quizzes/<id>/stats"
# Used by: /teacher/performance
@quizzes_bp.route("/api/quizzes/<int:quiz_id>/stats", methods=["GET"])
@role_required("teacher")
def quiz_stats(quiz_id):
    user = require_user()
    quiz = get_or_404(Quiz, quiz_id, "Quiz")
    ensure_can_edit(quiz.content, user)
    return jsonify(quiz_service.quiz_statistics(quiz))


# Route: POST "/api/quiz-attempts"
# Used by: /quiz/<id> when a student opens a quiz
# Purpose: Resume the open attempt or start one; finished quizzes cannot be retaken.
@quizzes_bp.route("/api/quiz-attempts", methods=["POST"])
@role_required("student")
def start_attempt():
    user = require_user()
    data = parse_body(AttemptStart)
    quiz = get_or_404(Quiz, data.quiz_id, "Quiz")
    attempt, created = quiz_service.start_attempt(quiz, user)
    return jsonify(attempt.to_dict()), 201 if created else 200


@quizzes_bp.route("/api/quiz-attempts/<int:attempt_id>", methods=["GET"])
@login_required
def get_attempt(attempt_id):
    attempt = _owned_attempt(attempt_id, require_user())
    return jsonify(attempt.to_dict())


# Route: PATCH "/api/quiz-attempts/<id>/save-progress"
# Purpose: Periodic autosave; autoSubmit=true finalizes when the timer runs out.
@quizzes_bp.route("/api/quiz-attempts/<int:attempt_id>/save-progress", methods=["PATCH"])
@role_required("student")
def save_attempt_progress(attempt_id):
    attempt = _owned_attempt(attempt_id, require_user())
    data = parse_body(AttemptAnswers)
    quiz_service.save_progress(attempt, data.answers, auto_submit=data.auto_submit)
    return jsonify(attempt.to_dict())


# Route: PUT "/api/quiz-attempts/<id>"
# Purpose: Final submission; the server scores the answers.
@quizzes_bp.route("/api/quiz-attempts/<int:attempt_id>", methods=["PUT"])
@role_required("student")
def submit_attempt(attempt_id):
    attempt = _owned_attempt(attempt_id, require_user())
    data = parse_body(AttemptAnswers)
    quiz_service.submit_attempt(attempt, data.answers)
    return jsonify(attempt.to_dict())


# Route: GET "/api/students/<id>/quiz-attempts"
# Used by: /quiz-attempts, /student/performance
@quizzes_bp.route("/api/students/<int:student_id>/quiz-attempts", methods=["GET"])
@login_required
def student_attempts(student_id):
    viewer = require_user()
    if viewer.role == "student" and viewer.id != student_id:
        raise ForbiddenError("You can only view your own attempts")
    get_or_404(User, student_id, "Student")

    query = QuizAttempt.query.filter_by(student_id=student_id)
    quiz_id = query_int("quizId")
    if quiz_id is not None:
        query = query.filter_by(quiz_id=quiz_id)
    attempts = query.order_by(QuizAttempt.started_at.desc(), QuizAttempt.id.desc()).all()

    data = []
    for attempt in attempts:
        item = attempt.to_dict()
        item["quizTitle"] = attempt.quiz.content.title
        data.append(item)
    return jsonify(data)


# Route: GET "/api/students/<id>/quizzes-with-status"
# Used by: /quiz (student list with Start / Resume / Completed badges)
# Purpose: Every visible quiz with the student's attempt state on it.
@quizzes_bp.route("/api/students/<int:student_id>/quizzes-with-status", methods=["GET"])
@login_required
def student_quizzes_with_status(student_id):
    viewer = require_user()
    if viewer.role == "student" and viewer.id != student_id:
        raise ForbiddenError("You can only view your own quiz status")
    get_or_404(User, student_id, "Student")

    query = Quiz.query.join(Content, Quiz.content_id == Content.id)
    class_id = query_int("classId")
    if class_id is not None:
        query = query.filter(Content.class_id == class_id)
    if viewer.role == "student":
        query = query.filter(Content.status == "published")
    quizzes = query.order_by(Content.created_at.desc(), Quiz.id.desc()).all()

    attempts = {}
    for attempt in QuizAttempt.query.filter_by(student_id=student_id).order_by(QuizAttempt.id):
        attempts.setdefault(attempt.quiz_id, []).append(attempt)

    data = []
    for quiz in quizzes:
        item = quiz.to_dict()
        item["className"] = quiz.content.class_obj.name if quiz.content.class_obj else None
        item["subjectName"] = quiz.content.subject.name if quiz.content.subject else None
        item.update(quiz_service.attempt_status(attempts.get(quiz.id, [])))
        data.append(item)
    return jsonify(data)


# Route: DELETE "/api/students/<id>/quiz-attempts?quizId="
# Purpose: Admin reset so a student can retake a quiz.
@quizzes_bp.route("/api/students/<int:student_id>/quiz-attempts", methods=["DELETE"])
@admin_required
def reset_student_attempts(student_id):
    quiz_id = query_int("quizId")
    if quiz_id is None:
        raise ValidationError("quizId is required")
    with transaction():
        removed = QuizAttempt.query.filter_by(
            student_id=student_id, quiz_id=quiz_id
        ).delete()
    logger.info(f"Reset {removed} attempts of student {student_id} on quiz {quiz_id}")
    return jsonify({"success": True, "removed": removed})
