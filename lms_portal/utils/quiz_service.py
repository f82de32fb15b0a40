import logging
from datetime import datetime

import numpy as np
from scipy.stats import skew

from lms_portal.models import db, Class, Content, Question, Quiz, QuizAttempt, Subject
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ConflictError, NotFoundError, ValidationError, get_or_404

logger = logging.getLogger(__name__)


def _add_questions(quiz, questions):
    for position, question in enumerate(questions):
        quiz.questions.append(
            Question(
                text=question.text,
                options=[option.model_dump(by_alias=True) for option in question.options],
                points=question.points,
                position=position,
            )
        )
    db.session.flush()


def create_quiz(data, author):
    """Create the quiz Content row, the Quiz row and its questions as one unit."""
    get_or_404(Class, data.class_id, "Class")
    get_or_404(Subject, data.subject_id, "Subject")

    with transaction():
        content = Content(
            title=data.title,
            description=data.description,
            content_type="quiz",
            class_id=data.class_id,
            subject_id=data.subject_id,
            author_id=author.id,
            status=data.status,
            due_date=data.due_date,
        )
        db.session.add(content)
        db.session.flush()

        quiz = Quiz(
            content_id=content.id,
            time_limit=data.time_limit,
            passing_score=data.passing_score,
            total_points=data.total_points,
        )
        db.session.add(quiz)
        db.session.flush()

        _add_questions(quiz, data.questions)
        if quiz.total_points is None:
            quiz.total_points = sum(question.points for question in data.questions)

    logger.info(
        f"Quiz {quiz.id} '{content.title}' created by {author.username} "
        f"with {len(data.questions)} questions"
    )
    return quiz


def update_quiz(quiz, data):
    changes = data.model_fields_set
    content = quiz.content

    if "questions" in changes and data.questions is not None:
        # Open attempts hold answers keyed by the current question ids
        if quiz.attempts:
            raise ConflictError("Quiz already has attempts; questions are locked")

    with transaction():
        for field in ("title", "description", "status", "due_date"):
            if field in changes:
                value = getattr(data, field)
                if field == "title" and value is None:
                    continue
                setattr(content, field, value)
        for field in ("time_limit", "passing_score", "total_points"):
            if field in changes and getattr(data, field) is not None:
                setattr(quiz, field, getattr(data, field))

        if "questions" in changes and data.questions is not None:
            quiz.questions.clear()
            db.session.flush()
            _add_questions(quiz, data.questions)
            if "total_points" not in changes:
                quiz.total_points = sum(question.points for question in data.questions)

    logger.info(f"Quiz {quiz.id} updated: {sorted(changes)}")
    return quiz


def delete_content(content):
    """Delete content; a quiz takes its questions and attempts with it."""
    with transaction():
        db.session.delete(content)
    logger.info(f"Content {content.id} ({content.content_type}) deleted")


# Attempts


def normalize_answers(raw):
    """Map questionId -> {"selectedOptionId": n} from either accepted shape."""
    if not isinstance(raw, dict):
        raise ValidationError("answers must be an object keyed by question id")
    normalized = {}
    for question_id, value in raw.items():
        if isinstance(value, dict):
            value = value.get("selectedOptionId")
        if value is None:
            continue
        try:
            normalized[str(int(question_id))] = {"selectedOptionId": int(value)}
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid answer for question {question_id}")
    return normalized


def score_answers(quiz, answers):
    score = 0
    for question in quiz.questions:
        selected = (answers.get(str(question.id)) or {}).get("selectedOptionId")
        if selected in question.correct_option_ids:
            score += question.points or 1
    return score


def start_attempt(quiz, student):
    """Return (attempt, created). A finished attempt cannot be restarted."""
    if student.role == "student" and quiz.content.effective_status != "published":
        raise NotFoundError("Quiz not found")

    existing = (
        QuizAttempt.query.filter_by(quiz_id=quiz.id, student_id=student.id)
        .order_by(QuizAttempt.id.desc())
        .first()
    )
    if existing is not None:
        if existing.is_completed:
            raise ConflictError("You have already completed this quiz")
        return existing, False

    attempt = QuizAttempt(quiz_id=quiz.id, student_id=student.id, answers={})
    with transaction():
        db.session.add(attempt)
    logger.info(f"Student {student.id} started quiz {quiz.id} (attempt {attempt.id})")
    return attempt, True


def save_progress(attempt, raw_answers, auto_submit=False):
    if attempt.is_completed:
        raise ConflictError("Attempt already submitted")
    merged = dict(attempt.answers or {})
    merged.update(normalize_answers(raw_answers))
    if auto_submit:
        return submit_attempt(attempt, merged)
    with transaction():
        attempt.answers = merged
    return attempt


def submit_attempt(attempt, raw_answers):
    if attempt.is_completed:
        raise ConflictError("Attempt already submitted")
    merged = dict(attempt.answers or {})
    merged.update(normalize_answers(raw_answers))
    with transaction():
        attempt.answers = merged
        attempt.score = score_answers(attempt.quiz, merged)
        attempt.completed_at = datetime.now()
    logger.info(
        f"Attempt {attempt.id} submitted: {attempt.score}/{attempt.quiz.max_points}"
    )
    return attempt


def attempt_status(attempts):
    """Summarize one student's attempts on one quiz for list views."""
    completed = next((a for a in attempts if a.is_completed), None)
    if completed is not None:
        return {
            "attemptStatus": "completed",
            "attemptId": completed.id,
            "score": completed.score,
            "percentage": completed.to_dict()["percentage"],
        }
    if attempts:
        return {
            "attemptStatus": "in_progress",
            "attemptId": attempts[0].id,
            "score": None,
            "percentage": None,
        }
    return {"attemptStatus": "not_attempted", "attemptId": None, "score": None, "percentage": None}


def quiz_statistics(quiz):
    """Distribution of completed attempt percentages for one quiz."""
    total = quiz.max_points
    percentages = [
        attempt.score / total * 100
        for attempt in quiz.attempts
        if attempt.is_completed and attempt.score is not None and total
    ]
    if not percentages:
        return {
            "quizId": quiz.id,
            "attempts": 0,
            "mean": None,
            "median": None,
            "stdDev": None,
            "skewness": None,
            "passRate": None,
        }

    scores = np.array(percentages, dtype=float)
    skewness = float(skew(scores)) if len(scores) >= 3 else None
    if skewness is not None and np.isnan(skewness):
        skewness = None
    return {
        "quizId": quiz.id,
        "attempts": int(len(scores)),
        "mean": round(float(np.mean(scores)), 2),
        "median": round(float(np.median(scores)), 2),
        "stdDev": round(float(np.std(scores)), 2),
        "skewness": round(skewness, 4) if skewness is not None else None,
        "passRate": round(float(np.mean(scores >= quiz.passing_score)) * 100, 2),
    }
