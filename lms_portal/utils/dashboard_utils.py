from datetime import datetime

import numpy as np

from lms_portal.models import (
    db,
    Assignment,
    Attendance,
    Class,
    ClassEnrollment,
    Content,
    Quiz,
    QuizAttempt,
    User,
)


def _count_role(role):
    return User.query.filter_by(role=role).count()


def _upcoming(query, limit):
    now = datetime.now()
    rows = (
        query.filter(Content.due_date.isnot(None), Content.due_date >= now)
        .order_by(Content.due_date, Content.id)
        .limit(limit)
        .all()
    )
    return [row.to_dict() for row in rows]


def admin_dashboard():
    recent_users = (
        User.query.order_by(User.joined_at.desc(), User.id.desc()).limit(5).all()
    )
    recent_contents = (
        Content.query.order_by(Content.created_at.desc(), Content.id.desc())
        .limit(4)
        .all()
    )
    return {
        "totalStudents": _count_role("student"),
        "totalTeachers": _count_role("teacher"),
        "totalClasses": Class.query.count(),
        "totalQuizzes": Quiz.query.count(),
        "recentUsers": [user.to_dict() for user in recent_users],
        "recentActivities": [
            content.to_dict(with_relations=True) for content in recent_contents
        ],
    }


def teacher_dashboard(teacher, class_ids):
    classes = (
        Class.query.filter(Class.id.in_(class_ids))
        .order_by(Class.grade, Class.section, Class.id)
        .all()
        if class_ids
        else []
    )
    total_students = 0
    if class_ids:
        total_students = (
            db.session.query(db.func.count(db.distinct(ClassEnrollment.student_id)))
            .filter(ClassEnrollment.class_id.in_(class_ids))
            .scalar()
        )

    own_content = Content.query.filter_by(author_id=teacher.id)
    pending_grading = (
        QuizAttempt.query.join(Quiz, QuizAttempt.quiz_id == Quiz.id)
        .join(Content, Quiz.content_id == Content.id)
        .filter(
            Content.author_id == teacher.id,
            QuizAttempt.completed_at.isnot(None),
            QuizAttempt.score.is_(None),
        )
        .count()
    )
    return {
        "classes": [class_obj.to_dict() for class_obj in classes],
        "totalStudents": total_students or 0,
        "contentUploads": own_content.count(),
        "pendingGrading": pending_grading,
        "upcomingDeadlines": _upcoming(own_content, 4),
    }


def _attendance_percentage(student_id):
    today = datetime.now().date()
    month_start = today.replace(day=1)
    statuses = [
        row.status
        for row in Attendance.query.filter(
            Attendance.student_id == student_id,
            Attendance.date >= month_start,
            Attendance.date <= today,
        ).all()
    ]
    if not statuses:
        return None
    # Late still counts as attended
    attended = sum(1 for status in statuses if status in ("present", "late"))
    return round(attended / len(statuses) * 100, 1)


def student_dashboard(student):
    class_ids = [
        row.class_id for row in ClassEnrollment.query.filter_by(student_id=student.id)
    ]
    published = Content.query.filter(Content.status == "published")
    if class_ids:
        class_content = published.filter(Content.class_id.in_(class_ids))
        total_quizzes = class_content.filter(Content.content_type == "quiz").count()
        upcoming = _upcoming(class_content, 4)
    else:
        total_quizzes = 0
        upcoming = []

    completed = QuizAttempt.query.filter(
        QuizAttempt.student_id == student.id, QuizAttempt.completed_at.isnot(None)
    ).all()
    percentages = [
        attempt.score / attempt.quiz.max_points * 100
        for attempt in completed
        if attempt.score is not None and attempt.quiz.max_points
    ]
    assignments = Assignment.query.filter_by(student_id=student.id)

    return {
        "completedQuizzes": len(completed),
        "totalQuizzes": total_quizzes,
        "averageScore": round(float(np.mean(percentages)), 2) if percentages else None,
        "attendancePercentage": _attendance_percentage(student.id),
        "completedAssignments": assignments.filter_by(is_completed=True).count(),
        "totalAssignments": assignments.count(),
        "upcomingDeadlines": upcoming,
    }
