import logging
from datetime import date

from flask import Blueprint, jsonify, request

from lms_portal.models import db, Assignment, Attendance, Class, ClassEnrollment, User
from lms_portal.schemas import AssignmentCreate, AssignmentUpdate, AttendanceBatch
from lms_portal.utils.auth_utils import login_required, require_user, role_required
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ForbiddenError, ValidationError, get_or_404
from lms_portal.utils.validation import parse_body

logger = logging.getLogger(__name__)

assignments_bp = Blueprint("assignments", __name__)


def _ensure_class_teacher(class_obj, user):
    """Homework and attendance belong to the class teacher (or an admin)."""
    if user.role == "admin":
        return
    owner = class_obj.class_teacher
    if owner is None or owner.teacher_id != user.id:
        raise ForbiddenError("Only the class teacher can manage this class")


def _ensure_enrolled(class_id, student_id):
    enrolled = ClassEnrollment.query.filter_by(
        class_id=class_id, student_id=student_id
    ).first()
    if enrolled is None:
        raise ValidationError(f"Student {student_id} is not enrolled in this class")


# Route: POST "/api/assignments"
# Used by: /teacher/assignments
@assignments_bp.route("/api/assignments", methods=["POST"])
@role_required("teacher")
def create_assignment():
    user = require_user()
    data = parse_body(AssignmentCreate)
    class_obj = get_or_404(Class, data.class_id, "Class")
    _ensure_class_teacher(class_obj, user)
    _ensure_enrolled(class_obj.id, data.student_id)

    assignment = Assignment(teacher_id=user.id, **data.model_dump())
    with transaction():
        db.session.add(assignment)
    logger.info(
        f"Assignment '{assignment.assignment_title}' recorded for student "
        f"{assignment.student_id} in class {class_obj.id}"
    )
    return jsonify(assignment.to_dict()), 201


@assignments_bp.route("/api/classes/<int:class_id>/assignments", methods=["GET"])
@role_required("teacher")
def class_assignments(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    _ensure_class_teacher(class_obj, require_user())
    rows = (
        Assignment.query.filter_by(class_id=class_id)
        .order_by(Assignment.recorded_at.desc(), Assignment.id.desc())
        .all()
    )
    return jsonify([row.to_dict() for row in rows])


@assignments_bp.route("/api/students/<int:student_id>/assignments", methods=["GET"])
@login_required
def student_assignments(student_id):
    viewer = require_user()
    if viewer.role == "student" and viewer.id != student_id:
        raise ForbiddenError("You can only view your own assignments")
    get_or_404(User, student_id, "Student")
    rows = (
        Assignment.query.filter_by(student_id=student_id)
        .order_by(Assignment.due_date.is_(None), Assignment.due_date, Assignment.id)
        .all()
    )
    return jsonify([row.to_dict() for row in rows])


# Route: PATCH "/api/assignments/<id>"
# Purpose: Mark completion, add remarks or move the due date.
@assignments_bp.route("/api/assignments/<int:assignment_id>", methods=["PATCH"])
@role_required("teacher")
def update_assignment(assignment_id):
    user = require_user()
    assignment = get_or_404(Assignment, assignment_id, "Assignment")
    _ensure_class_teacher(db.session.get(Class, assignment.class_id), user)

    values = parse_body(AssignmentUpdate).model_dump(exclude_unset=True)
    for key in ("assignment_title", "is_completed"):
        if key in values and values[key] is None:
            values.pop(key)
    with transaction():
        for key, value in values.items():
            setattr(assignment, key, value)
    return jsonify(assignment.to_dict())


@assignments_bp.route("/api/assignments/<int:assignment_id>", methods=["DELETE"])
@role_required("teacher")
def delete_assignment(assignment_id):
    user = require_user()
    assignment = get_or_404(Assignment, assignment_id, "Assignment")
    _ensure_class_teacher(db.session.get(Class, assignment.class_id), user)
    with transaction():
        db.session.delete(assignment)
    return jsonify({"success": True})


# Route: POST "/api/attendance"
# Used by: /teacher/attendance
# Purpose: Record a day's register; re-submitting the same day overwrites it.
@assignments_bp.route("/api/attendance", methods=["POST"])
@role_required("teacher")
def record_attendance():
    user = require_user()
    data = parse_body(AttendanceBatch)
    class_obj = get_or_404(Class, data.class_id, "Class")
    _ensure_class_teacher(class_obj, user)
    for record in data.records:
        _ensure_enrolled(class_obj.id, record.student_id)

    saved = []
    with transaction():
        for record in data.records:
            row = Attendance.query.filter_by(
                student_id=record.student_id,
                class_id=class_obj.id,
                date=data.attendance_date,
            ).first()
            if row is None:
                row = Attendance(
                    student_id=record.student_id,
                    class_id=class_obj.id,
                    date=data.attendance_date,
                )
                db.session.add(row)
            row.status = record.status
            row.remarks = record.remarks
            row.recorded_by = user.id
            saved.append(row)

    logger.info(
        f"Attendance for class {class_obj.id} on {data.attendance_date}: {len(saved)} records"
    )
    return jsonify([row.to_dict() for row in saved]), 201


@assignments_bp.route("/api/classes/<int:class_id>/attendance", methods=["GET"])
@role_required("teacher")
def class_attendance(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    _ensure_class_teacher(class_obj, require_user())
    query = Attendance.query.filter_by(class_id=class_id)

    raw_date = request.args.get("date")
    if raw_date:
        try:
            query = query.filter_by(date=date.fromisoformat(raw_date))
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
    rows = query.order_by(Attendance.date.desc(), Attendance.student_id).all()
    return jsonify([row.to_dict() for row in rows])
