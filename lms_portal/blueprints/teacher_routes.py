import logging

from flask import Blueprint, current_app, jsonify

from lms_portal.models import db, Subject, TeacherQualification, TeacherSubject, User
from lms_portal.schemas import QualificationCreate, TeacherSubjectCreate
from lms_portal.utils.auth_utils import login_required, require_self_or_admin
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ConflictError, ValidationError, get_or_404
from lms_portal.utils.validation import parse_body

logger = logging.getLogger(__name__)

teachers_bp = Blueprint("teachers", __name__, url_prefix="/api/teachers")


def _teacher_for_edit(teacher_id):
    require_self_or_admin(teacher_id, "You can only edit your own profile")
    teacher = get_or_404(User, teacher_id, "Teacher")
    if teacher.role != "teacher":
        raise ValidationError("User is not a teacher")
    return teacher


# Route: GET "/api/teachers/<id>/qualifications"
# Used by: /teacher/profile, /admin/teachers/<id>
@teachers_bp.route("/<int:teacher_id>/qualifications", methods=["GET"])
@login_required
def list_qualifications(teacher_id):
    teacher = get_or_404(User, teacher_id, "Teacher")
    return jsonify([q.to_dict() for q in teacher.qualifications])


# Route: POST "/api/teachers/<id>/qualifications"
# Used by: /teacher/profile/add-qualification
@teachers_bp.route("/<int:teacher_id>/qualifications", methods=["POST"])
@login_required
def add_qualification(teacher_id):
    teacher = _teacher_for_edit(teacher_id)
    data = parse_body(QualificationCreate)
    qualification = TeacherQualification(teacher_id=teacher.id, **data.model_dump())
    with transaction():
        db.session.add(qualification)
    logger.info(f"Qualification added for teacher {teacher.id}")
    return jsonify(qualification.to_dict()), 201


@teachers_bp.route("/qualifications/<int:qualification_id>", methods=["DELETE"])
@login_required
def delete_qualification(qualification_id):
    qualification = get_or_404(TeacherQualification, qualification_id, "Qualification")
    _teacher_for_edit(qualification.teacher_id)
    with transaction():
        db.session.delete(qualification)
    return jsonify({"success": True})


# Route: GET "/api/teachers/<id>/subjects"
@teachers_bp.route("/<int:teacher_id>/subjects", methods=["GET"])
@login_required
def list_teacher_subjects(teacher_id):
    teacher = get_or_404(User, teacher_id, "Teacher")
    return jsonify([ts.to_dict() for ts in teacher.teacher_subjects])


# Route: POST "/api/teachers/<id>/subjects"
# Used by: /teacher/profile/add-subject
# Purpose: A teacher lists at most MAX_TEACHER_SUBJECTS subjects.
@teachers_bp.route("/<int:teacher_id>/subjects", methods=["POST"])
@login_required
def add_teacher_subject(teacher_id):
    teacher = _teacher_for_edit(teacher_id)
    data = parse_body(TeacherSubjectCreate)
    subject = get_or_404(Subject, data.subject_id, "Subject")

    limit = current_app.config.get("MAX_TEACHER_SUBJECTS", 3)
    current = TeacherSubject.query.filter_by(teacher_id=teacher.id).all()
    if any(row.subject_id == subject.id for row in current):
        raise ConflictError("Teacher already has this subject")
    if len(current) >= limit:
        raise ConflictError(f"A teacher can have at most {limit} subjects")

    link = TeacherSubject(teacher_id=teacher.id, subject_id=subject.id)
    with transaction():
        db.session.add(link)
    logger.info(f"Subject {subject.id} added to teacher {teacher.id}")
    return jsonify(link.to_dict()), 201


@teachers_bp.route("/subjects/<int:link_id>", methods=["DELETE"])
@login_required
def delete_teacher_subject(link_id):
    link = get_or_404(TeacherSubject, link_id, "Teacher subject")
    _teacher_for_edit(link.teacher_id)
    with transaction():
        db.session.delete(link)
    return jsonify({"success": True})
