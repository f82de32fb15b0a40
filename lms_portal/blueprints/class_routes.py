import logging

from flask import Blueprint, jsonify

from lms_portal.models import (
    db,
    Class,
    ClassEnrollment,
    ClassSubject,
    ClassTeacher,
    Content,
    Subject,
    User,
    Attendance,
    Assignment,
)
from lms_portal.schemas import (
    AssignTeacherRequest,
    ClassCreate,
    ClassSubjectCreate,
    ClassUpdate,
    EnrollRequest,
)
from lms_portal.utils.auth_utils import (
    admin_required,
    log_admin_action,
    login_required,
    require_self_or_admin,
    require_user,
)
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    get_or_404,
)
from lms_portal.utils.validation import parse_body

logger = logging.getLogger(__name__)

classes_bp = Blueprint("classes", __name__)


def _get_teacher(teacher_id):
    teacher = get_or_404(User, teacher_id, "Teacher")
    if teacher.role != "teacher":
        raise ValidationError("User is not a teacher")
    return teacher


def _get_student(student_id):
    student = get_or_404(User, student_id, "Student")
    if student.role != "student":
        raise ValidationError("User is not a student")
    return student


def teacher_class_ids(teacher_id):
    """Classes a teacher works with: subject links plus class-teacher rows."""
    via_subjects = {
        row.class_id
        for row in ClassSubject.query.filter_by(teacher_id=teacher_id).all()
    }
    via_ownership = {
        row.class_id
        for row in ClassTeacher.query.filter_by(teacher_id=teacher_id).all()
    }
    return via_subjects | via_ownership


# Route: GET "/api/classes"
# Used by: /admin/classes, class pickers in content and quiz forms
@classes_bp.route("/api/classes", methods=["GET"])
@login_required
def list_classes():
    classes = Class.query.order_by(Class.grade, Class.section, Class.id).all()
    return jsonify([c.to_dict() for c in classes])


# Route: POST "/api/classes"
@classes_bp.route("/api/classes", methods=["POST"])
@admin_required
def create_class():
    data = parse_body(ClassCreate)
    class_obj = Class(**data.model_dump())
    with transaction():
        db.session.add(class_obj)
    log_admin_action("create", "class", class_obj.id, class_obj.name)
    return jsonify(class_obj.to_dict()), 201


# Route: GET "/api/classes/<id>"
# Purpose: Class with its subjects (and their teachers), students and class teacher.
@classes_bp.route("/api/classes/<int:class_id>", methods=["GET"])
@login_required
def get_class(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    data = class_obj.to_dict()
    data["subjects"] = [link.to_dict() for link in class_obj.subject_links]
    data["students"] = [student.to_dict() for student in class_obj.students]
    return jsonify(data)


# Route: PATCH "/api/classes/<id>"
@classes_bp.route("/api/classes/<int:class_id>", methods=["PATCH"])
@admin_required
def update_class(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    values = parse_body(ClassUpdate).model_dump(exclude_unset=True)
    if "name" in values and values["name"] is None:
        values.pop("name")
    if "grade" in values and values["grade"] is None:
        values.pop("grade")
    with transaction():
        for key, value in values.items():
            setattr(class_obj, key, value)
    log_admin_action("update", "class", class_obj.id)
    return jsonify(class_obj.to_dict())


# Route: DELETE "/api/classes/<id>"
# Purpose: Remove a class with its links; refused while content still points at it.
@classes_bp.route("/api/classes/<int:class_id>", methods=["DELETE"])
@admin_required
def delete_class(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    if Content.query.filter_by(class_id=class_id).first() is not None:
        raise ConflictError("Class has content; delete it first")
    with transaction():
        Attendance.query.filter_by(class_id=class_id).delete()
        Assignment.query.filter_by(class_id=class_id).delete()
        db.session.delete(class_obj)
    log_admin_action("delete", "class", class_id)
    return jsonify({"success": True})


# Route: POST "/api/classes/<id>/assign-teacher"
# Used by: /admin/class-teachers
# Purpose: Make a teacher the class teacher; any previous one is replaced.
@classes_bp.route("/api/classes/<int:class_id>/assign-teacher", methods=["POST"])
@admin_required
def assign_class_teacher(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    data = parse_body(AssignTeacherRequest)
    teacher = _get_teacher(data.teacher_id)

    existing = class_obj.class_teacher
    if existing is not None and existing.teacher_id == teacher.id:
        raise ConflictError("This teacher is already the class teacher")

    with transaction():
        if existing is not None:
            # Orphan delete must reach the unique class_id index before the insert
            class_obj.class_teacher = None
            db.session.flush()
        assignment = ClassTeacher(teacher_id=teacher.id)
        class_obj.class_teacher = assignment

    logger.info(f"Teacher {teacher.id} assigned to class {class_id}")
    log_admin_action("assign-teacher", "class", class_id, f"teacher={teacher.id}")
    return jsonify(assignment.to_dict()), 201


# Route: GET "/api/classes/<id>/teacher"
@classes_bp.route("/api/classes/<int:class_id>/teacher", methods=["GET"])
@login_required
def get_class_teacher(class_id):
    class_obj = get_or_404(Class, class_id, "Class")
    if class_obj.class_teacher is None:
        raise NotFoundError("No class teacher assigned")
    return jsonify(class_obj.class_teacher.to_dict())


# Route: DELETE "/api/classes/<id>/teacher"
# Purpose: Drop the class teacher; succeeds when there is none.
@classes_bp.route("/api/classes/<int:class_id>/teacher", methods=["DELETE"])
@admin_required
def remove_class_teacher(class_id):
    get_or_404(Class, class_id, "Class")
    with transaction():
        removed = ClassTeacher.query.filter_by(class_id=class_id).delete()
    log_admin_action("remove-teacher", "class", class_id, f"removed={removed}")
    return jsonify({"success": True, "removed": removed})


# Route: GET "/api/class-teachers"
# Used by: /admin/class-teachers
@classes_bp.route("/api/class-teachers", methods=["GET"])
@login_required
def list_class_teachers():
    rows = (
        ClassTeacher.query.join(Class, ClassTeacher.class_id == Class.id)
        .order_by(Class.grade, Class.section, Class.id)
        .all()
    )
    return jsonify([row.to_dict() for row in rows])


# Route: POST "/api/class-subjects"
# Purpose: Attach a subject (and optionally its teacher) to a class.
@classes_bp.route("/api/class-subjects", methods=["POST"])
@admin_required
def create_class_subject():
    data = parse_body(ClassSubjectCreate)
    get_or_404(Class, data.class_id, "Class")
    get_or_404(Subject, data.subject_id, "Subject")
    if data.teacher_id is not None:
        _get_teacher(data.teacher_id)

    duplicate = ClassSubject.query.filter_by(
        class_id=data.class_id, subject_id=data.subject_id
    ).first()
    if duplicate is not None:
        raise ConflictError("Subject is already linked to this class")

    link = ClassSubject(**data.model_dump())
    with transaction():
        db.session.add(link)
    return jsonify(link.to_dict()), 201


# Route: DELETE "/api/class-subjects/<id>"
@classes_bp.route("/api/class-subjects/<int:link_id>", methods=["DELETE"])
@admin_required
def delete_class_subject(link_id):
    link = get_or_404(ClassSubject, link_id, "Class subject")
    with transaction():
        db.session.delete(link)
    return jsonify({"success": True})


# Route: POST "/api/students/<id>/enroll"
# Purpose: Enroll a student; grade and section follow the class.
@classes_bp.route("/api/students/<int:student_id>/enroll", methods=["POST"])
@admin_required
def enroll_student(student_id):
    student = _get_student(student_id)
    data = parse_body(EnrollRequest)
    class_obj = get_or_404(Class, data.class_id, "Class")

    existing = ClassEnrollment.query.filter_by(
        class_id=class_obj.id, student_id=student.id
    ).first()
    if existing is not None:
        raise ConflictError("Student is already enrolled in this class")

    enrollment = ClassEnrollment(class_id=class_obj.id, student_id=student.id)
    with transaction():
        db.session.add(enrollment)
        student.grade = class_obj.grade
        student.section = class_obj.section

    log_admin_action("enroll", "class", class_obj.id, f"student={student.id}")
    return jsonify(enrollment.to_dict()), 201


# Route: DELETE "/api/students/<id>/enroll/<class_id>"
@classes_bp.route(
    "/api/students/<int:student_id>/enroll/<int:class_id>", methods=["DELETE"]
)
@admin_required
def unenroll_student(student_id, class_id):
    enrollment = ClassEnrollment.query.filter_by(
        class_id=class_id, student_id=student_id
    ).first()
    if enrollment is None:
        raise NotFoundError("Enrollment not found")
    with transaction():
        db.session.delete(enrollment)
    return jsonify({"success": True})


# Route: GET "/api/students/<id>/classes"
@classes_bp.route("/api/students/<int:student_id>/classes", methods=["GET"])
@login_required
def student_classes(student_id):
    viewer = require_user()
    if viewer.role == "student" and viewer.id != student_id:
        raise ForbiddenError("You can only view your own classes")
    student = _get_student(student_id)
    return jsonify([e.class_obj.to_dict() for e in student.enrollments])


# Route: GET "/api/teachers/<id>/classes"
# Used by: /teacher/classes, teacher dashboard
@classes_bp.route("/api/teachers/<int:teacher_id>/classes", methods=["GET"])
@login_required
def teacher_classes(teacher_id):
    require_self_or_admin(teacher_id)
    _get_teacher(teacher_id)
    links = ClassSubject.query.filter_by(teacher_id=teacher_id).all()
    grouped = {}
    for link in links:
        entry = grouped.setdefault(link.class_id, link.class_obj.to_dict())
        entry.setdefault("subjects", []).append(link.subject.to_dict())
    return jsonify(list(grouped.values()))


# Route: GET "/api/teachers/<id>/assigned-classes"
# Purpose: Classes where the teacher is the class teacher.
@classes_bp.route("/api/teachers/<int:teacher_id>/assigned-classes", methods=["GET"])
@login_required
def teacher_assigned_classes(teacher_id):
    require_self_or_admin(teacher_id)
    _get_teacher(teacher_id)
    rows = ClassTeacher.query.filter_by(teacher_id=teacher_id).all()
    return jsonify([row.to_dict() for row in rows])
