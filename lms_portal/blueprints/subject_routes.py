import logging

from flask import Blueprint, jsonify

from lms_portal.models import db, Subject, ClassSubject, Content, TeacherSubject
from lms_portal.schemas import SubjectCreate, SubjectUpdate
from lms_portal.utils.auth_utils import admin_required, log_admin_action, login_required
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ConflictError, get_or_404
from lms_portal.utils.validation import parse_body, query_flag

logger = logging.getLogger(__name__)

subjects_bp = Blueprint("subjects", __name__, url_prefix="/api/subjects")


def _class_counts():
    rows = (
        db.session.query(
            ClassSubject.subject_id,
            db.func.count(db.distinct(ClassSubject.class_id)),
        )
        .group_by(ClassSubject.subject_id)
        .all()
    )
    return {subject_id: count for subject_id, count in rows}


# Route: GET "/api/subjects"
# Used by: /admin/subjects (?withClassCount=true), subject pickers
@subjects_bp.route("", methods=["GET"])
@login_required
def list_subjects():
    subjects = Subject.query.order_by(Subject.name, Subject.id).all()
    data = [subject.to_dict() for subject in subjects]
    if query_flag("withClassCount"):
        counts = _class_counts()
        for item in data:
            item["classCount"] = counts.get(item["id"], 0)
    return jsonify(data)


@subjects_bp.route("/<int:subject_id>", methods=["GET"])
@login_required
def get_subject(subject_id):
    return jsonify(get_or_404(Subject, subject_id, "Subject").to_dict())


@subjects_bp.route("", methods=["POST"])
@admin_required
def create_subject():
    data = parse_body(SubjectCreate)
    subject = Subject(**data.model_dump())
    with transaction():
        db.session.add(subject)
    log_admin_action("create", "subject", subject.id, subject.name)
    return jsonify(subject.to_dict()), 201


@subjects_bp.route("/<int:subject_id>", methods=["PATCH"])
@admin_required
def update_subject(subject_id):
    subject = get_or_404(Subject, subject_id, "Subject")
    values = parse_body(SubjectUpdate).model_dump(exclude_unset=True)
    if values.get("name", "") is None:
        values.pop("name")
    with transaction():
        for key, value in values.items():
            setattr(subject, key, value)
    return jsonify(subject.to_dict())


# Route: DELETE "/api/subjects/<id>"
# Purpose: Refused while classes or content still use the subject.
@subjects_bp.route("/<int:subject_id>", methods=["DELETE"])
@admin_required
def delete_subject(subject_id):
    subject = get_or_404(Subject, subject_id, "Subject")
    if ClassSubject.query.filter_by(subject_id=subject_id).first() is not None:
        raise ConflictError("Subject is linked to one or more classes")
    if Content.query.filter_by(subject_id=subject_id).first() is not None:
        raise ConflictError("Subject has content attached")

    with transaction():
        TeacherSubject.query.filter_by(subject_id=subject_id).delete()
        db.session.delete(subject)
    log_admin_action("delete", "subject", subject_id)
    return jsonify({"success": True})
