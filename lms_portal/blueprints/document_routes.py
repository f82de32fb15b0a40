import logging

from flask import Blueprint, jsonify

from lms_portal.models import db, StudentDocument, User
from lms_portal.schemas import StudentDocumentCreate
from lms_portal.utils.auth_utils import login_required, require_user
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ForbiddenError, ValidationError, get_or_404
from lms_portal.utils.validation import parse_body

logger = logging.getLogger(__name__)

documents_bp = Blueprint("documents", __name__)


def _ensure_can_view(viewer, student_id):
    """Staff can read any student's documents; a student only their own."""
    if viewer.role in ("admin", "teacher") or viewer.id == student_id:
        return
    raise ForbiddenError("You don't have access to these documents")


def _ensure_can_manage(viewer, student_id):
    if viewer.role == "admin" or viewer.id == student_id:
        return
    raise ForbiddenError("You can't manage documents for this student")


# Route: GET "/api/students/<id>/documents"
# Used by: /admin/students/<id>, /profile (student)
@documents_bp.route("/api/students/<int:student_id>/documents", methods=["GET"])
@login_required
def list_documents(student_id):
    _ensure_can_view(require_user(), student_id)
    get_or_404(User, student_id, "Student")
    rows = (
        StudentDocument.query.filter_by(student_id=student_id)
        .order_by(StudentDocument.uploaded_at.desc(), StudentDocument.id.desc())
        .all()
    )
    return jsonify([row.to_dict() for row in rows])


# Route: POST "/api/students/<id>/documents"
# Purpose: Attach an already uploaded file (see /api/upload) to the student.
@documents_bp.route("/api/students/<int:student_id>/documents", methods=["POST"])
@login_required
def add_document(student_id):
    viewer = require_user()
    _ensure_can_manage(viewer, student_id)
    student = get_or_404(User, student_id, "Student")
    if student.role != "student":
        raise ValidationError("Documents can only be attached to students")

    data = parse_body(StudentDocumentCreate)
    document = StudentDocument(student_id=student.id, **data.model_dump())
    with transaction():
        db.session.add(document)
    logger.info(
        f"Document {document.id} ({document.document_type}) added for student "
        f"{student.id} by {viewer.username}"
    )
    return jsonify(document.to_dict()), 201


@documents_bp.route("/api/student-documents/<int:document_id>", methods=["GET"])
@login_required
def get_document(document_id):
    document = get_or_404(StudentDocument, document_id, "Document")
    _ensure_can_view(require_user(), document.student_id)
    return jsonify(document.to_dict())


@documents_bp.route("/api/student-documents/<int:document_id>", methods=["DELETE"])
@login_required
def delete_document(document_id):
    document = get_or_404(StudentDocument, document_id, "Document")
    student_id = document.student_id
    _ensure_can_manage(require_user(), student_id)
    with transaction():
        db.session.delete(document)
    logger.info(f"Document {document_id} of student {student_id} deleted")
    return jsonify({"success": True})
