import logging

from flask import Blueprint, jsonify, request

from lms_portal.models import db, Class, Content, Subject, CONTENT_STATUSES, CONTENT_TYPES
from lms_portal.schemas import ContentCreate, ContentUpdate
from lms_portal.utils.auth_utils import login_required, require_user, role_required
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ForbiddenError, NotFoundError, ValidationError, get_or_404
from lms_portal.utils.quiz_service import delete_content
from lms_portal.utils.validation import parse_body, query_int

logger = logging.getLogger(__name__)

contents_bp = Blueprint("contents", __name__, url_prefix="/api/contents")


def ensure_can_edit(content, user):
    if user.role != "admin" and content.author_id != user.id:
        raise ForbiddenError("Only the author or an admin can change this content")


def visible_content(content_id, user):
    content = get_or_404(Content, content_id, "Content")
    if user.role == "student" and content.effective_status != "published":
        raise NotFoundError("Content not found")
    return content


# Route: GET "/api/contents"
# Used by: /admin/content, /teacher/content, /student/content
@contents_bp.route("", methods=["GET"])
@login_required
def list_contents():
    user = require_user()
    query = Content.query

    content_type = request.args.get("contentType")
    if content_type:
        if content_type not in CONTENT_TYPES:
            raise ValidationError(f"Unknown content type: {content_type}")
        query = query.filter(Content.content_type == content_type)

    for param, column in (
        ("classId", Content.class_id),
        ("subjectId", Content.subject_id),
        ("authorId", Content.author_id),
    ):
        value = query_int(param)
        if value is not None:
            query = query.filter(column == value)

    status = request.args.get("status")
    if user.role == "student":
        query = query.filter(Content.status == "published")
    elif status:
        if status not in CONTENT_STATUSES:
            raise ValidationError(f"Unknown status: {status}")
        if status == "draft":
            query = query.filter(db.or_(Content.status == "draft", Content.status.is_(None)))
        else:
            query = query.filter(Content.status == status)

    contents = query.order_by(Content.created_at.desc(), Content.id.desc()).all()
    return jsonify([content.to_dict(with_relations=True) for content in contents])


@contents_bp.route("/<int:content_id>", methods=["GET"])
@login_required
def get_content(content_id):
    content = visible_content(content_id, require_user())
    return jsonify(content.to_dict(with_relations=True))


# Route: POST "/api/contents"
# Purpose: Notes, homework, lectures, DPPs and sample papers. Quizzes go through /api/quizzes.
@contents_bp.route("", methods=["POST"])
@role_required("teacher")
def create_content():
    user = require_user()
    data = parse_body(ContentCreate)
    if data.content_type == "quiz":
        raise ValidationError("Quizzes must be created through /api/quizzes")
    get_or_404(Class, data.class_id, "Class")
    get_or_404(Subject, data.subject_id, "Subject")

    content = Content(author_id=user.id, **data.model_dump())
    with transaction():
        db.session.add(content)
    logger.info(f"{user.username} published {content.content_type} '{content.title}'")
    return jsonify(content.to_dict(with_relations=True)), 201


# Route: PATCH "/api/contents/<id>"
# Purpose: Author/admin edits. Status is a free-form draft/published/archived value.
@contents_bp.route("/<int:content_id>", methods=["PATCH"])
@login_required
def update_content(content_id):
    user = require_user()
    content = get_or_404(Content, content_id, "Content")
    ensure_can_edit(content, user)

    values = parse_body(ContentUpdate).model_dump(exclude_unset=True)
    for key in ("title", "class_id"):
        if key in values and values[key] is None:
            values.pop(key)
    if values.get("class_id") is not None:
        get_or_404(Class, values["class_id"], "Class")
    if values.get("subject_id") is not None:
        get_or_404(Subject, values["subject_id"], "Subject")

    with transaction():
        for key, value in values.items():
            setattr(content, key, value)
    logger.info(f"Content {content.id} updated by {user.username}: {sorted(values)}")
    return jsonify(content.to_dict(with_relations=True))


# Route: DELETE "/api/contents/<id>"
@contents_bp.route("/<int:content_id>", methods=["DELETE"])
@login_required
def remove_content(content_id):
    user = require_user()
    content = get_or_404(Content, content_id, "Content")
    ensure_can_edit(content, user)
    delete_content(content)
    return jsonify({"success": True})
