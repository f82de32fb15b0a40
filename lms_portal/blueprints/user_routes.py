import logging

from flask import Blueprint, jsonify, request

from lms_portal.models import User, QuizAttempt, Assignment, ROLES
from lms_portal.schemas import UserUpdate
from lms_portal.utils.auth_utils import (
    admin_required,
    log_admin_action,
    login_required,
    require_user,
)
from lms_portal.utils.errors import ForbiddenError, ValidationError, get_or_404
from lms_portal.utils.user_service import apply_user_update, delete_user, reset_password
from lms_portal.utils.validation import parse_body
from lms_portal.blueprints.auth_routes import register

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _user_details(user):
    data = user.to_dict()
    if user.role == "teacher":
        data["qualifications"] = [q.to_dict() for q in user.qualifications]
        data["subjects"] = [ts.to_dict() for ts in user.teacher_subjects]
    elif user.role == "student":
        data["classes"] = [e.class_obj.to_dict() for e in user.enrollments]
        data["completedQuizzes"] = QuizAttempt.query.filter(
            QuizAttempt.student_id == user.id, QuizAttempt.completed_at.isnot(None)
        ).count()
        data["totalAssignments"] = Assignment.query.filter_by(student_id=user.id).count()
    return data


# Route: GET "/api/users"
# Used by: /admin/users, /admin/teachers, /admin/students (filter with ?role=)
@users_bp.route("", methods=["GET"])
@admin_required
def list_users():
    role = request.args.get("role")
    query = User.query
    if role:
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")
        query = query.filter_by(role=role)
    users = query.order_by(User.name, User.id).all()
    return jsonify([user.to_dict() for user in users])


# Route: POST "/api/users"
# Purpose: Same admin-only creation path as POST /api/register.
users_bp.add_url_rule("", "create_user", register, methods=["POST"])


# Route: GET "/api/users/<id>"
# Used by: /admin/teachers/<id>, /admin/students/<id>, profile pages
@users_bp.route("/<int:user_id>", methods=["GET"])
@login_required
def get_user(user_id):
    viewer = require_user()
    user = get_or_404(User, user_id, "User")
    allowed = (
        viewer.role == "admin"
        or viewer.id == user.id
        or (viewer.role == "teacher" and user.role == "student")
    )
    if not allowed:
        raise ForbiddenError("You cannot view this user")
    return jsonify(_user_details(user))


# Route: PATCH "/api/users/<id>"
# Purpose: Admin edits of any account. Omitting password keeps the stored hash.
@users_bp.route("/<int:user_id>", methods=["PATCH"])
@admin_required
def update_user(user_id):
    user = get_or_404(User, user_id, "User")
    update = parse_body(UserUpdate)
    apply_user_update(user, update, allow_privileged=True)
    log_admin_action("update", "user", user.id)
    return jsonify(user.to_dict())


# Route: DELETE "/api/users/<id>"
@users_bp.route("/<int:user_id>", methods=["DELETE"])
@admin_required
def remove_user(user_id):
    user = get_or_404(User, user_id, "User")
    delete_user(user, require_user())
    log_admin_action("delete", "user", user_id)
    return jsonify({"success": True})


# Route: POST "/api/users/<id>/reset-password"
# Purpose: Issue a temporary password the admin passes on to the user.
@users_bp.route("/<int:user_id>/reset-password", methods=["POST"])
@admin_required
def reset_user_password(user_id):
    user = get_or_404(User, user_id, "User")
    temporary = reset_password(user)
    log_admin_action("reset-password", "user", user.id)
    return jsonify({"success": True, "temporaryPassword": temporary})

