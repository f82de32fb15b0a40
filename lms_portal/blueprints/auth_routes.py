import logging

from flask import Blueprint, jsonify
from flask_wtf.csrf import generate_csrf

from lms_portal.models import User
from lms_portal.schemas import LoginRequest, UserUpdate, user_create_adapter
from lms_portal.utils.auth_utils import (
    admin_required,
    current_user,
    end_session,
    log_admin_action,
    login_required,
    require_user,
    start_session,
)
from lms_portal.utils.errors import AuthError
from lms_portal.utils.user_service import apply_user_update, create_user
from lms_portal.utils.validation import parse_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


# Route: GET "/api/csrf-token"
# Used by: ApiClient before its first mutation
# Purpose: Hand out the token expected in the X-CSRFToken header.
@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrfToken": generate_csrf()})


# Route: POST "/api/login"
# Used by: /auth page, ApiClient.login
# Purpose: Verify credentials and bind the user to the session cookie.
@auth_bp.route("/login", methods=["POST"])
def login():
    credentials = parse_body(LoginRequest)
    logger.info(f"Login attempt for username: {credentials.username}")

    user = User.query.filter_by(username=credentials.username).first()
    if user is None or not user.check_password(credentials.password):
        logger.warning(f"Login failed for username: {credentials.username}")
        raise AuthError("Invalid username or password")

    start_session(user)
    logger.info(f"User {user.username} logged in as {user.role}")
    return jsonify(user.to_dict()), 200


# Route: POST "/api/logout"
# Used by: every dashboard's sign-out action
@auth_bp.route("/logout", methods=["POST"])
def logout():
    user = current_user()
    end_session()
    if user is not None:
        logger.info(f"User {user.username} logged out")
    return jsonify({"success": True}), 200


# Route: POST "/api/register" (also mounted as POST "/api/users")
# Used by: /admin/users/new form
# Purpose: Admin-only account creation; the role selects the field set.
@auth_bp.route("/register", methods=["POST"])
@admin_required
def register():
    data = parse_body(user_create_adapter)
    user = create_user(data)
    log_admin_action("create", "user", user.id, f"role={user.role}")
    return jsonify(user.to_dict()), 201


# Route: GET "/api/user"
# Used by: route guard and every page on load
@auth_bp.route("/user", methods=["GET"])
def get_current_user():
    return jsonify(require_user().to_dict())


# Route: PATCH "/api/user"
# Used by: profile edit pages
# Purpose: Self-service profile edits; role, password and username stay as they are.
@auth_bp.route("/user", methods=["PATCH"])
@login_required
def update_current_user():
    user = require_user()
    update = parse_body(UserUpdate)
    apply_user_update(user, update, allow_privileged=False)
    return jsonify(user.to_dict())
