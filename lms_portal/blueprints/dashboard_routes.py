import logging

from flask import Blueprint, jsonify

from lms_portal.utils.auth_utils import require_user, role_required
from lms_portal.utils.dashboard_utils import (
    admin_dashboard,
    student_dashboard,
    teacher_dashboard,
)
from lms_portal.blueprints.class_routes import teacher_class_ids

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


# Route: GET "/api/dashboard/admin"
# Used by: /admin
@dashboard_bp.route("/admin", methods=["GET"])
@role_required("admin")
def admin():
    return jsonify(admin_dashboard())


# Route: GET "/api/dashboard/teacher"
# Used by: /teacher
# Purpose: Counts and lists scoped to the signed-in teacher.
@dashboard_bp.route("/teacher", methods=["GET"])
@role_required("teacher")
def teacher():
    user = require_user()
    return jsonify(teacher_dashboard(user, teacher_class_ids(user.id)))


# Route: GET "/api/dashboard/student"
# Used by: /student
@dashboard_bp.route("/student", methods=["GET"])
@role_required("student")
def student():
    user = require_user()
    return jsonify(student_dashboard(user))
