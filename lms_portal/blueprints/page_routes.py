import logging

from flask import Blueprint, abort, redirect, render_template

from lms_portal.routing import resolve_page
from lms_portal.utils.auth_utils import current_user

logger = logging.getLogger(__name__)

pages_bp = Blueprint("pages", __name__)


# Route: GET "/" and every non-API path
# Used by: browser navigation
# Purpose: Run the role guard, then serve the SPA shell for the resolved page.
@pages_bp.route("/", defaults={"path": ""})
@pages_bp.route("/<path:path>")
def spa(path):
    full_path = "/" + path
    if full_path == "/api" or full_path.startswith("/api/"):
        abort(404)

    user = current_user()
    role = user.role if user else None
    decision = resolve_page(full_path, role)

    if decision.redirect_to:
        logger.info(f"Guard: {full_path} -> {decision.redirect_to} (role={role})")
        return redirect(decision.redirect_to)

    return (
        render_template(
            "app.html",
            page=decision.page,
            params=decision.params,
            user=user.to_dict() if user else None,
        ),
        decision.status,
    )
