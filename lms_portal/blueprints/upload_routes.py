import logging
import os
import secrets
import time

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from werkzeug.utils import secure_filename

from lms_portal.utils.auth_utils import login_required, require_user
from lms_portal.utils.errors import ValidationError

logger = logging.getLogger(__name__)

uploads_bp = Blueprint("uploads", __name__)


def _stored_name(original):
    """Unique on-disk name that keeps the original extension."""
    ext = os.path.splitext(secure_filename(original))[1].lower()
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


# Route: POST "/api/upload"
# Used by: content form (fileUrl), student document form (documentUrl)
# Purpose: Save one multipart file under UPLOAD_FOLDER and return its public URL.
@uploads_bp.route("/api/upload", methods=["POST"])
@login_required
def upload_file():
    user = require_user()
    uploaded = request.files.get("file")
    if uploaded is None or not uploaded.filename:
        raise ValidationError("No file uploaded")

    allowed = current_app.config["ALLOWED_UPLOAD_TYPES"]
    if uploaded.mimetype not in allowed:
        raise ValidationError(
            "Invalid file type. Allowed types: images, documents, videos, and audio files."
        )

    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    filename = _stored_name(uploaded.filename)
    path = os.path.join(folder, filename)
    uploaded.save(path)
    size = os.path.getsize(path)

    logger.info(
        f"📎 {user.username} uploaded '{uploaded.filename}' as {filename} "
        f"({size} bytes, {uploaded.mimetype})"
    )
    return jsonify(
        {
            "success": True,
            "fileUrl": f"/uploads/{filename}",
            "fileName": uploaded.filename,
            "fileType": uploaded.mimetype,
            "fileSize": size,
            "message": "File uploaded successfully",
        }
    )


@uploads_bp.route("/uploads/<path:filename>", methods=["GET"])
@login_required
def uploaded_file(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)
