import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("NODE_ENV") or "local").lower()


def _cors_origins():
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5000,http://localhost:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Config:
    ENVIRONMENT = _environment()
    SECRET_KEY = os.getenv("SESSION_SECRET") or os.getenv(
        "SECRET_KEY", "lms-portal-dev-secret"
    )

    # Session cookie
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = ENVIRONMENT == "production"
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)

    # CSRF tokens live as long as the session
    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ["X-CSRFToken", "X-CSRF-Token"]

    CORS_ORIGINS = _cors_origins()

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for teacher subjects
    MAX_TEACHER_SUBJECTS = 3

    # Uploaded content files and student documents
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads"))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024
    ALLOWED_UPLOAD_TYPES = frozenset(
        [
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/webp",
            "image/svg+xml",
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "application/vnd.ms-powerpoint",
            "application/vnd.openxmlformats-officedocument.presentationml.presentation",
            "text/plain",
            "video/mp4",
            "video/mpeg",
            "video/quicktime",
            "video/x-msvideo",
            "video/webm",
            "audio/mpeg",
            "audio/wav",
            "audio/ogg",
            "audio/webm",
        ]
    )


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    SESSION_COOKIE_SECURE = False
