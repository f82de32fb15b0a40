import os
import sys
import logging

from flask import Flask
from flask_cors import CORS
from flask_wtf.csrf import CSRFProtect

from lms_portal.config import Config
from lms_portal.utils.db_conn import db_connection
from lms_portal.utils.errors import register_error_handlers
from lms_portal.blueprints.auth_routes import auth_bp
from lms_portal.blueprints.user_routes import users_bp
from lms_portal.blueprints.class_routes import classes_bp
from lms_portal.blueprints.subject_routes import subjects_bp
from lms_portal.blueprints.content_routes import contents_bp
from lms_portal.blueprints.quiz_routes import quizzes_bp
from lms_portal.blueprints.teacher_routes import teachers_bp
from lms_portal.blueprints.assignment_routes import assignments_bp
from lms_portal.blueprints.document_routes import documents_bp
from lms_portal.blueprints.upload_routes import uploads_bp
from lms_portal.blueprints.dashboard_routes import dashboard_bp
from lms_portal.blueprints.page_routes import pages_bp

# Configure logging for the app
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

csrf = CSRFProtect()


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db_connection.init_app(app)
    csrf.init_app(app)
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=True,
    )
    register_error_handlers(app)

    # Register blueprints; pages last so its catch-all never shadows the API
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(classes_bp)
    app.register_blueprint(subjects_bp)
    app.register_blueprint(contents_bp)
    app.register_blueprint(quizzes_bp)
    app.register_blueprint(teachers_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(uploads_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(pages_bp)

    logger.info(f"App created (environment={app.config.get('ENVIRONMENT')})")
    return app


def check_database_connectivity(app):
    """Return (ok, message) after creating any missing tables."""
    if not db_connection.init_database():
        return False, "Database unreachable or tables could not be created"
    return True, "Connected and tables are in place"


def run_startup_checks_or_exit(app):
    """Run preflight checks and exit the process on failure."""
    logger.info("🧪 Running startup checks…")
    ok_db, message = check_database_connectivity(app)
    if ok_db:
        logger.info(f"✅ Database connectivity OK: {message}")
    else:
        logger.error(f"❌ Database connectivity failed: {message}")
        sys.exit(1)
    logger.info("🚀 All startup checks passed")


def main():
    app = create_app()
    logger.info("Application startup initiated")
    run_startup_checks_or_exit(app)

    debug = app.config.get("ENVIRONMENT") != "production"
    port = int(os.getenv("PORT", "5000"))
    app.run(host=os.getenv("HOST", "127.0.0.1"), port=port, debug=debug)


if __name__ == "__main__":
    main()
