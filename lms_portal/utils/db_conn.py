import os
import time
import logging
from contextlib import contextmanager
from typing import Optional

from flask import Flask

from lms_portal.models import db

# Configure logging for database operations
logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URI = "sqlite:///lms_portal.db"


def normalize_database_url(url: str) -> str:
    """Rewrite driverless URL schemes to the drivers this project ships with."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://") :]
    if url.startswith("mysql://"):
        return "mysql+pymysql://" + url[len("mysql://") :]
    return url


def resolve_database_uri() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return normalize_database_url(database_url)

    db_host = os.getenv("DB_HOST")
    if db_host:
        db_port = os.getenv("DB_PORT", "3306")
        db_user = os.getenv("DB_USER", "root")
        db_password = os.getenv("DB_PASSWORD", "")
        db_name = os.getenv("DB_NAME", "lms_portal")
        return f"mysql+pymysql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"

    return SQLITE_FALLBACK_URI


def _mask(uri: str) -> str:
    if "@" not in uri or "://" not in uri:
        return uri
    scheme, rest = uri.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


class DatabaseConnection:
    """Handles database connection, initialization, and management."""

    def __init__(self, app: Optional[Flask] = None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """Initialize database connection with Flask app."""
        self.app = app

        db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or resolve_database_uri()
        app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
        app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)

        if not db_uri.startswith("sqlite"):
            # Connection pool settings to handle connection timeouts
            app.config.setdefault(
                "SQLALCHEMY_ENGINE_OPTIONS",
                {
                    "pool_size": 10,
                    "max_overflow": 20,
                    "pool_recycle": 3600,
                    "pool_pre_ping": True,
                    "pool_timeout": 30,
                },
            )
        logger.info(f"Database URI configured: {_mask(db_uri)}")

        if "sqlalchemy" not in app.extensions:
            db.init_app(app)
            logger.info("Database initialized with Flask app")
        else:
            logger.info(
                "Database already initialized with Flask app - skipping re-initialization"
            )

    def test_connection(self, max_retries: int = 3) -> bool:
        """Test database connection with retry mechanism."""
        if self.app is None:
            logger.error("Database connection not initialized with Flask app")
            return False

        retry_delay = 1
        for attempt in range(max_retries):
            try:
                logger.info(
                    f"Testing database connection... (attempt {attempt + 1}/{max_retries})"
                )
                with self.app.app_context():
                    with db.engine.connect() as connection:
                        connection.execute(db.text("SELECT 1"))
                logger.info("✅ Database connection successful!")
                return True
            except Exception as e:
                logger.warning(
                    f"❌ Database connection failed (attempt {attempt + 1}): {str(e)}"
                )
                if attempt < max_retries - 1:
                    time.sleep(retry_delay)
                    retry_delay *= 2
        logger.error(f"❌ Database connection failed after {max_retries} attempts")
        return False

    def create_tables(self) -> bool:
        """Create all database tables."""
        if self.app is None:
            logger.error("Database connection not initialized with Flask app")
            return False
        try:
            logger.info("Creating database tables...")
            with self.app.app_context():
                db.create_all()
            logger.info("✅ Database tables created successfully!")
            return True
        except Exception as e:
            logger.error(f"❌ Database table creation failed: {str(e)}")
            return False

    def init_database(self) -> bool:
        """Initialize database connection and create tables if they don't exist."""
        logger.info("Starting database initialization...")
        if not self.test_connection():
            return False
        return self.create_tables()


db_connection = DatabaseConnection()


@contextmanager
def transaction():
    """Commit everything written inside the block, or nothing."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
