#!/usr/bin/env python3
"""
Schema migration for existing LMS Portal databases.

Brings an older database up to the current models without touching data
that is already correct. Every step checks the live schema first, so the
script can be run any number of times.

Usage:
    python -m lms_portal.scripts.migrate_schema

This script will:
1. Create any tables that do not exist yet
2. Add users.teacher_id and users.mobile_number (nullable)
3. Add contents.subject_id (nullable) and contents.status (default 'published')
4. Backfill contents.subject_id from the first subject linked to each class

Steps 2-4 run in one transaction and are rolled back together on failure.

IMPORTANT: Backup your database before running this script!
"""

import sys
import logging

from lms_portal.models import db

logger = logging.getLogger(__name__)

# (table, column, DDL type)
COLUMN_MIGRATIONS = [
    ("users", "teacher_id", "VARCHAR(50)"),
    ("users", "mobile_number", "VARCHAR(20)"),
    ("contents", "subject_id", "INTEGER REFERENCES subjects(id)"),
    ("contents", "status", "VARCHAR(20) DEFAULT 'published'"),
]


def check_current_schema():
    """Log which tracked columns exist. Returns {table: [columns]}."""
    inspector = db.inspect(db.engine)
    existing_tables = inspector.get_table_names()
    logger.info(f"Existing tables: {', '.join(existing_tables) or '(none)'}")

    schema = {}
    for table in sorted({table for table, _, _ in COLUMN_MIGRATIONS}):
        if table not in existing_tables:
            logger.info(f"❌ {table} table not found")
            continue
        columns = [col["name"] for col in inspector.get_columns(table)]
        schema[table] = columns
        for tracked_table, column, _ in COLUMN_MIGRATIONS:
            if tracked_table != table:
                continue
            mark = "✅" if column in columns else "❌"
            logger.info(f"{mark} {table}.{column}")
    return schema


def add_missing_columns(connection):
    inspector = db.inspect(connection)
    tables = set(inspector.get_table_names())
    applied = []
    for table, column, ddl in COLUMN_MIGRATIONS:
        if table not in tables:
            continue
        columns = {col["name"] for col in inspector.get_columns(table)}
        if column in columns:
            continue
        logger.info(f"Adding {table}.{column}")
        connection.execute(db.text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
        applied.append(f"{table}.{column}")
    return applied


def backfill_content_subjects(connection):
    """Point subject-less content at the first subject of its class."""
    tables = set(db.inspect(connection).get_table_names())
    if not {"contents", "class_subjects"} <= tables:
        return 0

    rows = connection.execute(
        db.text("SELECT id, class_id FROM contents WHERE subject_id IS NULL")
    ).fetchall()
    if not rows:
        return 0

    first_subject = {}
    links = connection.execute(
        db.text("SELECT class_id, subject_id FROM class_subjects ORDER BY id")
    ).fetchall()
    for class_id, subject_id in links:
        first_subject.setdefault(class_id, subject_id)

    updated = 0
    for content_id, class_id in rows:
        subject_id = first_subject.get(class_id)
        if subject_id is None:
            logger.warning(f"Content {content_id}: class {class_id} has no subjects")
            continue
        connection.execute(
            db.text("UPDATE contents SET subject_id = :subject_id WHERE id = :id"),
            {"subject_id": subject_id, "id": content_id},
        )
        updated += 1
    logger.info(f"Backfilled subject_id on {updated} of {len(rows)} content rows")
    return updated


def migrate():
    """Run every step. Must be called inside an app context."""
    db.create_all()

    # engine.begin() commits on success and rolls back on any exception
    with db.engine.begin() as connection:
        applied = add_missing_columns(connection)
        backfilled = backfill_content_subjects(connection)

    if applied or backfilled:
        logger.info(f"✅ Migration applied: columns={applied}, backfilled={backfilled}")
    else:
        logger.info("✅ Schema already up to date - nothing to do")
    return {"columns": applied, "backfilled": backfilled}


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    from lms_portal.app import create_app

    app = create_app()
    logger.info("⚠️  Please make sure your database is backed up before proceeding!")
    try:
        with app.app_context():
            check_current_schema()
            migrate()
    except Exception as e:
        logger.error(f"❌ Migration failed and was rolled back: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
