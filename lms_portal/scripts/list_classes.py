"""List classes with their class teacher and enrollment count.

Run from the repo root:

    python -m lms_portal.scripts.list_classes

Uses the same database configuration as the app (DATABASE_URL / DB_* env vars).
"""

import sys
import logging

from lms_portal.models import db, Class, ClassEnrollment

logger = logging.getLogger(__name__)


def class_rows(limit=200):
    counts = dict(
        db.session.query(ClassEnrollment.class_id, db.func.count(ClassEnrollment.id))
        .group_by(ClassEnrollment.class_id)
        .all()
    )
    rows = []
    for class_obj in Class.query.order_by(Class.grade, Class.section, Class.id).limit(limit):
        owner = class_obj.class_teacher
        rows.append(
            {
                "id": class_obj.id,
                "name": class_obj.name,
                "grade": class_obj.grade,
                "section": class_obj.section or "-",
                "class_teacher": owner.teacher.name if owner else "-",
                "students": counts.get(class_obj.id, 0),
            }
        )
    return rows


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    from lms_portal.app import create_app

    app = create_app()
    try:
        with app.app_context():
            rows = class_rows()
    except Exception:
        logger.exception("Database query failed")
        sys.exit(2)

    if not rows:
        print("No classes found in the database (empty result set).")
        return
    print(f"Found {len(rows)} classes (showing up to 200):\n")
    for row in rows:
        print(
            f"{row['id']:>4}  {row['name']:<24} grade {row['grade']:>2}{row['section']:<3}"
            f"  teacher: {row['class_teacher']:<20} students: {row['students']}"
        )
    print("\nDone.")


if __name__ == "__main__":
    main()
