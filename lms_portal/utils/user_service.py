import logging
import secrets

from sqlalchemy import or_

from lms_portal.models import (
    db,
    User,
    Content,
    ClassTeacher,
    ClassSubject,
    QuizAttempt,
    Attendance,
    Assignment,
)
from lms_portal.schemas import fields_for_role
from lms_portal.utils.db_conn import transaction
from lms_portal.utils.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

# Columns that may never be cleared through an update
REQUIRED_COLUMNS = ("username", "email", "name")
PRIVILEGED_FIELDS = ("role", "password", "username")


def ensure_unique_identity(username=None, email=None, exclude_id=None):
    filters = []
    if username is not None:
        filters.append(User.username == username)
    if email is not None:
        filters.append(User.email == email)
    if not filters:
        return
    query = User.query.filter(or_(*filters))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Username or email already exists")


def create_user(data):
    """Persist a validated create variant. The variant decides which fields exist."""
    ensure_unique_identity(data.username, data.email)

    values = data.model_dump(exclude={"password", "role"})
    user = User(role=data.role, **values)
    user.set_password(data.password)

    with transaction():
        db.session.add(user)

    logger.info(f"Created {user.role} account {user.username} (id={user.id})")
    return user


def apply_user_update(user, update, allow_privileged=False):
    """Apply a UserUpdate. Fields foreign to the resulting role are dropped.

    An absent or empty password leaves the stored hash untouched.
    """
    values = update.model_dump(exclude_unset=True)
    if not allow_privileged:
        for key in PRIVILEGED_FIELDS:
            values.pop(key, None)

    role = values.pop("role", None) or user.role
    password = values.pop("password", None)
    for key in REQUIRED_COLUMNS:
        if key in values and values[key] is None:
            values.pop(key)

    allowed = fields_for_role(role)
    ignored = sorted(set(values) - allowed)
    if ignored:
        logger.info(f"Ignoring off-role fields for {role} {user.id}: {ignored}")
    values = {key: value for key, value in values.items() if key in allowed}

    ensure_unique_identity(
        values.get("username") if values.get("username") != user.username else None,
        values.get("email") if values.get("email") != user.email else None,
        exclude_id=user.id,
    )

    with transaction():
        user.role = role
        for key, value in values.items():
            setattr(user, key, value)
        if password:
            user.set_password(password)

    logger.info(f"Updated user {user.id}: {sorted(values)}{' +password' if password else ''}")
    return user


def delete_user(user, actor):
    if user.id == actor.id:
        raise ValidationError("You cannot delete your own account")
    if Content.query.filter_by(author_id=user.id).first() is not None:
        raise ConflictError("User has authored content; delete or reassign it first")

    with transaction():
        ClassTeacher.query.filter_by(teacher_id=user.id).delete()
        ClassSubject.query.filter_by(teacher_id=user.id).update({"teacher_id": None})
        QuizAttempt.query.filter_by(student_id=user.id).delete()
        Attendance.query.filter_by(student_id=user.id).delete()
        Attendance.query.filter_by(recorded_by=user.id).update({"recorded_by": None})
        Assignment.query.filter(
            or_(Assignment.student_id == user.id, Assignment.teacher_id == user.id)
        ).delete(synchronize_session=False)
        db.session.delete(user)

    logger.info(f"Deleted user {user.id} ({user.username})")


def reset_password(user):
    """Give the user a fresh temporary password and return it in clear once."""
    temporary = secrets.token_urlsafe(9)
    with transaction():
        user.set_password(temporary)
    logger.info(f"Password reset for user {user.id}")
    return temporary
