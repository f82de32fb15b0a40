import logging
from functools import wraps

from flask import g, session, request

from lms_portal.models import db, User
from lms_portal.utils.errors import AuthError, ForbiddenError

logger = logging.getLogger(__name__)


def start_session(user):
    session.clear()
    session["user_id"] = user.id
    session["role"] = user.role
    session.permanent = True


def end_session():
    session.clear()
    g.pop("current_user", None)


def current_user():
    """User bound to the session cookie, or None."""
    if "current_user" in g:
        return g.current_user

    user = None
    user_id = session.get("user_id")
    if user_id is not None:
        user = db.session.get(User, user_id)
        if user is None:
            # Account deleted while the cookie was alive
            session.clear()
    g.current_user = user
    return user


def require_user():
    user = current_user()
    if user is None:
        raise AuthError("Not authenticated")
    return user


def login_required(f):
    """Reject the request with AuthError when no valid session exists."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        require_user()
        return f(*args, **kwargs)

    return decorated_function


def role_required(*roles):
    """Only let the given roles through. Admin always passes."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = require_user()
            if user.role != "admin" and user.role not in roles:
                logger.warning(
                    f"User {user.id} ({user.role}) denied {request.method} {request.path}"
                )
                raise ForbiddenError("Forbidden")
            return f(*args, **kwargs)

        return decorated_function

    return decorator


admin_required = role_required("admin")


def require_self_or_admin(user_id, message="You can only access your own records"):
    user = require_user()
    if user.role != "admin" and user.id != user_id:
        raise ForbiddenError(message)
    return user


def log_admin_action(action, resource_type, resource_id=None, details=None):
    """Write an audit line for a change made by the signed-in user."""
    actor = current_user()
    actor_name = actor.username if actor else "anonymous"
    ip_address = request.remote_addr if request else None
    logger.info(
        f"Audit: {action} {resource_type}"
        f"{f' #{resource_id}' if resource_id is not None else ''}"
        f" by {actor_name} from {ip_address}"
        f"{f' ({details})' if details else ''}"
    )
