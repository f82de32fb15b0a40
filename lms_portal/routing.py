"""Page table and access guard for the single-page front end.

Every browser path is resolved here before the SPA shell is served, so a
protected page is never rendered for the wrong session.
"""

from collections import namedtuple

from werkzeug.exceptions import NotFound
from werkzeug.routing import Map, Rule

PUBLIC = "public"
ANY_ROLE = "any"
AUTH_PATH = "/auth"

ROLE_HOMES = {
    "admin": "/admin",
    "teacher": "/teacher",
    "student": "/student",
}

# (path, page, required role)
PAGE_ROUTES = [
    ("/auth", "auth", PUBLIC),
    # Admin
    ("/", "admin-dashboard", "admin"),
    ("/admin", "admin-dashboard", "admin"),
    ("/admin/users", "admin-users", "admin"),
    ("/admin/users/new", "admin-user-new", "admin"),
    ("/admin/classes", "admin-classes", "admin"),
    ("/admin/subjects", "admin-subjects", "admin"),
    ("/admin/teachers", "admin-teachers", "admin"),
    ("/admin/students", "admin-students", "admin"),
    ("/admin/content", "admin-content", "admin"),
    ("/admin/teachers/<int:id>", "admin-teacher-detail", "admin"),
    ("/admin/students/<int:id>", "admin-student-detail", "admin"),
    ("/admin/profile", "admin-profile", "admin"),
    ("/admin/quizzes", "admin-quizzes", "admin"),
    ("/admin/class-teachers", "admin-class-teachers", "admin"),
    # Teacher
    ("/teacher", "teacher-dashboard", "teacher"),
    ("/quiz/create", "quiz-create", "teacher"),
    ("/teacher/profile", "teacher-profile", "teacher"),
    ("/teacher/profile/edit", "teacher-profile-edit", "teacher"),
    ("/teacher/profile/add-qualification", "teacher-add-qualification", "teacher"),
    ("/teacher/profile/add-subject", "teacher-add-subject", "teacher"),
    ("/teacher/content", "teacher-content", "teacher"),
    ("/teacher/classes", "teacher-classes", "teacher"),
    ("/teacher/performance", "teacher-performance", "teacher"),
    ("/teacher/attendance", "teacher-attendance", "teacher"),
    ("/teacher/assignments", "teacher-assignments", "teacher"),
    # Student
    ("/student", "student-dashboard", "student"),
    ("/quiz/<int:id>", "quiz-take", "student"),
    ("/quiz", "quiz-list", "student"),
    ("/quiz-attempts", "quiz-attempts", "student"),
    ("/student/profile", "student-profile", "student"),
    ("/student/profile/edit", "student-profile-edit", "student"),
    ("/student/content", "student-content", "student"),
    ("/student/performance", "student-performance", "student"),
    # Shared editors
    ("/quiz/edit/<int:id>", "quiz-edit", ANY_ROLE),
    ("/quiz/view/<int:id>", "quiz-view", ANY_ROLE),
    ("/content/edit/<int:id>", "content-edit", ANY_ROLE),
]

PAGE_ROLES = {page: role for _, page, role in PAGE_ROUTES}

page_map = Map(
    [Rule(path, endpoint=page) for path, page, _ in PAGE_ROUTES],
    strict_slashes=False,
)

PageDecision = namedtuple("PageDecision", ["status", "page", "params", "redirect_to"])


def home_for(role):
    return ROLE_HOMES.get(role, AUTH_PATH)


def resolve_page(path, role=None):
    """Decide what a visitor with ``role`` (None when signed out) gets at ``path``."""
    if role not in ROLE_HOMES:
        role = None

    adapter = page_map.bind("localhost")
    try:
        page, params = adapter.match(path, method="GET")
    except NotFound:
        return PageDecision(404, "not-found", {}, None)

    required = PAGE_ROLES[page]
    if required == PUBLIC:
        if role is not None:
            return PageDecision(302, None, {}, home_for(role))
        return PageDecision(200, page, params, None)

    if role is None:
        return PageDecision(302, None, {}, AUTH_PATH)
    if required != ANY_ROLE and required != role:
        return PageDecision(302, None, {}, home_for(role))
    return PageDecision(200, page, params, None)
