from lms_portal.app import create_app
from lms_portal.config import TestingConfig
from lms_portal.models import db, User

PASSWORD = "secret1"


def test_login_returns_user_without_password(app, make_user):
    make_user("teacher", username="t1", name="T One")
    client = app.test_client()
    resp = client.post("/api/login", json={"username": "t1", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["username"] == "t1"
    assert body["role"] == "teacher"
    assert "password" not in body


def test_login_failure_does_not_say_which_field(app, make_user):
    make_user("student", username="s1")
    client = app.test_client()
    wrong_password = client.post("/api/login", json={"username": "s1", "password": "nope123"})
    unknown_user = client.post("/api/login", json={"username": "ghost", "password": PASSWORD})
    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401
    assert wrong_password.get_json()["message"] == unknown_user.get_json()["message"]
    assert wrong_password.get_json()["error"] == "AuthError"


def test_current_user_requires_session(client):
    resp = client.get("/api/user")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "AuthError"


def test_logout_destroys_session(login_as):
    client, user_id = login_as("student", grade=4)
    assert client.get("/api/user").get_json()["id"] == user_id
    assert client.post("/api/logout").status_code == 200
    assert client.get("/api/user").status_code == 401


def test_register_requires_admin(client, login_as):
    payload = {
        "username": "new1",
        "email": "new1@school.org",
        "password": "secret1",
        "name": "New One",
        "role": "teacher",
    }
    assert client.post("/api/register", json=payload).status_code == 401
    teacher_client, _ = login_as("teacher")
    resp = teacher_client.post("/api/register", json=payload)
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "ForbiddenError"


def test_register_duplicate_username_or_email_conflicts(app, login_as, make_user):
    make_user("teacher", username="taken", email="taken@school.org")
    admin, _ = login_as("admin")
    with app.app_context():
        before = User.query.count()

    same_username = admin.post(
        "/api/register",
        json={
            "username": "taken",
            "email": "other@school.org",
            "password": "secret1",
            "name": "Dup",
            "role": "teacher",
        },
    )
    same_email = admin.post(
        "/api/register",
        json={
            "username": "other",
            "email": "taken@school.org",
            "password": "secret1",
            "name": "Dup",
            "role": "teacher",
        },
    )
    assert same_username.status_code == 409
    assert same_email.status_code == 409
    assert same_email.get_json()["error"] == "ConflictError"
    with app.app_context():
        assert User.query.count() == before


def test_register_validates_password_and_role(login_as):
    admin, _ = login_as("admin")
    short = admin.post(
        "/api/register",
        json={
            "username": "x1",
            "email": "x1@school.org",
            "password": "12345",
            "name": "X",
            "role": "teacher",
        },
    )
    bad_role = admin.post(
        "/api/register",
        json={
            "username": "x2",
            "email": "x2@school.org",
            "password": "123456",
            "name": "X",
            "role": "janitor",
        },
    )
    assert short.status_code == 400
    assert short.get_json()["error"] == "ValidationError"
    assert any(d["field"].endswith("password") for d in short.get_json()["details"])
    assert bad_role.status_code == 400


def test_student_variant_requires_grade(login_as):
    admin, _ = login_as("admin")
    resp = admin.post(
        "/api/register",
        json={
            "username": "kid",
            "email": "kid@school.org",
            "password": "secret1",
            "name": "Kid",
            "role": "student",
        },
    )
    assert resp.status_code == 400
    assert any(d["field"].endswith("grade") for d in resp.get_json()["details"])


def test_register_drops_off_role_fields(app, login_as):
    admin, _ = login_as("admin")
    resp = admin.post(
        "/api/register",
        json={
            "username": "tq",
            "email": "tq@school.org",
            "password": "secret1",
            "name": "T Q",
            "role": "teacher",
            "experienceLevel": "2years+",
            "grade": 7,
            "section": "B",
        },
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["experienceLevel"] == "2years+"
    assert "grade" not in body
    with app.app_context():
        user = User.query.filter_by(username="tq").one()
        assert user.grade is None
        assert user.section is None


def test_profile_patch_cannot_change_role_or_password(app, login_as):
    client, user_id = login_as("student", grade=6)
    with app.app_context():
        old_hash = db.session.get(User, user_id).password

    resp = client.patch(
        "/api/user",
        json={"name": "Renamed", "role": "admin", "password": "hijack1", "bio": "hi"},
    )
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Renamed"
    with app.app_context():
        user = db.session.get(User, user_id)
        assert user.role == "student"
        assert user.password == old_hash
        assert user.bio == "hi"


class CsrfConfig(TestingConfig):
    WTF_CSRF_ENABLED = True


def test_writes_need_csrf_token_when_enabled():
    app = create_app(CsrfConfig)
    with app.app_context():
        db.create_all()
    try:
        client = app.test_client()
        blocked = client.post("/api/login", json={"username": "a", "password": "b"})
        assert blocked.status_code == 400
        assert blocked.get_json()["error"] == "ValidationError"

        token = client.get("/api/csrf-token").get_json()["csrfToken"]
        allowed = client.post(
            "/api/login",
            json={"username": "a", "password": "b"},
            headers={"X-CSRFToken": token},
        )
        assert allowed.status_code == 401
    finally:
        with app.app_context():
            db.drop_all()
