import itertools

import pytest

from lms_portal.app import create_app
from lms_portal.config import TestingConfig
from lms_portal.models import db, User, Class, Subject, ClassEnrollment

PASSWORD = "secret1"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def upload_dir(app, tmp_path):
    folder = tmp_path / "uploads"
    app.config["UPLOAD_FOLDER"] = str(folder)
    return folder


@pytest.fixture
def make_user(app):
    """Insert a user straight into the database and return its id."""
    counter = itertools.count(1)

    def _make(role="student", **fields):
        n = next(counter)
        password = fields.pop("password", PASSWORD)
        username = fields.pop("username", f"{role}{n}")
        fields.setdefault("email", f"{username}@school.org")
        fields.setdefault("name", f"{role.title()} {n}")
        with app.app_context():
            user = User(username=username, role=role, **fields)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture
def login_as(app, make_user):
    """Return (client, user_id) for a freshly created, signed-in user."""

    def _login(role="admin", **fields):
        user_id = make_user(role, **fields)
        with app.app_context():
            username = db.session.get(User, user_id).username
        client = app.test_client()
        resp = client.post(
            "/api/login", json={"username": username, "password": PASSWORD}
        )
        assert resp.status_code == 200, resp.get_json()
        return client, user_id

    return _login


@pytest.fixture
def make_class(app):
    def _make(name="Math 101", grade=5, section="A"):
        with app.app_context():
            class_obj = Class(name=name, grade=grade, section=section)
            db.session.add(class_obj)
            db.session.commit()
            return class_obj.id

    return _make


@pytest.fixture
def make_subject(app):
    def _make(name="Mathematics"):
        with app.app_context():
            subject = Subject(name=name)
            db.session.add(subject)
            db.session.commit()
            return subject.id

    return _make


@pytest.fixture
def enroll(app):
    def _enroll(student_id, class_id):
        with app.app_context():
            db.session.add(ClassEnrollment(student_id=student_id, class_id=class_id))
            db.session.commit()

    return _enroll


class FlaskTransport:
    """Routes ApiClient traffic through a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []
        self.fail_next = None

    def request(self, method, path, json=None, headers=None, files=None):
        self.calls.append((method, path))
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error
        if files:
            # requests orders the tuple (name, stream, type); werkzeug wants (stream, name, type)
            data = {
                field: (stream, filename, content_type)
                for field, (filename, stream, content_type) in files.items()
            }
            resp = self.client.open(
                path, method=method, data=data, headers=headers,
                content_type="multipart/form-data",
            )
        else:
            resp = self.client.open(path, method=method, json=json, headers=headers)
        return resp.status_code, resp.get_json(silent=True)

    def gets(self, path):
        return [call for call in self.calls if call == ("GET", path)]


@pytest.fixture
def flask_transport(app):
    return FlaskTransport(app.test_client())


def quiz_payload(class_id, subject_id, **overrides):
    payload = {
        "title": "Fractions check",
        "classId": class_id,
        "subjectId": subject_id,
        "status": "published",
        "timeLimit": 20,
        "passingScore": 50,
        "questions": [
            {
                "text": "1/2 + 1/4 = ?",
                "points": 2,
                "options": [
                    {"text": "3/4", "isCorrect": True},
                    {"text": "2/6"},
                    {"text": "1/8"},
                    {"text": "1"},
                ],
            },
            {
                "text": "Which is larger?",
                "points": 1,
                "options": [
                    {"text": "2/3"},
                    {"text": "3/4", "isCorrect": True},
                    {"text": "1/2"},
                    {"text": "5/8"},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def new_quiz_payload():
    return quiz_payload
