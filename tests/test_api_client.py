import io

import pytest

from lms_portal.client import ApiClient, FormValidationError, HttpError, InlineExecutor, NetworkError
from lms_portal.schemas import ClassCreate


@pytest.fixture
def api(flask_transport, make_user):
    make_user("admin", username="root")
    client = ApiClient(flask_transport, executor=InlineExecutor())
    client.login("root", "secret1")
    return client


def test_login_seeds_current_user(api, flask_transport):
    assert api.current_user()["username"] == "root"
    assert flask_transport.gets("/api/user") == []


def test_bad_login_shows_friendly_message(flask_transport, make_user):
    make_user("teacher", username="t1")
    client = ApiClient(flask_transport, executor=InlineExecutor())
    with pytest.raises(HttpError) as info:
        client.login("t1", "wrong-password")
    assert info.value.status == 401
    assert info.value.user_message == "Invalid username or password"


def test_create_user_invalidates_every_users_key(api, flask_transport):
    assert api.users(role="teacher") == []
    assert len(api.users()) == 1

    api.create_user(
        {
            "role": "teacher",
            "username": "t1",
            "email": "t1@x.io",
            "password": "secret1",
            "confirmPassword": "secret1",
            "name": "T One",
        }
    )
    assert api.cache.is_stale("/api/users?role=teacher")
    assert api.cache.is_stale("/api/users")

    # Stale value first, refreshed value on the next read
    assert api.users(role="teacher") == []
    assert [u["username"] for u in api.users(role="teacher")] == ["t1"]
    assert len(flask_transport.gets("/api/users?role=teacher")) == 2


def test_assign_teacher_refreshes_mounted_views(api, flask_transport, make_user):
    teacher_id = make_user("teacher")
    class_id = api.create_class(ClassCreate(name="Math 101", grade=5))["id"]

    pairs_view, classes_view = [], []
    api.class_teachers()
    api.classes()
    api.cache.subscribe("/api/class-teachers", pairs_view.append)
    api.cache.subscribe("/api/classes", classes_view.append)

    api.assign_class_teacher(class_id, teacher_id)
    assert [(row["classId"], row["teacherId"]) for row in pairs_view[-1]] == [(class_id, teacher_id)]
    assert classes_view[-1][0]["classTeacher"]["id"] == teacher_id

    post_index = flask_transport.calls.index(("POST", f"/api/classes/{class_id}/assign-teacher"))
    refetch_index = len(flask_transport.calls) - 1 - flask_transport.calls[::-1].index(("GET", "/api/class-teachers"))
    assert refetch_index > post_index


def test_failed_mutation_leaves_cache_alone(api, make_user):
    make_user("teacher", username="taken", email="taken@school.org")
    api.users()
    with pytest.raises(HttpError) as info:
        api.create_user(
            {
                "role": "teacher",
                "username": "taken",
                "email": "new@school.org",
                "password": "secret1",
                "name": "Dup",
            }
        )
    assert info.value.status == 409
    assert "already exist" in info.value.user_message
    assert not api.cache.is_stale("/api/users")


def test_invalid_form_never_reaches_server(api, flask_transport):
    before = len(flask_transport.calls)
    with pytest.raises(FormValidationError) as info:
        api.create_user(
            {
                "role": "student",
                "username": "kid",
                "email": "not-an-email",
                "password": "secret1",
                "confirmPassword": "secret2",
                "name": "Kid",
            }
        )
    assert set(info.value.errors) >= {"email", "grade", "confirmPassword"}
    assert len(flask_transport.calls) == before


def test_network_failure_is_reported(api, flask_transport):
    flask_transport.fail_next = NetworkError("Could not reach the server. Check your connection and try again.")
    with pytest.raises(NetworkError):
        api.subjects()
    assert api.cache.peek("/api/subjects") is None


def test_server_error_hides_internals(api):
    with pytest.raises(HttpError) as info:
        api.delete_class(12345)
    assert info.value.status == 404
    assert info.value.user_message.startswith("Failed to delete class")
    assert info.value.kind == "NotFoundError"


def test_logout_clears_cache(api):
    api.subjects()
    assert api.cache.keys()
    api.logout()
    assert api.cache.keys() == []
    assert api.current_user() is None


def test_upload_then_attach_student_document(api, make_user, upload_dir):
    student_id = make_user("student", grade=6)
    uploaded = api.upload_file("tc.pdf", io.BytesIO(b"%PDF transfer"), "application/pdf")
    assert uploaded["fileUrl"].startswith("/uploads/")

    assert api.student_documents(student_id) == []
    document = api.add_student_document(
        student_id,
        {
            "documentType": "transfer_certificate",
            "documentUrl": uploaded["fileUrl"],
            "documentName": uploaded["fileName"],
        },
    )
    assert api.cache.is_stale(f"/api/students/{student_id}/documents")
    assert api.student_documents(student_id) == []
    assert [row["id"] for row in api.student_documents(student_id)] == [document["id"]]

    api.delete_student_document(student_id, document["id"])
    api.student_documents(student_id)
    assert api.student_documents(student_id) == []


def test_upload_rejection_is_reported(api, upload_dir):
    with pytest.raises(HttpError) as info:
        api.upload_file("setup.exe", io.BytesIO(b"MZ"), "application/x-msdownload")
    assert info.value.status == 400
    assert info.value.user_message == "Failed to upload file"


def test_new_quiz_refreshes_quiz_status_list(api, make_user, make_class, make_subject, new_quiz_payload):
    student_id = make_user("student", grade=5)
    assert api.quizzes_with_status(student_id) == []

    api.create_quiz(new_quiz_payload(make_class(), make_subject()))
    api.quizzes_with_status(student_id)
    rows = api.quizzes_with_status(student_id)
    assert [row["attemptStatus"] for row in rows] == ["not_attempted"]
