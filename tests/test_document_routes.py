import pytest

from lms_portal.models import db, StudentDocument, User


@pytest.fixture
def student(login_as):
    client, student_id = login_as("student", grade=5)
    return client, student_id


def _document(**overrides):
    payload = {
        "documentType": "birth_certificate",
        "documentUrl": "/uploads/1700000000000-42.pdf",
        "documentName": "Birth certificate.pdf",
    }
    payload.update(overrides)
    return payload


def test_student_manages_own_documents(student):
    client, student_id = student
    resp = client.post(f"/api/students/{student_id}/documents", json=_document())
    assert resp.status_code == 201
    document = resp.get_json()
    assert document["studentId"] == student_id
    assert document["documentType"] == "birth_certificate"

    client.post(
        f"/api/students/{student_id}/documents",
        json=_document(documentType="aadhar", documentName="Aadhar.pdf"),
    )
    listed = client.get(f"/api/students/{student_id}/documents").get_json()
    assert [row["documentName"] for row in listed] == ["Aadhar.pdf", "Birth certificate.pdf"]

    assert client.get(f"/api/student-documents/{document['id']}").status_code == 200
    assert client.delete(f"/api/student-documents/{document['id']}").status_code == 200
    assert client.get(f"/api/student-documents/{document['id']}").status_code == 404


def test_teachers_read_but_cannot_change(student, login_as):
    client, student_id = student
    document_id = client.post(f"/api/students/{student_id}/documents", json=_document()).get_json()["id"]
    teacher, _ = login_as("teacher")

    assert len(teacher.get(f"/api/students/{student_id}/documents").get_json()) == 1
    assert teacher.get(f"/api/student-documents/{document_id}").status_code == 200
    assert teacher.post(f"/api/students/{student_id}/documents", json=_document()).status_code == 403
    assert teacher.delete(f"/api/student-documents/{document_id}").status_code == 403


def test_other_students_are_kept_out(student, login_as):
    client, student_id = student
    document_id = client.post(f"/api/students/{student_id}/documents", json=_document()).get_json()["id"]
    other, _ = login_as("student", grade=5)

    assert other.get(f"/api/students/{student_id}/documents").status_code == 403
    assert other.get(f"/api/student-documents/{document_id}").status_code == 403
    assert other.post(f"/api/students/{student_id}/documents", json=_document()).status_code == 403
    assert other.delete(f"/api/student-documents/{document_id}").status_code == 403


def test_admin_adds_documents_for_students_only(login_as, make_user):
    admin, _ = login_as("admin")
    student_id = make_user("student", grade=3)
    teacher_id = make_user("teacher")

    assert admin.post(f"/api/students/{student_id}/documents", json=_document()).status_code == 201
    assert admin.post(f"/api/students/{teacher_id}/documents", json=_document()).status_code == 400
    assert admin.post("/api/students/999/documents", json=_document()).status_code == 404
    assert admin.get("/api/students/999/documents").status_code == 404


def test_document_payload_is_validated(student):
    client, student_id = student
    resp = client.post(f"/api/students/{student_id}/documents", json=_document(documentType="passport"))
    assert resp.status_code == 400
    resp = client.post(f"/api/students/{student_id}/documents", json=_document(documentUrl=""))
    assert resp.status_code == 400


def test_deleting_student_removes_documents(app, student, login_as):
    client, student_id = student
    client.post(f"/api/students/{student_id}/documents", json=_document())
    admin, _ = login_as("admin")

    assert admin.delete(f"/api/users/{student_id}").status_code == 200
    with app.app_context():
        assert db.session.get(User, student_id) is None
        assert StudentDocument.query.count() == 0
