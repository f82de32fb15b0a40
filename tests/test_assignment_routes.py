from datetime import date

import pytest

from lms_portal.models import db, User


@pytest.fixture
def homeroom(login_as, make_user, make_class, enroll):
    """A class with an assigned class teacher and two enrolled students."""
    admin, _ = login_as("admin")
    teacher, teacher_id = login_as("teacher")
    class_id = make_class()
    admin.post(f"/api/classes/{class_id}/assign-teacher", json={"teacherId": teacher_id})
    students = [make_user("student", grade=5) for _ in range(2)]
    for student_id in students:
        enroll(student_id, class_id)
    return {"teacher": teacher, "class_id": class_id, "students": students}


def test_class_teacher_records_assignment(homeroom):
    teacher, class_id = homeroom["teacher"], homeroom["class_id"]
    student_id = homeroom["students"][0]
    resp = teacher.post(
        "/api/assignments",
        json={
            "classId": class_id,
            "studentId": student_id,
            "assignmentTitle": "Essay",
            "dueDate": "2026-12-01",
        },
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["isCompleted"] is False
    assert body["dueDate"] == "2026-12-01T00:00:00"

    resp = teacher.patch(
        f"/api/assignments/{body['id']}",
        json={"isCompleted": True, "remarks": "Well argued"},
    )
    assert resp.get_json()["isCompleted"] is True

    rows = teacher.get(f"/api/classes/{class_id}/assignments").get_json()
    assert [row["studentId"] for row in rows] == [student_id]

    assert teacher.delete(f"/api/assignments/{body['id']}").status_code == 200
    assert teacher.get(f"/api/classes/{class_id}/assignments").get_json() == []


def test_assignment_requires_enrolled_student(homeroom, make_user):
    outsider = make_user("student", grade=5)
    resp = homeroom["teacher"].post(
        "/api/assignments",
        json={"classId": homeroom["class_id"], "studentId": outsider, "assignmentTitle": "Essay"},
    )
    assert resp.status_code == 400


def test_other_teachers_cannot_manage_class(homeroom, login_as):
    stranger, _ = login_as("teacher")
    resp = stranger.post(
        "/api/assignments",
        json={
            "classId": homeroom["class_id"],
            "studentId": homeroom["students"][0],
            "assignmentTitle": "Essay",
        },
    )
    assert resp.status_code == 403
    assert stranger.get(f"/api/classes/{homeroom['class_id']}/attendance").status_code == 403


def test_student_sees_own_assignments_only(homeroom, app):
    student_id, other_id = homeroom["students"]
    homeroom["teacher"].post(
        "/api/assignments",
        json={"classId": homeroom["class_id"], "studentId": student_id, "assignmentTitle": "Poem"},
    )
    with app.app_context():
        username = db.session.get(User, student_id).username
    client = app.test_client()
    client.post("/api/login", json={"username": username, "password": "secret1"})

    mine = client.get(f"/api/students/{student_id}/assignments").get_json()
    assert [row["assignmentTitle"] for row in mine] == ["Poem"]
    assert client.get(f"/api/students/{other_id}/assignments").status_code == 403


def test_attendance_resubmission_overwrites(homeroom):
    teacher, class_id = homeroom["teacher"], homeroom["class_id"]
    first, second = homeroom["students"]
    payload = {
        "classId": class_id,
        "date": "2026-10-01",
        "records": [
            {"studentId": first, "status": "present"},
            {"studentId": second, "status": "absent"},
        ],
    }
    assert teacher.post("/api/attendance", json=payload).status_code == 201

    payload["records"] = [{"studentId": second, "status": "late", "remarks": "Bus"}]
    assert teacher.post("/api/attendance", json=payload).status_code == 201

    rows = teacher.get(f"/api/classes/{class_id}/attendance?date=2026-10-01").get_json()
    assert {(row["studentId"], row["status"]) for row in rows} == {
        (first, "present"),
        (second, "late"),
    }
    assert teacher.get(f"/api/classes/{class_id}/attendance?date=2026-10-02").get_json() == []
    assert teacher.get(f"/api/classes/{class_id}/attendance?date=yesterday").status_code == 400


def test_attendance_validates_status_and_enrollment(homeroom, make_user):
    teacher, class_id = homeroom["teacher"], homeroom["class_id"]
    today = date.today().isoformat()
    bad_status = {
        "classId": class_id,
        "date": today,
        "records": [{"studentId": homeroom["students"][0], "status": "sick"}],
    }
    assert teacher.post("/api/attendance", json=bad_status).status_code == 400

    outsider = make_user("student", grade=5)
    not_enrolled = {
        "classId": class_id,
        "date": today,
        "records": [{"studentId": outsider, "status": "present"}],
    }
    assert teacher.post("/api/attendance", json=not_enrolled).status_code == 400
