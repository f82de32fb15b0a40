import pytest

from lms_portal.models import db, Content, Question, Quiz, QuizAttempt
from lms_portal.utils import quiz_service


@pytest.fixture
def setting(make_class, make_subject):
    return make_class(), make_subject()


@pytest.fixture
def published_quiz(login_as, setting, new_quiz_payload):
    teacher, _ = login_as("teacher")
    quiz = teacher.post("/api/quizzes", json=new_quiz_payload(*setting)).get_json()
    return teacher, quiz


def _answers(quiz, picks):
    """Map question order -> option id into the questionId-keyed answer shape."""
    return {
        str(question["id"]): {"selectedOptionId": pick}
        for question, pick in zip(quiz["questions"], picks)
    }


def test_create_quiz_computes_total_points(app, login_as, setting, new_quiz_payload):
    teacher, teacher_id = login_as("teacher")
    resp = teacher.post("/api/quizzes", json=new_quiz_payload(*setting))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["totalPoints"] == 3
    assert body["questionCount"] == 2
    assert body["authorId"] == teacher_id
    assert [q["order"] for q in body["questions"]] == [0, 1]
    assert body["questions"][0]["options"][0] == {"id": 1, "text": "3/4", "isCorrect": True}

    with app.app_context():
        content = db.session.get(Content, body["contentId"])
        assert content.content_type == "quiz"


def test_explicit_total_points_is_kept(login_as, setting, new_quiz_payload):
    teacher, _ = login_as("teacher")
    resp = teacher.post("/api/quizzes", json=new_quiz_payload(*setting, totalPoints=10))
    assert resp.get_json()["totalPoints"] == 10


@pytest.mark.parametrize(
    "question",
    [
        {"text": "No correct option", "options": [{"text": "a"}, {"text": "b"}]},
        {"text": "Single option", "options": [{"text": "a", "isCorrect": True}]},
        {"text": "", "options": [{"text": "a", "isCorrect": True}, {"text": "b"}]},
        {
            "text": "Zero points",
            "points": 0,
            "options": [{"text": "a", "isCorrect": True}, {"text": "b"}],
        },
    ],
)
def test_invalid_questions_are_rejected(app, login_as, setting, new_quiz_payload, question):
    teacher, _ = login_as("teacher")
    resp = teacher.post("/api/quizzes", json=new_quiz_payload(*setting, questions=[question]))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "ValidationError"
    with app.app_context():
        assert Content.query.count() == 0


def test_quiz_without_questions_is_rejected(login_as, setting, new_quiz_payload):
    teacher, _ = login_as("teacher")
    resp = teacher.post("/api/quizzes", json=new_quiz_payload(*setting, questions=[]))
    assert resp.status_code == 400


def test_failed_question_insert_leaves_nothing_behind(app, login_as, setting, new_quiz_payload, monkeypatch):
    teacher, _ = login_as("teacher")

    def broken(quiz, questions):
        raise RuntimeError("disk full")

    monkeypatch.setattr(quiz_service, "_add_questions", broken)
    resp = teacher.post("/api/quizzes", json=new_quiz_payload(*setting))
    assert resp.status_code == 500
    assert resp.get_json()["error"] == "ServerError"
    with app.app_context():
        assert Content.query.count() == 0
        assert Quiz.query.count() == 0
        assert Question.query.count() == 0


def test_students_get_quiz_without_answers(login_as, published_quiz):
    _, quiz = published_quiz
    student, _ = login_as("student", grade=5)
    body = student.get(f"/api/quizzes/{quiz['id']}").get_json()
    for question in body["questions"]:
        assert all("isCorrect" not in option for option in question["options"])

    listed = student.get("/api/quizzes?withDetails=true").get_json()
    assert "isCorrect" not in listed[0]["questions"][0]["options"][0]


def test_draft_quiz_is_hidden_from_students(login_as, setting, new_quiz_payload):
    teacher, _ = login_as("teacher")
    student, _ = login_as("student", grade=5)
    quiz = teacher.post("/api/quizzes", json=new_quiz_payload(*setting, status="draft")).get_json()

    assert student.get(f"/api/quizzes/{quiz['id']}").status_code == 404
    assert student.get("/api/quizzes").get_json() == []
    assert student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).status_code == 404
    assert len(teacher.get("/api/quizzes").get_json()) == 1


def test_attempt_flow(login_as, published_quiz):
    teacher, quiz = published_quiz
    student, student_id = login_as("student", grade=5)

    resp = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]})
    assert resp.status_code == 201
    attempt_id = resp.get_json()["id"]

    resumed = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]})
    assert resumed.status_code == 200
    assert resumed.get_json()["id"] == attempt_id

    first_only = dict(list(_answers(quiz, [1, 1]).items())[:1])
    saved = student.patch(f"/api/quiz-attempts/{attempt_id}/save-progress", json={"answers": first_only})
    assert saved.status_code == 200
    assert saved.get_json()["completedAt"] is None

    second_id = str(quiz["questions"][1]["id"])
    resp = student.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": {second_id: 4}})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["score"] == 2
    assert body["percentage"] == pytest.approx(66.67)
    assert body["passed"] is True
    assert body["completedAt"] is not None

    assert student.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": {}}).status_code == 409
    assert student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).status_code == 409

    history = student.get(f"/api/students/{student_id}/quiz-attempts").get_json()
    assert history[0]["quizTitle"] == "Fractions check"


def test_auto_submit_scores_attempt(login_as, published_quiz):
    _, quiz = published_quiz
    student, _ = login_as("student", grade=5)
    attempt_id = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).get_json()["id"]

    resp = student.patch(
        f"/api/quiz-attempts/{attempt_id}/save-progress",
        json={"answers": _answers(quiz, [1, 2]), "autoSubmit": True},
    )
    body = resp.get_json()
    assert body["score"] == 3
    assert body["percentage"] == 100
    assert body["completedAt"] is not None


def test_attempts_are_private_to_their_student(login_as, published_quiz):
    _, quiz = published_quiz
    owner, owner_id = login_as("student", grade=5)
    other, _ = login_as("student", grade=5)
    attempt_id = owner.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).get_json()["id"]

    assert other.get(f"/api/quiz-attempts/{attempt_id}").status_code == 403
    assert other.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": {}}).status_code == 403
    assert other.get(f"/api/students/{owner_id}/quiz-attempts").status_code == 403


def test_questions_locked_after_submission(login_as, published_quiz):
    teacher, quiz = published_quiz
    student, _ = login_as("student", grade=5)

    resp = teacher.patch(f"/api/quizzes/{quiz['id']}", json={"title": "Renamed", "timeLimit": 30})
    assert resp.get_json()["title"] == "Renamed"
    assert resp.get_json()["timeLimit"] == 30

    attempt_id = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).get_json()["id"]
    student.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": _answers(quiz, [1, 1])})

    replacement = [{"text": "New", "options": [{"text": "a", "isCorrect": True}, {"text": "b"}]}]
    resp = teacher.patch(f"/api/quizzes/{quiz['id']}", json={"questions": replacement})
    assert resp.status_code == 409


def test_questions_locked_while_attempt_is_open(login_as, published_quiz):
    teacher, quiz = published_quiz
    student, _ = login_as("student", grade=5)
    attempt_id = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).get_json()["id"]
    student.patch(
        f"/api/quiz-attempts/{attempt_id}/save-progress",
        json={"answers": _answers(quiz, [1])},
    )

    replacement = [{"text": "New", "options": [{"text": "a", "isCorrect": True}, {"text": "b"}]}]
    resp = teacher.patch(f"/api/quizzes/{quiz['id']}", json={"questions": replacement})
    assert resp.status_code == 409

    # Saved answers still point at live questions
    body = student.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": {}}).get_json()
    assert body["score"] == 2


def test_replacing_questions_recomputes_total(login_as, published_quiz):
    teacher, quiz = published_quiz
    replacement = [
        {"text": "Only", "points": 5, "options": [{"text": "a", "isCorrect": True}, {"text": "b"}]}
    ]
    body = teacher.patch(f"/api/quizzes/{quiz['id']}", json={"questions": replacement}).get_json()
    assert body["totalPoints"] == 5
    assert [q["text"] for q in body["questions"]] == ["Only"]


def test_quiz_statistics(app, login_as, published_quiz):
    teacher, quiz = published_quiz
    empty = teacher.get(f"/api/quizzes/{quiz['id']}/stats").get_json()
    assert empty["attempts"] == 0
    assert empty["mean"] is None

    for picks in ([1, 2], [1, 1], [2, 1]):
        student, _ = login_as("student", grade=5)
        attempt_id = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).get_json()["id"]
        student.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": _answers(quiz, picks)})

    stats = teacher.get(f"/api/quizzes/{quiz['id']}/stats").get_json()
    assert stats["attempts"] == 3
    assert stats["mean"] == pytest.approx(55.56, abs=0.01)
    assert stats["median"] == pytest.approx(66.67, abs=0.01)
    assert stats["passRate"] == pytest.approx(66.67, abs=0.01)
    assert stats["skewness"] is not None

    other_teacher, _ = login_as("teacher")
    assert other_teacher.get(f"/api/quizzes/{quiz['id']}/stats").status_code == 403


def test_admin_resets_attempts(app, login_as, published_quiz):
    _, quiz = published_quiz
    admin, _ = login_as("admin")
    student, student_id = login_as("student", grade=5)
    attempt_id = student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).get_json()["id"]
    student.put(f"/api/quiz-attempts/{attempt_id}", json={"answers": {}})

    assert admin.delete(f"/api/students/{student_id}/quiz-attempts").status_code == 400
    resp = admin.delete(f"/api/students/{student_id}/quiz-attempts?quizId={quiz['id']}")
    assert resp.get_json()["removed"] == 1
    with app.app_context():
        assert QuizAttempt.query.count() == 0
    assert student.post("/api/quiz-attempts", json={"quizId": quiz["id"]}).status_code == 201


def test_quizzes_with_status(login_as, setting, new_quiz_payload):
    teacher, _ = login_as("teacher")
    first = teacher.post("/api/quizzes", json=new_quiz_payload(*setting, title="First")).get_json()
    second = teacher.post("/api/quizzes", json=new_quiz_payload(*setting, title="Second")).get_json()
    teacher.post("/api/quizzes", json=new_quiz_payload(*setting, title="Hidden", status="draft"))
    student, student_id = login_as("student", grade=5)

    done = student.post("/api/quiz-attempts", json={"quizId": first["id"]}).get_json()["id"]
    student.put(f"/api/quiz-attempts/{done}", json={"answers": _answers(first, [1, 1])})
    open_id = student.post("/api/quiz-attempts", json={"quizId": second["id"]}).get_json()["id"]

    rows = student.get(f"/api/students/{student_id}/quizzes-with-status").get_json()
    by_title = {row["title"]: row for row in rows}
    assert set(by_title) == {"First", "Second"}
    assert by_title["First"]["attemptStatus"] == "completed"
    assert by_title["First"]["attemptId"] == done
    assert by_title["First"]["percentage"] == pytest.approx(66.67)
    assert by_title["Second"]["attemptStatus"] == "in_progress"
    assert by_title["Second"]["attemptId"] == open_id
    assert by_title["Second"]["className"] == "Math 101"

    staff_view = teacher.get(f"/api/students/{student_id}/quizzes-with-status").get_json()
    assert {row["title"]: row["attemptStatus"] for row in staff_view}["Hidden"] == "not_attempted"


def test_quizzes_with_status_is_private(login_as, published_quiz):
    owner, owner_id = login_as("student", grade=5)
    other, _ = login_as("student", grade=5)
    assert other.get(f"/api/students/{owner_id}/quizzes-with-status").status_code == 403
    assert owner.get("/api/students/999/quizzes-with-status").status_code == 403
