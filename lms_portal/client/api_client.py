import logging

from lms_portal.client.forms import build_user_payload
from lms_portal.client.query_cache import QueryCache, make_key
from lms_portal.client.transport import HttpError

logger = logging.getLogger(__name__)

# Cache prefixes refreshed after each mutation succeeds
USERS = "/api/users"
CURRENT_USER = "/api/user"
CLASSES = "/api/classes"
CLASS_TEACHERS = "/api/class-teachers"
SUBJECTS = "/api/subjects"
CONTENTS = "/api/contents"
QUIZZES = "/api/quizzes"
TEACHERS = "/api/teachers"
STUDENTS = "/api/students"
DASHBOARD = "/api/dashboard"


def _payload(data):
    if hasattr(data, "to_payload"):
        return data.to_payload()
    return dict(data)


class ApiClient:
    """Python front end for the LMS API.

    Reads go through ``cache``; writes hit the server first and then invalidate
    the cache prefixes their result could have changed. Failed writes leave the
    cache untouched.
    """

    def __init__(self, transport, cache=None, executor=None):
        self.transport = transport
        self.cache = cache or QueryCache(self._fetch, executor=executor)
        self._csrf_token = None

    # Plumbing

    def _raise_for_status(self, method, path, status, body, failure_message=None):
        if status < 400:
            return
        error = HttpError.from_response(status, body, failure_message)
        if status >= 500:
            logger.error(f"[http {status}] {method} {path}: {error.detail}")
        else:
            logger.warning(f"[http {status}] {method} {path}: {error.kind} {error.detail}")
        raise error

    def _fetch(self, key):
        status, body = self.transport.request("GET", key)
        self._raise_for_status("GET", key, status, body)
        return body

    def _csrf(self):
        if self._csrf_token is None:
            status, body = self.transport.request("GET", "/api/csrf-token")
            self._raise_for_status("GET", "/api/csrf-token", status, body)
            self._csrf_token = body["csrfToken"]
        return self._csrf_token

    def _send(self, method, path, payload=None, failure_message=None, files=None):
        headers = {"X-CSRFToken": self._csrf()}
        status, body = self.transport.request(
            method, path, json=payload, headers=headers, files=files
        )
        self._raise_for_status(method, path, status, body, failure_message)
        return body

    def _mutate(self, method, path, payload=None, invalidates=(), failure_message=None):
        body = self._send(method, path, payload, failure_message)
        if invalidates:
            self.cache.invalidate(*invalidates)
        return body

    def query(self, path, **params):
        return self.cache.get(make_key(path, params))

    # Session

    def login(self, username, password):
        self._csrf_token = None
        user = self._send(
            "POST",
            "/api/login",
            {"username": username, "password": password},
            failure_message="Invalid username or password",
        )
        # The session was rotated; the next write needs a fresh token
        self._csrf_token = None
        self.cache.clear()
        self.cache.set(CURRENT_USER, user)
        return user

    def logout(self):
        try:
            self._send("POST", "/api/logout")
        finally:
            self._csrf_token = None
            self.cache.clear()

    def current_user(self):
        try:
            return self.cache.get(CURRENT_USER)
        except HttpError as e:
            if e.status == 401:
                return None
            raise

    def update_profile(self, changes):
        return self._mutate(
            "PATCH",
            CURRENT_USER,
            _payload(changes),
            invalidates=(CURRENT_USER, USERS),
            failure_message="Failed to update profile",
        )

    # Users

    def users(self, role=None):
        return self.query(USERS, role=role)

    def user(self, user_id):
        return self.query(f"{USERS}/{user_id}")

    def create_user(self, values):
        """Validate the role's form variant locally, then register the account."""
        payload = build_user_payload(values)
        return self._mutate(
            "POST",
            USERS,
            payload,
            invalidates=(USERS, DASHBOARD),
            failure_message="Failed to create user - email or username may already exist",
        )

    def update_user(self, user_id, changes):
        return self._mutate(
            "PATCH",
            f"{USERS}/{user_id}",
            _payload(changes),
            invalidates=(USERS, CURRENT_USER, CLASS_TEACHERS, CLASSES, DASHBOARD),
            failure_message="Failed to update user - email or username may already exist",
        )

    def delete_user(self, user_id):
        return self._mutate(
            "DELETE",
            f"{USERS}/{user_id}",
            invalidates=(USERS, CLASS_TEACHERS, CLASSES, DASHBOARD),
            failure_message="Failed to delete user",
        )

    def reset_password(self, user_id):
        return self._send(
            "POST",
            f"{USERS}/{user_id}/reset-password",
            failure_message="Failed to reset password",
        )

    # Classes

    def classes(self):
        return self.query(CLASSES)

    def class_detail(self, class_id):
        return self.query(f"{CLASSES}/{class_id}")

    def class_teachers(self):
        return self.query(CLASS_TEACHERS)

    def create_class(self, values):
        return self._mutate(
            "POST",
            CLASSES,
            _payload(values),
            invalidates=(CLASSES, DASHBOARD),
            failure_message="Failed to create class",
        )

    def update_class(self, class_id, changes):
        return self._mutate(
            "PATCH",
            f"{CLASSES}/{class_id}",
            _payload(changes),
            invalidates=(CLASSES, CLASS_TEACHERS),
            failure_message="Failed to update class",
        )

    def delete_class(self, class_id):
        return self._mutate(
            "DELETE",
            f"{CLASSES}/{class_id}",
            invalidates=(CLASSES, CLASS_TEACHERS, TEACHERS, STUDENTS, DASHBOARD),
            failure_message="Failed to delete class - remove its content first",
        )

    def assign_class_teacher(self, class_id, teacher_id):
        return self._mutate(
            "POST",
            f"{CLASSES}/{class_id}/assign-teacher",
            {"teacherId": teacher_id},
            invalidates=(CLASS_TEACHERS, CLASSES, TEACHERS, DASHBOARD),
            failure_message="Failed to assign class teacher",
        )

    def remove_class_teacher(self, class_id):
        return self._mutate(
            "DELETE",
            f"{CLASSES}/{class_id}/teacher",
            invalidates=(CLASS_TEACHERS, CLASSES, TEACHERS, DASHBOARD),
            failure_message="Failed to remove class teacher",
        )

    def add_class_subject(self, class_id, subject_id, teacher_id=None):
        return self._mutate(
            "POST",
            "/api/class-subjects",
            {"classId": class_id, "subjectId": subject_id, "teacherId": teacher_id},
            invalidates=(CLASSES, SUBJECTS, TEACHERS, DASHBOARD),
            failure_message="Failed to add subject to class",
        )

    def remove_class_subject(self, link_id):
        return self._mutate(
            "DELETE",
            f"/api/class-subjects/{link_id}",
            invalidates=(CLASSES, SUBJECTS, TEACHERS, DASHBOARD),
            failure_message="Failed to remove subject from class",
        )

    def enroll_student(self, student_id, class_id):
        return self._mutate(
            "POST",
            f"{STUDENTS}/{student_id}/enroll",
            {"classId": class_id},
            invalidates=(CLASSES, STUDENTS, USERS, DASHBOARD),
            failure_message="Failed to enroll student",
        )

    def unenroll_student(self, student_id, class_id):
        return self._mutate(
            "DELETE",
            f"{STUDENTS}/{student_id}/enroll/{class_id}",
            invalidates=(CLASSES, STUDENTS, USERS, DASHBOARD),
            failure_message="Failed to remove student from class",
        )

    # Subjects

    def subjects(self, with_class_count=False):
        return self.query(SUBJECTS, withClassCount=with_class_count or None)

    def create_subject(self, values):
        return self._mutate(
            "POST",
            SUBJECTS,
            _payload(values),
            invalidates=(SUBJECTS,),
            failure_message="Failed to create subject",
        )

    def update_subject(self, subject_id, changes):
        return self._mutate(
            "PATCH",
            f"{SUBJECTS}/{subject_id}",
            _payload(changes),
            invalidates=(SUBJECTS, CLASSES, TEACHERS),
            failure_message="Failed to update subject",
        )

    def delete_subject(self, subject_id):
        return self._mutate(
            "DELETE",
            f"{SUBJECTS}/{subject_id}",
            invalidates=(SUBJECTS, TEACHERS),
            failure_message="Failed to delete subject - it is still in use",
        )

    # Content and quizzes

    def contents(self, **filters):
        return self.query(CONTENTS, **filters)

    def create_content(self, values):
        return self._mutate(
            "POST",
            CONTENTS,
            _payload(values),
            invalidates=(CONTENTS, DASHBOARD),
            failure_message="Failed to upload content",
        )

    def update_content(self, content_id, changes):
        return self._mutate(
            "PATCH",
            f"{CONTENTS}/{content_id}",
            _payload(changes),
            invalidates=(CONTENTS, QUIZZES, STUDENTS, DASHBOARD),
            failure_message="Failed to update content",
        )

    def delete_content(self, content_id):
        return self._mutate(
            "DELETE",
            f"{CONTENTS}/{content_id}",
            invalidates=(CONTENTS, QUIZZES, STUDENTS, DASHBOARD),
            failure_message="Failed to delete content",
        )

    def quizzes(self, with_details=False, **filters):
        return self.query(QUIZZES, withDetails=with_details or None, **filters)

    def quiz(self, quiz_id):
        return self.query(f"{QUIZZES}/{quiz_id}")

    def create_quiz(self, values):
        return self._mutate(
            "POST",
            QUIZZES,
            _payload(values),
            invalidates=(QUIZZES, CONTENTS, STUDENTS, DASHBOARD),
            failure_message="Failed to create quiz",
        )

    def update_quiz(self, quiz_id, changes):
        return self._mutate(
            "PATCH",
            f"{QUIZZES}/{quiz_id}",
            _payload(changes),
            invalidates=(QUIZZES, CONTENTS, STUDENTS, DASHBOARD),
            failure_message="Failed to update quiz",
        )

    def start_attempt(self, quiz_id):
        return self._mutate(
            "POST",
            "/api/quiz-attempts",
            {"quizId": quiz_id},
            invalidates=(STUDENTS,),
            failure_message="Could not start the quiz",
        )

    def save_progress(self, attempt_id, answers, auto_submit=False):
        return self._mutate(
            "PATCH",
            f"/api/quiz-attempts/{attempt_id}/save-progress",
            {"answers": answers, "autoSubmit": auto_submit},
            invalidates=(STUDENTS, DASHBOARD) if auto_submit else (),
            failure_message="Could not save your answers",
        )

    def submit_attempt(self, attempt_id, answers):
        return self._mutate(
            "PUT",
            f"/api/quiz-attempts/{attempt_id}",
            {"answers": answers},
            invalidates=(STUDENTS, DASHBOARD),
            failure_message="Could not submit the quiz",
        )

    def student_attempts(self, student_id):
        return self.query(f"{STUDENTS}/{student_id}/quiz-attempts")

    def quizzes_with_status(self, student_id, class_id=None):
        return self.query(f"{STUDENTS}/{student_id}/quizzes-with-status", classId=class_id)

    def quiz_stats(self, quiz_id):
        return self.query(f"{QUIZZES}/{quiz_id}/stats")

    # Teachers

    def teacher_qualifications(self, teacher_id):
        return self.query(f"{TEACHERS}/{teacher_id}/qualifications")

    def add_qualification(self, teacher_id, values):
        return self._mutate(
            "POST",
            f"{TEACHERS}/{teacher_id}/qualifications",
            _payload(values),
            invalidates=(f"{TEACHERS}/{teacher_id}", f"{USERS}/{teacher_id}"),
            failure_message="Failed to add qualification",
        )

    def remove_qualification(self, teacher_id, qualification_id):
        return self._mutate(
            "DELETE",
            f"{TEACHERS}/qualifications/{qualification_id}",
            invalidates=(f"{TEACHERS}/{teacher_id}", f"{USERS}/{teacher_id}"),
            failure_message="Failed to remove qualification",
        )

    def teacher_subjects(self, teacher_id):
        return self.query(f"{TEACHERS}/{teacher_id}/subjects")

    def add_teacher_subject(self, teacher_id, subject_id):
        return self._mutate(
            "POST",
            f"{TEACHERS}/{teacher_id}/subjects",
            {"subjectId": subject_id},
            invalidates=(f"{TEACHERS}/{teacher_id}", f"{USERS}/{teacher_id}"),
            failure_message="Failed to add subject - a teacher can have at most 3",
        )

    def remove_teacher_subject(self, teacher_id, link_id):
        return self._mutate(
            "DELETE",
            f"{TEACHERS}/subjects/{link_id}",
            invalidates=(f"{TEACHERS}/{teacher_id}", f"{USERS}/{teacher_id}"),
            failure_message="Failed to remove subject",
        )

    def teacher_classes(self, teacher_id):
        return self.query(f"{TEACHERS}/{teacher_id}/classes")

    # Assignments and attendance

    def class_assignments(self, class_id):
        return self.query(f"{CLASSES}/{class_id}/assignments")

    def create_assignment(self, values):
        payload = _payload(values)
        return self._mutate(
            "POST",
            "/api/assignments",
            payload,
            invalidates=(CLASSES, STUDENTS, DASHBOARD),
            failure_message="Failed to record assignment",
        )

    def update_assignment(self, assignment_id, changes):
        return self._mutate(
            "PATCH",
            f"/api/assignments/{assignment_id}",
            _payload(changes),
            invalidates=(CLASSES, STUDENTS, DASHBOARD),
            failure_message="Failed to update assignment",
        )

    def delete_assignment(self, assignment_id):
        return self._mutate(
            "DELETE",
            f"/api/assignments/{assignment_id}",
            invalidates=(CLASSES, STUDENTS, DASHBOARD),
            failure_message="Failed to delete assignment",
        )

    def student_assignments(self, student_id):
        return self.query(f"{STUDENTS}/{student_id}/assignments")

    def class_attendance(self, class_id, on=None):
        return self.query(f"{CLASSES}/{class_id}/attendance", date=on)

    def record_attendance(self, values):
        return self._mutate(
            "POST",
            "/api/attendance",
            _payload(values),
            invalidates=(CLASSES, DASHBOARD),
            failure_message="Failed to save attendance",
        )

    # Files and student documents

    def upload_file(self, filename, stream, content_type):
        """Upload one file; the returned ``fileUrl`` goes into content or documents."""
        return self._send(
            "POST",
            "/api/upload",
            files={"file": (filename, stream, content_type)},
            failure_message="Failed to upload file",
        )

    def student_documents(self, student_id):
        return self.query(f"{STUDENTS}/{student_id}/documents")

    def add_student_document(self, student_id, values):
        return self._mutate(
            "POST",
            f"{STUDENTS}/{student_id}/documents",
            _payload(values),
            invalidates=(f"{STUDENTS}/{student_id}/documents",),
            failure_message="Failed to add document",
        )

    def delete_student_document(self, student_id, document_id):
        return self._mutate(
            "DELETE",
            f"/api/student-documents/{document_id}",
            invalidates=(
                f"{STUDENTS}/{student_id}/documents",
                f"/api/student-documents/{document_id}",
            ),
            failure_message="Failed to delete document",
        )

    # Dashboards

    def dashboard(self, role):
        return self.query(f"{DASHBOARD}/{role}")

