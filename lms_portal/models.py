from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

ROLES = ("admin", "teacher", "student")
CONTENT_TYPES = ("note", "homework", "dpp", "quiz", "lecture", "sample_paper")
CONTENT_STATUSES = ("draft", "published", "archived")
EXPERIENCE_LEVELS = ("beginner", "6months+", "1year+", "2years+", "3years+", "5years+")
ATTENDANCE_STATUSES = ("present", "absent", "late")
DOCUMENT_TYPES = (
    "aadhar", "transfer_certificate", "previous_result", "birth_certificate", "other"
)

# Role-specific user columns; off-role values are never serialized
TEACHER_FIELDS = ("experience_level", "teacher_id")
STUDENT_FIELDS = ("admission_no", "admission_date", "grade", "section", "parents_mobile")


def _iso(value):
    return value.isoformat() if value is not None else None


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False)  # admin, teacher, student
    profile_image = db.Column(db.String(500))
    bio = db.Column(db.Text)
    mobile_number = db.Column(db.String(20))

    # Teacher
    experience_level = db.Column(db.String(20))
    teacher_id = db.Column(db.String(50))

    # Student
    admission_no = db.Column(db.String(50))
    admission_date = db.Column(db.Date)
    grade = db.Column(db.Integer)
    section = db.Column(db.String(10))
    parents_mobile = db.Column(db.String(20))

    joined_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    qualifications = db.relationship(
        "TeacherQualification",
        backref="teacher",
        cascade="all, delete-orphan",
        order_by="TeacherQualification.id",
    )
    teacher_subjects = db.relationship(
        "TeacherSubject", backref="teacher", cascade="all, delete-orphan"
    )
    enrollments = db.relationship(
        "ClassEnrollment", backref="student", cascade="all, delete-orphan"
    )
    documents = db.relationship(
        "StudentDocument",
        backref="student",
        cascade="all, delete-orphan",
        order_by="StudentDocument.id",
    )

    def set_password(self, password):
        self.password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password, password)

    def to_dict(self):
        data = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "profileImage": self.profile_image,
            "bio": self.bio,
            "mobileNumber": self.mobile_number,
            "joinedAt": _iso(self.joined_at),
        }
        if self.role == "teacher":
            data["experienceLevel"] = self.experience_level
            data["teacherId"] = self.teacher_id
        elif self.role == "student":
            data["admissionNo"] = self.admission_no
            data["admissionDate"] = _iso(self.admission_date)
            data["grade"] = self.grade
            data["section"] = self.section
            data["parentsMobile"] = self.parents_mobile
        return data

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


class Class(db.Model):
    __tablename__ = "classes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    grade = db.Column(db.Integer, nullable=False)
    section = db.Column(db.String(10))
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    subject_links = db.relationship(
        "ClassSubject", backref="class_obj", cascade="all, delete-orphan"
    )
    enrollments = db.relationship(
        "ClassEnrollment", backref="class_obj", cascade="all, delete-orphan"
    )
    class_teacher = db.relationship(
        "ClassTeacher", backref="class_obj", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def students(self):
        return [enrollment.student for enrollment in self.enrollments]

    def to_dict(self):
        teacher = self.class_teacher.teacher if self.class_teacher else None
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "grade": self.grade,
            "section": self.section,
            "createdAt": _iso(self.created_at),
            "classTeacher": {"id": teacher.id, "name": teacher.name} if teacher else None,
        }

    def __repr__(self):
        return f"<Class {self.name} grade {self.grade}{self.section or ''}>"


class Subject(db.Model):
    __tablename__ = "subjects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Subject {self.name}>"


class ClassSubject(db.Model):
    """Subject taught in a class, optionally by a specific teacher."""

    __tablename__ = "class_subjects"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id"), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey("subjects.id"), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"))

    subject = db.relationship("Subject")
    teacher = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("class_id", "subject_id", name="unique_class_subject"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "classId": self.class_id,
            "subjectId": self.subject_id,
            "teacherId": self.teacher_id,
            "subject": self.subject.to_dict() if self.subject else None,
            "teacher": (
                {"id": self.teacher.id, "name": self.teacher.name}
                if self.teacher
                else None
            ),
        }


class ClassEnrollment(db.Model):
    __tablename__ = "class_enrollments"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    enrolled_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    __table_args__ = (
        db.UniqueConstraint("class_id", "student_id", name="unique_enrollment"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "classId": self.class_id,
            "studentId": self.student_id,
            "enrolledAt": _iso(self.enrolled_at),
        }


class ClassTeacher(db.Model):
    """The single teacher owning a class."""

    __tablename__ = "class_teachers"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(
        db.Integer, db.ForeignKey("classes.id"), nullable=False, unique=True
    )
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    assigned_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    teacher = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "classId": self.class_id,
            "teacherId": self.teacher_id,
            "assignedAt": _iso(self.assigned_at),
            "className": self.class_obj.name if self.class_obj else None,
            "grade": self.class_obj.grade if self.class_obj else None,
            "section": self.class_obj.section if self.class_obj else None,
            "teacherName": self.teacher.name if self.teacher else None,
        }


class Content(db.Model):
    __tablename__ = "contents"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    content_type = db.Column(db.String(20), nullable=False)
    file_url = db.Column(db.String(500))
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id"), nullable=False)
    # Nullable until legacy rows are backfilled
    subject_id = db.Column(db.Integer, db.ForeignKey("subjects.id"))
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(20), default="published")
    due_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    author = db.relationship("User")
    class_obj = db.relationship("Class")
    subject = db.relationship("Subject")
    quiz = db.relationship(
        "Quiz", backref="content", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def effective_status(self):
        return self.status or "draft"

    def to_dict(self, with_relations=False):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "contentType": self.content_type,
            "fileUrl": self.file_url,
            "classId": self.class_id,
            "subjectId": self.subject_id,
            "authorId": self.author_id,
            "status": self.effective_status,
            "dueDate": _iso(self.due_date),
            "createdAt": _iso(self.created_at),
        }
        if with_relations:
            data["author"] = (
                {"id": self.author.id, "name": self.author.name} if self.author else None
            )
            data["class"] = self.class_obj.to_dict() if self.class_obj else None
            data["subject"] = self.subject.to_dict() if self.subject else None
        return data

    def __repr__(self):
        return f"<Content {self.content_type}: {self.title}>"


class Quiz(db.Model):
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    content_id = db.Column(
        db.Integer, db.ForeignKey("contents.id"), nullable=False, unique=True
    )
    time_limit = db.Column(db.Integer, nullable=False)  # minutes
    passing_score = db.Column(db.Integer, nullable=False)  # percent
    total_points = db.Column(db.Integer)

    questions = db.relationship(
        "Question",
        backref="quiz",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    attempts = db.relationship(
        "QuizAttempt", backref="quiz", cascade="all, delete-orphan"
    )

    @property
    def max_points(self):
        if self.total_points:
            return self.total_points
        return sum(question.points or 1 for question in self.questions)

    def to_dict(self, with_questions=False, hide_answers=False):
        content = self.content
        data = {
            "id": self.id,
            "contentId": self.content_id,
            "title": content.title,
            "description": content.description,
            "classId": content.class_id,
            "subjectId": content.subject_id,
            "authorId": content.author_id,
            "status": content.effective_status,
            "dueDate": _iso(content.due_date),
            "createdAt": _iso(content.created_at),
            "timeLimit": self.time_limit,
            "passingScore": self.passing_score,
            "totalPoints": self.max_points,
            "questionCount": len(self.questions),
        }
        if with_questions:
            data["questions"] = [
                question.to_dict(hide_answers=hide_answers)
                for question in self.questions
            ]
        return data

    def __repr__(self):
        return f"<Quiz content={self.content_id}>"


class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id"), nullable=False)
    text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)  # [{"text": ..., "isCorrect": ...}]
    points = db.Column(db.Integer, default=1)
    position = db.Column(db.Integer, nullable=False, default=0)

    @property
    def correct_option_ids(self):
        """1-based ids of every option flagged correct."""
        return {
            index + 1
            for index, option in enumerate(self.options or [])
            if option.get("isCorrect")
        }

    def to_dict(self, hide_answers=False):
        options = []
        for index, option in enumerate(self.options or []):
            item = {"id": index + 1, "text": option.get("text")}
            if not hide_answers:
                item["isCorrect"] = bool(option.get("isCorrect"))
            options.append(item)
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "text": self.text,
            "options": options,
            "points": self.points or 1,
            "order": self.position,
        }


class QuizAttempt(db.Model):
    __tablename__ = "quiz_attempts"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    started_at = db.Column(db.DateTime, default=db.func.current_timestamp())
    completed_at = db.Column(db.DateTime)
    score = db.Column(db.Integer)
    answers = db.Column(db.JSON)

    student = db.relationship("User")

    @property
    def is_completed(self):
        return self.completed_at is not None

    def to_dict(self):
        total = self.quiz.max_points if self.quiz else 0
        percentage = None
        if self.score is not None and total:
            percentage = round(self.score / total * 100, 2)
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "studentId": self.student_id,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "score": self.score,
            "totalPoints": total,
            "percentage": percentage,
            "passed": (
                percentage >= self.quiz.passing_score
                if percentage is not None
                else None
            ),
            "answers": self.answers or {},
        }


class TeacherQualification(db.Model):
    __tablename__ = "teacher_qualifications"

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    qualification = db.Column(db.String(200), nullable=False)
    institution = db.Column(db.String(200))
    year = db.Column(db.Integer)

    def to_dict(self):
        return {
            "id": self.id,
            "teacherId": self.teacher_id,
            "qualification": self.qualification,
            "institution": self.institution,
            "year": self.year,
        }


class TeacherSubject(db.Model):
    __tablename__ = "teacher_subjects"

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey("subjects.id"), nullable=False)

    subject = db.relationship("Subject")

    __table_args__ = (
        db.UniqueConstraint("teacher_id", "subject_id", name="unique_teacher_subject"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "teacherId": self.teacher_id,
            "subjectId": self.subject_id,
            "subject": self.subject.to_dict() if self.subject else None,
        }


class Attendance(db.Model):
    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id"), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(10), nullable=False)  # present, absent, late
    remarks = db.Column(db.Text)
    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    recorded_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    __table_args__ = (
        db.UniqueConstraint(
            "student_id", "class_id", "date", name="unique_attendance_day"
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "studentId": self.student_id,
            "classId": self.class_id,
            "date": _iso(self.date),
            "status": self.status,
            "remarks": self.remarks,
            "recordedBy": self.recorded_by,
        }


class Assignment(db.Model):
    """Homework tracking row for one student in one class."""

    __tablename__ = "assignments"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    assignment_title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    due_date = db.Column(db.DateTime)
    is_completed = db.Column(db.Boolean, default=False, nullable=False)
    submission_date = db.Column(db.DateTime)
    remarks = db.Column(db.Text)
    recorded_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    student = db.relationship("User", foreign_keys=[student_id])

    def to_dict(self):
        return {
            "id": self.id,
            "classId": self.class_id,
            "studentId": self.student_id,
            "teacherId": self.teacher_id,
            "studentName": self.student.name if self.student else None,
            "assignmentTitle": self.assignment_title,
            "description": self.description,
            "dueDate": _iso(self.due_date),
            "isCompleted": bool(self.is_completed),
            "submissionDate": _iso(self.submission_date),
            "remarks": self.remarks,
            "recordedAt": _iso(self.recorded_at),
        }


class StudentDocument(db.Model):
    """Admission paperwork kept on file for a student."""

    __tablename__ = "student_documents"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    document_type = db.Column(db.String(30), nullable=False)
    document_url = db.Column(db.String(500), nullable=False)
    document_name = db.Column(db.String(255), nullable=False)
    uploaded_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    def to_dict(self):
        return {
            "id": self.id,
            "studentId": self.student_id,
            "documentType": self.document_type,
            "documentUrl": self.document_url,
            "documentName": self.document_name,
            "uploadedAt": _iso(self.uploaded_at),
        }
