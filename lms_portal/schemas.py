"""Request shapes shared by the API and the Python client.

JSON uses camelCase keys (``classId``); the models accept either the alias or
the field name. Validation here is authoritative on the server and a
convenience on the client.
"""

from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    model_validator,
)
from pydantic.alias_generators import to_camel

Role = Literal["admin", "teacher", "student"]
ContentType = Literal["note", "homework", "dpp", "quiz", "lecture", "sample_paper"]
ContentStatus = Literal["draft", "published", "archived"]
ExperienceLevel = Literal[
    "beginner", "6months+", "1year+", "2years+", "3years+", "5years+"
]
AttendanceStatus = Literal["present", "absent", "late"]
DocumentType = Literal[
    "aadhar", "transfer_certificate", "previous_result", "birth_certificate", "other"
]

MIN_PASSWORD_LENGTH = 6


class Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def blank_to_none(cls, values):
        # HTML forms submit empty inputs as ""
        if not isinstance(values, dict):
            return values
        return {
            name: None if isinstance(value, str) and value.strip() == "" else value
            for name, value in values.items()
        }

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _date_only_to_midnight(value):
    if isinstance(value, str) and len(value) == 10:
        return f"{value}T00:00:00"
    return value


DueDate = Annotated[Optional[datetime], BeforeValidator(_date_only_to_midnight)]


# Users


class LoginRequest(Schema):
    username: str
    password: str


class UserBase(Schema):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(min_length=1, max_length=100)
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    mobile_number: Optional[str] = None


class AdminUserCreate(UserBase):
    role: Literal["admin"]


class TeacherUserCreate(UserBase):
    role: Literal["teacher"]
    experience_level: Optional[ExperienceLevel] = None
    teacher_id: Optional[str] = Field(default=None, max_length=50)


class StudentUserCreate(UserBase):
    role: Literal["student"]
    grade: int = Field(ge=1, le=12)
    section: Optional[str] = Field(default=None, max_length=10)
    admission_no: Optional[str] = None
    admission_date: Optional[date] = None
    parents_mobile: Optional[str] = None


UserCreate = Annotated[
    Union[AdminUserCreate, TeacherUserCreate, StudentUserCreate],
    Field(discriminator="role"),
]
user_create_adapter = TypeAdapter(UserCreate)

USER_CREATE_VARIANTS = {
    "admin": AdminUserCreate,
    "teacher": TeacherUserCreate,
    "student": StudentUserCreate,
}


class UserUpdate(Schema):
    username: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[Role] = None
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    mobile_number: Optional[str] = None
    experience_level: Optional[ExperienceLevel] = None
    teacher_id: Optional[str] = Field(default=None, max_length=50)
    grade: Optional[int] = Field(default=None, ge=1, le=12)
    section: Optional[str] = Field(default=None, max_length=10)
    admission_no: Optional[str] = None
    admission_date: Optional[date] = None
    parents_mobile: Optional[str] = None


def fields_for_role(role: str):
    """Field names a user of ``role`` may carry, taken from its create variant."""
    return set(USER_CREATE_VARIANTS[role].model_fields) - {"role"}


# Classes and subjects


class ClassCreate(Schema):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    grade: int = Field(ge=1, le=12)
    section: Optional[str] = Field(default=None, max_length=10)


class ClassUpdate(Schema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    grade: Optional[int] = Field(default=None, ge=1, le=12)
    section: Optional[str] = Field(default=None, max_length=10)


class AssignTeacherRequest(Schema):
    teacher_id: int


class ClassSubjectCreate(Schema):
    class_id: int
    subject_id: int
    teacher_id: Optional[int] = None


class EnrollRequest(Schema):
    class_id: int


class SubjectCreate(Schema):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class SubjectUpdate(Schema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


# Content and quizzes


class ContentCreate(Schema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    content_type: ContentType
    file_url: Optional[str] = None
    class_id: int
    subject_id: int
    status: ContentStatus = "published"
    due_date: DueDate = None


class ContentUpdate(Schema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    file_url: Optional[str] = None
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    status: Optional[ContentStatus] = None
    due_date: DueDate = None


class QuestionOption(Schema):
    text: str = Field(min_length=1)
    is_correct: bool = False


class QuestionIn(Schema):
    text: str = Field(min_length=1)
    options: List[QuestionOption] = Field(min_length=2)
    points: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def needs_correct_option(self):
        if not any(option.is_correct for option in self.options):
            raise ValueError("each question needs at least one correct option")
        return self


class QuizCreate(Schema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    class_id: int
    subject_id: int
    status: ContentStatus = "published"
    due_date: DueDate = None
    time_limit: int = Field(ge=1)
    passing_score: int = Field(ge=0, le=100)
    total_points: Optional[int] = Field(default=None, ge=1)
    questions: List[QuestionIn] = Field(min_length=1)


class QuizUpdate(Schema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[ContentStatus] = None
    due_date: DueDate = None
    time_limit: Optional[int] = Field(default=None, ge=1)
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    total_points: Optional[int] = Field(default=None, ge=1)
    questions: Optional[List[QuestionIn]] = Field(default=None, min_length=1)


class AttemptStart(Schema):
    quiz_id: int


class AttemptAnswers(Schema):
    answers: Dict[str, Any] = Field(default_factory=dict)
    auto_submit: bool = False


# Teachers


class QualificationCreate(Schema):
    qualification: str = Field(min_length=1, max_length=200)
    institution: Optional[str] = Field(default=None, max_length=200)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)


class TeacherSubjectCreate(Schema):
    subject_id: int


# Assignments and attendance


class AssignmentCreate(Schema):
    class_id: int
    student_id: int
    assignment_title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: DueDate = None
    is_completed: bool = False
    submission_date: DueDate = None
    remarks: Optional[str] = None


class AssignmentUpdate(Schema):
    assignment_title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: DueDate = None
    is_completed: Optional[bool] = None
    submission_date: DueDate = None
    remarks: Optional[str] = None


class AttendanceRecord(Schema):
    student_id: int
    status: AttendanceStatus
    remarks: Optional[str] = None


class AttendanceBatch(Schema):
    class_id: int
    attendance_date: date = Field(alias="date")
    records: List[AttendanceRecord] = Field(min_length=1)


# Student documents


class StudentDocumentCreate(Schema):
    document_type: DocumentType
    document_url: str = Field(min_length=1, max_length=500)
    document_name: str = Field(min_length=1, max_length=255)
