import pytest

from lms_portal.client.forms import (
    FormValidationError,
    build_user_payload,
    form_fields,
    validate_user_form,
)

TEACHER = {
    "role": "teacher",
    "username": "t1",
    "email": "t1@school.org",
    "password": "secret1",
    "confirmPassword": "secret1",
    "name": "T One",
}


def test_form_fields_follow_the_role():
    student = form_fields("student")
    teacher = form_fields("teacher")
    assert "grade" in student["required"]
    assert "admissionNo" in student["optional"]
    assert "experienceLevel" in teacher["optional"]
    assert "grade" not in teacher["required"] + teacher["optional"]
    assert form_fields("admin")["optional"] == ["profileImage", "bio", "mobileNumber"]


def test_valid_form_has_no_errors():
    assert validate_user_form(TEACHER) == {}


def test_password_rules():
    errors = validate_user_form({**TEACHER, "password": "123", "confirmPassword": "124"})
    assert set(errors) == {"password", "confirmPassword"}


def test_unknown_role_is_reported_on_role():
    errors = validate_user_form({**TEACHER, "role": "janitor"})
    assert "role" in errors


def test_payload_drops_confirmation_and_off_role_fields():
    payload = build_user_payload({**TEACHER, "grade": 4, "bio": ""})
    assert payload == {
        "role": "teacher",
        "username": "t1",
        "email": "t1@school.org",
        "password": "secret1",
        "name": "T One",
    }


def test_build_payload_raises_with_field_errors():
    with pytest.raises(FormValidationError) as info:
        build_user_payload({"role": "student", "name": "No creds"})
    assert {"username", "email", "password", "grade"} <= set(info.value.errors)
