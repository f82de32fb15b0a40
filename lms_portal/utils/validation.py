from flask import request
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from lms_portal.utils.errors import ValidationError


def format_errors(exc: PydanticValidationError):
    details = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        details.append({"field": field, "message": error["msg"]})
    return details


def parse_body(schema, payload=None):
    """Validate the JSON body (or ``payload``) against a pydantic model or adapter."""
    if payload is None:
        payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(payload)
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        details = format_errors(exc)
        first = details[0]
        summary = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
        raise ValidationError(f"Invalid data - {summary}", details=details)


def query_int(name):
    """Optional integer query parameter."""
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def query_flag(name):
    return request.args.get(name, "").lower() in ("1", "true", "yes")
