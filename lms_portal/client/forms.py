"""User form model: one variant per role, picked by the ``role`` tag.

The checks here only improve the form experience. The server validates the
same shapes again and its answer is final.
"""

from pydantic import ValidationError as PydanticValidationError

from lms_portal.client.transport import ClientError
from lms_portal.schemas import USER_CREATE_VARIANTS, user_create_adapter


class FormValidationError(ClientError):
    def __init__(self, errors):
        super().__init__("Please fix the highlighted fields", kind="ValidationError")
        self.errors = errors


def form_fields(role):
    """Required and optional camelCase field names shown for ``role``."""
    variant = USER_CREATE_VARIANTS[role]
    required, optional = [], []
    for name, field in variant.model_fields.items():
        if name == "role":
            continue
        alias = field.alias or name
        (required if field.is_required() else optional).append(alias)
    return {"role": role, "required": required, "optional": optional}


def validate_user_form(values):
    """Return ``{field: message}``; empty when the form can be submitted."""
    errors = {}
    values = dict(values)
    confirm = values.pop("confirmPassword", None)
    if confirm is not None and confirm != values.get("password"):
        errors["confirmPassword"] = "Passwords do not match"

    try:
        user_create_adapter.validate_python(values)
    except PydanticValidationError as exc:
        for error in exc.errors():
            loc = [str(part) for part in error["loc"]]
            # Drop the variant tag pydantic puts in front of the field name
            if len(loc) > 1 and loc[0] in USER_CREATE_VARIANTS:
                loc = loc[1:]
            errors.setdefault(".".join(loc) or "role", error["msg"])
    return errors


def build_user_payload(values):
    """Validated JSON body for a create-user request, or FormValidationError."""
    if hasattr(values, "to_payload"):
        return values.to_payload()
    errors = validate_user_form(values)
    if errors:
        raise FormValidationError(errors)
    values = {key: value for key, value in values.items() if key != "confirmPassword"}
    return user_create_adapter.validate_python(values).to_payload()
