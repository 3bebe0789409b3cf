from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate

from utils.security import MAX_PASSWORD_BYTES, password_too_long

# Emails are stored and matched exactly as submitted (no case folding).
_required_text = dict(required=True, validate=validate.Length(min=1, error="Must not be empty."))


def _fits_bcrypt(value: str) -> None:
    if password_too_long(value):
        raise ValidationError(f"Must be at most {MAX_PASSWORD_BYTES} bytes.")


class UserRegisterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(**_required_text)
    password = fields.String(
        load_only=True,
        required=True,
        validate=[validate.Length(min=1, error="Must not be empty."), _fits_bcrypt],
    )
    first_name = fields.String(data_key="firstName", load_default=None, allow_none=True)
    last_name = fields.String(data_key="lastName", load_default=None, allow_none=True)


class UserLoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(**_required_text)
    password = fields.String(load_only=True, **_required_text)


class UserOutSchema(Schema):
    """Public user view; the password hash is never part of it."""
    id = fields.String(allow_none=False)
    email = fields.String()
    first_name = fields.String(data_key="firstName", allow_none=True)
    last_name = fields.String(data_key="lastName", allow_none=True)
    is_active = fields.Boolean(data_key="isActive")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class IdentityOutSchema(Schema):
    user_id = fields.String(data_key="userId")
    email = fields.String()
