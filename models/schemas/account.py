from marshmallow import Schema, EXCLUDE, fields, pre_load, validate

from models.account import Role
from models.schemas.common import normalize_email


class _EmailNormalizingSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = normalize_email(data["email"])
        return data


class RegisterSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    name = fields.String(allow_none=True, validate=validate.Length(max=255))


class LoginSchema(_EmailNormalizingSchema):
    # No format validation here: a malformed email must fail exactly like a wrong password
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class EmailOnlySchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    token = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class ProfileUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(validate=validate.Length(min=1, max=255))
    avatar_url = fields.Url(allow_none=True)


class RoleUpdateSchema(Schema):
    role = fields.Enum(Role, required=True)


class AccountOutSchema(Schema):
    id = fields.String(allow_none=False)
    email = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    avatar_url = fields.String(allow_none=True)
    role = fields.Enum(Role)
    slides_generated = fields.Integer()
    max_slides_per_month = fields.Integer()
    subscription_expires_at = fields.DateTime(allow_none=True)
    has_password = fields.Method("get_has_password")
    google_linked = fields.Method("get_google_linked")
    subscription_active = fields.Method("get_subscription_active")
    created_at = fields.DateTime(allow_none=True)

    def get_has_password(self, obj):
        return bool(getattr(obj, "password_hash", ""))

    def get_google_linked(self, obj):
        return bool(getattr(obj, "google_id", None))

    def get_subscription_active(self, obj):
        return obj.is_subscription_active()
