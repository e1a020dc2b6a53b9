from marshmallow import Schema, fields, pre_load, validate

from models.roles import Role


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(data, *keys):
    for key in keys:
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


class RegisterSchema(Schema):
    name = fields.String(required=True, validate=validate.Length(min=2, max=50))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=100))
    phone = fields.String(required=True, validate=validate.Length(min=10, max=15))
    branch = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=100))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            _strip(data, "name", "phone", "branch")
        return data


class LoginSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_norm_email(data["email"]))
        return data


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))
    new_password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=100))


class ProfileUpdateSchema(Schema):
    name = fields.String(validate=validate.Length(min=2, max=50))
    phone = fields.String(validate=validate.Length(min=10, max=15))
    branch = fields.String(allow_none=True, validate=validate.Length(max=100))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = _strip(dict(data), "name", "phone", "branch")
        return data


class RoleUpdateSchema(Schema):
    role = fields.Enum(Role, by_value=True, required=True)


class UserOutSchema(Schema):
    """Sanitized user view: no password hash, no refresh token data."""
    id = fields.String(allow_none=False)
    name = fields.String()
    email = fields.String()
    phone = fields.String(allow_none=True)
    branch = fields.String(allow_none=True)
    role = fields.Enum(Role, by_value=True)
    is_verified = fields.Boolean()
    is_active = fields.Boolean()
    login_count = fields.Integer()
    last_login_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
