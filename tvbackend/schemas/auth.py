from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _UsernameMixin(BaseModel):
    username: str = Field(max_length=255)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username must not be empty")
        return value


class RegisterRequest(_UsernameMixin):
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(_UsernameMixin):
    password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(_UsernameMixin):
    pass


class ResetPasswordRequest(_UsernameMixin):
    token: str = Field(min_length=1, max_length=64)
    new_password: str = Field(min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


class DeleteAccountRequest(_UsernameMixin):
    password: str = Field(min_length=1, max_length=128)


class VerifyEmailRequest(_UsernameMixin):
    token: str = Field(min_length=1, max_length=64)


class ProfileOut(BaseModel):
    """Public account profile."""
    id: int
    username: str
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LoginData(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: int
    profile: ProfileOut


class RefreshData(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: int
    reissued: bool
