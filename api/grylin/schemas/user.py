import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _validate_password(v: str) -> str:
    errors = []
    if len(v) < 12:
        errors.append("at least 12 characters")
    if not any(c.isupper() for c in v):
        errors.append("one uppercase letter")
    if not any(c.islower() for c in v):
        errors.append("one lowercase letter")
    if not any(c.isdigit() for c in v):
        errors.append("one digit")
    if errors:
        raise ValueError("Password must contain: " + ", ".join(errors))
    return v


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=12)
    full_name: str = ""

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _validate_password(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str
    is_active: bool
    is_premium: bool
    push_notifications_enabled: bool
    reminder_7day_enabled: bool
    reminder_1day_enabled: bool
    created_at: datetime


class NotificationSettings(BaseModel):
    """Per-user alert toggles.  Overdue and scam warnings only obey ``push``."""

    model_config = ConfigDict(from_attributes=True)

    push_notifications_enabled: bool = True
    reminder_7day_enabled: bool = True
    reminder_1day_enabled: bool = True


class NotificationSettingsUpdate(BaseModel):
    push_notifications_enabled: bool | None = None
    reminder_7day_enabled: bool | None = None
    reminder_1day_enabled: bool | None = None
    push_token: str | None = None


def demo_profile(user_id: uuid.UUID, email: str, prefs: NotificationSettings) -> UserResponse:
    """Profile for a demo session, which has no ``users`` row behind it."""
    return UserResponse(
        id=user_id,
        email=email,
        full_name="Demo User",
        is_active=True,
        is_premium=False,
        created_at=datetime.now(timezone.utc),
        **prefs.model_dump(),
    )
