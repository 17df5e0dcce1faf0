import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_keywords(v: list[str]) -> list[str]:
    # Order is significant for display; blanks would match everything
    return [k.strip() for k in v if k and k.strip()]


class LifeStackCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    icon: str = "layers"
    color: str = "#6366F1"
    keywords: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def strip_keywords(cls, v: list[str]) -> list[str]:
        return _clean_keywords(v)


class LifeStackUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    icon: str | None = None
    color: str | None = None
    keywords: list[str] | None = None

    @field_validator("keywords")
    @classmethod
    def strip_keywords(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _clean_keywords(v)


class LifeStackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    icon: str
    color: str
    keywords: list[str]
    created_at: datetime
    item_count: int = 0
