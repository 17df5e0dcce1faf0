import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ── Closed vocabularies ────────────────────────────────────────────────────────

Category = Literal["Finance", "Education", "Shopping", "Health", "Career", "Other"]
CATEGORIES: tuple[str, ...] = ("Finance", "Education", "Shopping", "Health", "Career", "Other")

DocumentStatus = Literal["new", "paid", "archived"]
SourceType = Literal["scan", "email", "manual"]


class DocumentCreate(BaseModel):
    title: str = Field(min_length=1)
    category: Category = "Other"
    amount: float | None = None
    due_date: datetime | None = None
    summary: list[str] = Field(default_factory=list)
    is_scam: bool = False
    risk_score: int = Field(default=0, ge=0, le=100)
    scam_indicators: list[str] = Field(default_factory=list)
    source_type: SourceType = "manual"
    image_url: str | None = None
    email_id: str | None = None
    email_account_id: uuid.UUID | None = None
    folder_id: uuid.UUID | None = None
    life_stack_id: uuid.UUID | None = None


class DocumentUpdate(BaseModel):
    """Editable fields.  Status only changes through mark-paid / archive."""

    title: str | None = Field(default=None, min_length=1)
    category: Category | None = None
    amount: float | None = None
    due_date: datetime | None = None
    summary: list[str] | None = None
    folder_id: uuid.UUID | None = None
    life_stack_id: uuid.UUID | None = None

    @field_validator("title", "category", "summary")
    @classmethod
    def not_null(cls, v):
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if v is None:
            raise ValueError("may not be null")
        return v


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    category: Category
    amount: float | None
    due_date: datetime | None
    summary: list[str]
    status: DocumentStatus
    is_scam: bool
    risk_score: int
    scam_indicators: list[str]
    source_type: SourceType
    image_url: str | None = None
    email_id: str | None = None
    email_account_id: uuid.UUID | None = None
    folder_id: uuid.UUID | None = None
    life_stack_id: uuid.UUID | None = None
    created_at: datetime


class InsightResponse(BaseModel):
    obligation: str
    deadline: str
    consequence: str
