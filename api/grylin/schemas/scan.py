import uuid
from datetime import date

from pydantic import BaseModel, Field

from grylin.schemas.alert import AlertType
from grylin.schemas.document import Category


class ExtractedAnalysis(BaseModel):
    """Canonical analysis of one document.  Built only by the analysis validator."""

    title: str
    amount: float | None = None
    due_date: date | None = None
    category: Category = "Other"
    summary_bullets: list[str] = Field(min_length=1)
    is_scam: bool = False
    risk_score: int | None = None
    scam_indicators: list[str] | None = None


class RiskResponse(BaseModel):
    risk_score: int
    indicators: list[str]
    is_scam: bool
    recommendation: str


class ScanResult(BaseModel):
    document_id: uuid.UUID
    analysis: ExtractedAnalysis
    image_url: str | None = None
    auto_assigned_folder_id: uuid.UUID | None = None
    auto_assigned_folder_name: str | None = None
    auto_assigned_stack_id: uuid.UUID | None = None
    alert_created: bool = False
    alert_type: AlertType | None = None
    risk: RiskResponse | None = None


class RiskCheckRequest(BaseModel):
    content: str
    sender: str = ""


class SummarizeRequest(BaseModel):
    text: str = Field(min_length=1)


class SummarizeResponse(BaseModel):
    bullets: list[str]
