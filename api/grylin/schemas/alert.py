import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

AlertType = Literal["deadline_7day", "deadline_1day", "overdue", "scam_warning"]


class AlertCreate(BaseModel):
    document_id: uuid.UUID
    alert_type: AlertType
    trigger_date: datetime


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    document_id: uuid.UUID
    alert_type: AlertType
    trigger_date: datetime
    is_dismissed: bool
    is_sent: bool
    created_at: datetime


class GroupedAlerts(BaseModel):
    overdue: list[AlertResponse]
    today: list[AlertResponse]
    this_week: list[AlertResponse]
    later: list[AlertResponse]
