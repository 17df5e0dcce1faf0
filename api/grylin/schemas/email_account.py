import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr

AccountType = Literal["personal", "work", "business"]


class EmailAccountCreate(BaseModel):
    email: EmailStr
    account_type: AccountType = "personal"
    # OAuth exchange happens on the device; the API only stores the result
    access_token: str
    refresh_token: str = ""


class EmailAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    account_type: AccountType
    last_sync_at: datetime | None
    is_active: bool
    created_at: datetime


class EmailSyncResult(BaseModel):
    fetched: int
    transactional: int
    created: int
    failed: int = 0
