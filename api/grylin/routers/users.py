from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from grylin.core.database import get_db
from grylin.core.deps import Principal, get_principal, get_storage
from grylin.models.user import User
from grylin.schemas.user import NotificationSettings, NotificationSettingsUpdate, UserResponse, demo_profile
from grylin.storage.base import StorageBackend

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_profile(
    principal: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    if principal.demo:
        prefs = await storage.get_notification_settings(principal.id)
        return demo_profile(principal.id, principal.email, prefs)
    return await db.get(User, principal.id)


@router.get("/me/notifications", response_model=NotificationSettings)
async def get_notification_settings(
    principal: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.get_notification_settings(principal.id)


@router.patch("/me/notifications", response_model=NotificationSettings)
async def update_notification_settings(
    payload: NotificationSettingsUpdate,
    principal: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    data = payload.model_dump(exclude_unset=True)

    if principal.demo:
        # Demo sessions never get pushes, so there is no device token to keep
        data.pop("push_token", None)
        current = await storage.get_notification_settings(principal.id)
        return await storage.save_notification_settings(principal.id, current.model_copy(update=data))

    user = await db.get(User, principal.id)
    for field, value in data.items():
        setattr(user, field, value)
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return NotificationSettings.model_validate(user)
