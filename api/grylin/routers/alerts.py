import uuid

from fastapi import APIRouter, Depends

from grylin.core.deps import Principal, get_principal, get_storage
from grylin.schemas.alert import AlertResponse, GroupedAlerts
from grylin.services import alert_scheduler
from grylin.storage.base import StorageBackend

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
async def list_alerts(
    include_dismissed: bool = False,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_alerts(user.id, include_dismissed=include_dismissed)


@router.get("/grouped", response_model=GroupedAlerts)
async def grouped_alerts(
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return alert_scheduler.group_by_urgency(await storage.list_alerts(user.id))


@router.post("/{alert_id}/dismiss", response_model=AlertResponse)
async def dismiss_alert(
    alert_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.dismiss_alert(user.id, alert_id)


@router.post("/check", response_model=list[AlertResponse])
async def check_deadlines(
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    """Run the deadline check now instead of waiting for the daily job."""
    return await alert_scheduler.check_deadlines(storage, user.id)
